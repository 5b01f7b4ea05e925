"""msgspec decoding and encoding for the internal task endpoints."""

from __future__ import annotations

from typing import TypeVar

import msgspec
from fastapi import HTTPException, Request, status
from starlette.responses import Response

T = TypeVar("T", bound=msgspec.Struct)


async def decode_msgspec_request(request: Request, struct_type: type[T]) -> T:
  """Decode a JSON body into a msgspec.Struct; malformed or mistyped bodies become 400."""
  payload_bytes = await request.body()
  if not payload_bytes:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body is required")
  try:
    return msgspec.json.decode(payload_bytes, type=struct_type)
  except (msgspec.DecodeError, msgspec.ValidationError) as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid request payload: {exc}") from exc


def encode_msgspec_response(payload: msgspec.Struct, *, status_code: int = 200) -> Response:
  encoded = msgspec.json.encode(payload)
  return Response(content=encoded, status_code=status_code, media_type="application/json")
