"""Custom JSON handling."""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from fastapi.responses import JSONResponse


class ScenecastJSONEncoder(json.JSONEncoder):
  """JSON encoder that handles Decimal costs and datetimes from the ORM."""

  def default(self, obj: Any) -> Any:
    if isinstance(obj, Decimal):
      return int(obj) if obj % 1 == 0 else float(obj)
    if isinstance(obj, datetime | date):
      return obj.isoformat()
    return super().default(obj)


class ScenecastJSONResponse(JSONResponse):
  """JSONResponse that uses ScenecastJSONEncoder."""

  def render(self, content: Any) -> bytes:
    return json.dumps(content, ensure_ascii=False, allow_nan=False, indent=None, separators=(",", ":"), cls=ScenecastJSONEncoder).encode("utf-8")
