"""Identifier utilities."""

from __future__ import annotations

import re
import secrets
import string
import time
import uuid


def generate_batch_id() -> str:
  """Return a new batch identifier (``veo_<time suffix>_<random>``)."""
  timestamp = str(int(time.time() * 1000))[-8:]
  return f"veo_{timestamp}_{generate_nanoid(4).lower()}"


def artifact_id_for(batch_id: str, operation_index: int) -> str:
  """Return the stable artifact identifier for one operation in a batch."""
  return f"{batch_id}_scene_{operation_index + 1}"


def generate_image_id() -> str:
  """Return a new generated-image identifier."""
  return f"img_{uuid.uuid4().hex}"


def generate_request_id() -> str:
  """Return a request correlation id."""
  return str(uuid.uuid4())


def generate_nanoid(size: int = 16) -> str:
  """Return a short non-sequential id suitable for public references."""
  alphabet = string.ascii_letters + string.digits
  return "".join(secrets.choice(alphabet) for _ in range(size))


def generate_analysis_id(name: str) -> str:
  """Return an analysis identifier derived from the subject name (``<slug>_<time suffix>_<random>``)."""
  slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_") or "subject"
  timestamp = str(int(time.time() * 1000))[-6:]
  return f"{slug[:40]}_{timestamp}_{generate_nanoid(4).lower()}"


def generate_prompt_set_id() -> str:
  """Return a prompt set identifier."""
  return f"enhanced_prompts_{str(int(time.time() * 1000))[-6:]}"
