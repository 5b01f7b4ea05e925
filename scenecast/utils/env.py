"""Local ``.env`` support for development runs."""

from __future__ import annotations

import os
from pathlib import Path

ENV_FILE_VARIABLE = "SCENECAST_ENV_FILE"


def default_env_path() -> Path:
  """Return ``$SCENECAST_ENV_FILE`` when set, else ``.env`` at the repository root."""
  explicit = os.getenv(ENV_FILE_VARIABLE)
  if explicit:
    return Path(explicit).expanduser()
  return Path(__file__).resolve().parents[2] / ".env"


def parse_env_line(raw_line: str) -> tuple[str, str] | None:
  """Split one ``KEY=value`` line; comments, blanks and malformed lines yield ``None``."""
  line = raw_line.strip()
  if line.startswith("export "):
    line = line.removeprefix("export ").lstrip()
  if not line or line.startswith("#") or "=" not in line:
    return None

  key, _, value = line.partition("=")
  key = key.strip()
  if not key:
    return None
  value = value.strip()
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    value = value[1:-1]
  return key, value


def load_env_file(path: Path, *, override: bool = False) -> None:
  """Copy values from ``path`` into ``os.environ``; real environment wins unless ``override``."""
  if not path.is_file():
    return

  for raw_line in path.read_text(encoding="utf-8").splitlines():
    parsed = parse_env_line(raw_line)
    if parsed is None:
      continue
    key, value = parsed
    if override or key not in os.environ:
      os.environ[key] = value
