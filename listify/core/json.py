"""Custom JSON handling."""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any

from fastapi.responses import JSONResponse


class ListifyJSONEncoder(json.JSONEncoder):
  """JSON encoder that also handles enums and datetimes."""

  def default(self, obj: Any) -> Any:
    if isinstance(obj, Enum):
      return obj.value
    if isinstance(obj, datetime):
      return obj.isoformat()
    return super().default(obj)


class ListifyJSONResponse(JSONResponse):
  """Compact UTF-8 JSONResponse using ListifyJSONEncoder."""

  def render(self, content: Any) -> bytes:
    return json.dumps(content, ensure_ascii=False, allow_nan=False, indent=None, separators=(",", ":"), cls=ListifyJSONEncoder).encode("utf-8")
