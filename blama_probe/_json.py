from __future__ import annotations

from typing import Any

import orjson


def dumps(obj: Any, *, indent: int = 0) -> bytes:
    """Compact by default (wire form); indent=2 for files and display."""
    option = orjson.OPT_INDENT_2 if indent == 2 else 0
    return orjson.dumps(obj, option=option)


def loads(data: bytes | bytearray | str) -> Any:
    return orjson.loads(data)


JSONDecodeError = orjson.JSONDecodeError

__all__ = ["dumps", "loads", "JSONDecodeError"]
