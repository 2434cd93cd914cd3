from __future__ import annotations

import json
from typing import Any

_DECODER = json.JSONDecoder()


def extract_json_object(text: str) -> dict[str, Any] | None:
    """
    Parse the `{...}` span that starts at the first `{` in text.

    Inline scripts usually wrap the payload in an assignment or a function call, so
    leading code and anything after the closing brace are ignored. Later braces are
    never tried: a script whose first span is not a JSON object yields None.
    """
    s = text or ""
    start = s.find("{")
    if start < 0:
        return None

    try:
        value, _ = _DECODER.raw_decode(s, start)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None
