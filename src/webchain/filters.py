"""Text filters for selector matches.

A filter is a JavaScript-style regex literal (``"/total: \\d+/i"``), a bare
pattern, or a mapping with ``pattern`` and optional ``flags``. It is sent to
the page as data and compiled there.
"""

from __future__ import annotations

import re
from typing import Any


_REGEX_LITERAL = re.compile(r"^/?(.*?)(?:/([igm]*))?$", re.DOTALL)


def parse_filter(opts: str | dict[str, Any]) -> dict[str, str]:
    """Normalize a filter into ``{"pattern": ..., "flags": ...}``."""
    flags = None
    if isinstance(opts, str):
        pattern = opts
    elif isinstance(opts, dict) and isinstance(opts.get("pattern"), str):
        pattern = opts["pattern"]
        flags = opts.get("flags")
    else:
        raise TypeError(f"filter must be a pattern string or {{'pattern': ...}}, got {opts!r}")

    m = _REGEX_LITERAL.match(pattern)
    assert m is not None  # every string matches the literal form
    return {"pattern": m.group(1), "flags": flags or m.group(2) or ""}
