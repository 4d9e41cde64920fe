"""Chain configuration: wait ceilings, poll cadence and driver launch flags."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Options:
    """Per-chain configuration snapshot. All durations are milliseconds."""

    timeout: float = 5000  # generic wait ceiling
    page_load_timeout: float = 10_000  # ceiling for page-transition waits
    interval: float = 200  # poll cadence
    headless: bool = True
    # Launch flags, forwarded to the driver untouched by the wait engine
    load_images: bool = True
    ignore_ssl_errors: bool = True
    ssl_protocol: str = "any"
    web_security: bool = True
    proxy: str | None = None
    proxy_type: str | None = None
    proxy_auth: str | None = None  # "user:password"
    cookies_file: str | None = None
    executable_path: str | None = None
    # Drain the queue on the first action error instead of running on
    halt_on_error: bool = False

    def __post_init__(self) -> None:
        for name in ("timeout", "page_load_timeout", "interval"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"{name} must be a positive number of milliseconds, got {value!r}")

    @classmethod
    def from_env(cls, prefix: str = "WEBCHAIN_", **overrides: Any) -> "Options":
        """Build options from ``<prefix><FIELD>`` environment variables.

        Explicit keyword overrides win over the environment.
        """
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = os.environ.get(prefix + f.name.upper())
            if raw is None or raw == "":
                continue
            values[f.name] = _coerce(f.name, raw, getattr(cls, f.name))
        values.update(overrides)
        return cls(**values)


def _coerce(name: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"{name}: expected a boolean, got {raw!r}")
    if isinstance(default, (int, float)):
        return float(raw)
    return raw
