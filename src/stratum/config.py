"""AppConfig — process-wide application settings, fixed at construction."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

_ENV_PREFIX = "STRATUM_"
_TRUTHY = {"1", "true", "yes", "on"}


def _default_env() -> str:
    return os.environ.get(f"{_ENV_PREFIX}ENV") or "development"


@dataclass(frozen=True)
class AppConfig:
    """Immutable application settings read by the request/response templates."""

    env: str = field(default_factory=_default_env)
    proxy: bool = False
    subdomain_offset: int = 2
    proxy_ip_header: str = "X-Forwarded-For"
    max_ips_count: int = 0
    keys: tuple[str, ...] | None = None
    silent: bool = False

    def __post_init__(self) -> None:
        if self.keys is not None and not isinstance(self.keys, tuple):
            object.__setattr__(self, "keys", tuple(self.keys))
        if self.subdomain_offset < 0:
            raise ValueError("subdomain_offset must be >= 0")
        if self.max_ips_count < 0:
            raise ValueError("max_ips_count must be >= 0")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppConfig:
        """Build a config from ``STRATUM_*`` environment variables."""
        environ = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = environ.get(_ENV_PREFIX + name)
            return value.strip() if value is not None else None

        options: dict[str, object] = {}
        if env := get("ENV"):
            options["env"] = env
        if (proxy := get("PROXY")) is not None:
            options["proxy"] = proxy.lower() in _TRUTHY
        if offset := get("SUBDOMAIN_OFFSET"):
            options["subdomain_offset"] = int(offset)
        if header := get("PROXY_IP_HEADER"):
            options["proxy_ip_header"] = header
        if count := get("MAX_IPS_COUNT"):
            options["max_ips_count"] = int(count)
        if keys := get("KEYS"):
            options["keys"] = tuple(k.strip() for k in keys.split(",") if k.strip())
        if (silent := get("SILENT")) is not None:
            options["silent"] = silent.lower() in _TRUTHY
        return cls(**options)  # type: ignore[arg-type]
