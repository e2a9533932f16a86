"""Settings loaded from environment variables and an optional .env file."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from .errors import ValidationError
from .models import TorrentQuality

DEFAULT_PROVIDERS = ("anilist", "kitsu", "jikan", "myanimelist")
KNOWN_PROVIDERS = frozenset(DEFAULT_PROVIDERS)

TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValidationError(f"expected a boolean, got {raw!r}", field=name)


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"expected an integer, got {raw!r}", field=name) from None


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"expected a number, got {raw!r}", field=name) from None


def _providers(env: Mapping[str, str], name: str) -> list[str]:
    raw = env.get(name)
    if raw is None:
        return list(DEFAULT_PROVIDERS)
    providers = [item.strip().lower() for item in raw.split(",") if item.strip()]
    unknown = [item for item in providers if item not in KNOWN_PROVIDERS]
    if unknown:
        raise ValidationError(f"unknown providers: {', '.join(unknown)}", field=name)
    return providers


def _quality(env: Mapping[str, str], name: str, default: TorrentQuality) -> TorrentQuality:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    for quality in TorrentQuality:
        if quality.value.lower() == raw.strip().lower():
            return quality
    raise ValidationError(f"unknown quality {raw!r}", field=name)


@dataclass
class Settings:
    mal_client_id: str | None = None
    enabled_providers: list[str] = field(default_factory=lambda: list(DEFAULT_PROVIDERS))
    prefer_open_sources: bool = True
    provider_timeout: float = 15.0
    indexer_timeout: float = 30.0
    max_retries: int = 3
    cache_enabled: bool = True
    cache_ttl: int = 3600
    cache_dir: Path | None = None
    requests_per_minute: int = 60
    enable_nyaa: bool = False
    nyaa_min_seeders: int = 1
    nyaa_trusted_only: bool = False
    nyaa_preferred_quality: TorrentQuality = TorrentQuality.FULL_HD_1080P
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        When no mapping is given, a .env file in the working directory is
        loaded first and the process environment is read.

        Raises:
            ValidationError: If a variable holds an invalid value
        """
        if environ is None:
            load_dotenv(find_dotenv(usecwd=True))
            environ = os.environ

        cache_dir = environ.get("MIAU_CACHE_DIR")

        return cls(
            mal_client_id=environ.get("MAL_CLIENT_ID") or None,
            enabled_providers=_providers(environ, "MIAU_PROVIDERS"),
            prefer_open_sources=_bool(environ, "MIAU_PREFER_OPEN_SOURCES", True),
            provider_timeout=_float(environ, "MIAU_PROVIDER_TIMEOUT", 15.0),
            indexer_timeout=_float(environ, "MIAU_INDEXER_TIMEOUT", 30.0),
            max_retries=_int(environ, "MIAU_MAX_RETRIES", 3),
            cache_enabled=_bool(environ, "MIAU_CACHE_ENABLED", True),
            cache_ttl=_int(environ, "MIAU_CACHE_TTL", 3600),
            cache_dir=Path(cache_dir).expanduser() if cache_dir else None,
            requests_per_minute=_int(environ, "MIAU_RATE_LIMIT_RPM", 60),
            enable_nyaa=_bool(environ, "MIAU_ENABLE_NYAA", False),
            nyaa_min_seeders=_int(environ, "MIAU_NYAA_MIN_SEEDERS", 1),
            nyaa_trusted_only=_bool(environ, "MIAU_NYAA_TRUSTED_ONLY", False),
            nyaa_preferred_quality=_quality(
                environ, "MIAU_NYAA_PREFERRED_QUALITY", TorrentQuality.FULL_HD_1080P
            ),
            log_level=(environ.get("MIAU_LOG_LEVEL") or "INFO").upper(),
        )
