"""Displacement Atlas — AtlasConfig and environment-based configuration loading.

All runtime configuration flows through AtlasConfig. No module-level globals,
no hard-coded values. ACLED credentials come exclusively from environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from config.defaults import (
    ACLED_CLIENT_ID,
    ACLED_DEFAULT_TOKEN_TTL,
    ACLED_MAX_PAGES,
    ACLED_PAGE_DELAY,
    ACLED_PAGE_SIZE,
    ACLED_PAGE_TIMEOUT,
    ACLED_RATE_LIMIT_BACKOFF,
    ACLED_READ_URL,
    ACLED_REFRESH_THRESHOLD,
    ACLED_TOKEN_TIMEOUT,
    ACLED_TOKEN_URL,
    CACHE_DIR,
    CACHE_KEY_PREFIX,
    CONFLICT_CACHE_TTL,
    COUNTRY_NAME_MATCH_THRESHOLD,
    DEFAULT_LOG_LEVEL,
    DISPLACEMENT_CACHE_TTL,
    IOM_BASE_URL,
    IOM_COUNTRY_DELAY,
    IOM_PRIORITY_OPERATION,
    IOM_REQUEST_TIMEOUT,
    SERVE_STALE_ON_ERROR,
    SNAPSHOT_ROOT,
    UNHCR_BASE_URL,
    UNHCR_MAX_PAGES,
    UNHCR_MAX_WORKERS,
    UNHCR_PAGE_LIMIT,
)

# Load .env file if present; silently skip if missing
load_dotenv()


@dataclass
class AtlasConfig:
    """Single configuration object threaded through clients, caches and services.

    Endpoints, limits, cache lifetimes, credentials and paths live here.
    Never use module-level globals or hard-coded values in client code.
    """

    # ── UNHCR / UNRWA ──────────────────────────────────────────────────────────
    unhcr_base_url: str = UNHCR_BASE_URL
    unhcr_page_limit: int = UNHCR_PAGE_LIMIT
    unhcr_max_pages: int = UNHCR_MAX_PAGES
    unhcr_max_workers: int = UNHCR_MAX_WORKERS
    # None leaves the timeout to the transport
    unhcr_request_timeout: Optional[float] = None

    # ── IOM DTM ────────────────────────────────────────────────────────────────
    iom_base_url: str = IOM_BASE_URL
    iom_request_timeout: float = IOM_REQUEST_TIMEOUT
    iom_country_delay: float = IOM_COUNTRY_DELAY
    iom_priority_operation: str = IOM_PRIORITY_OPERATION

    # ── ACLED ──────────────────────────────────────────────────────────────────
    acled_read_url: str = ACLED_READ_URL
    acled_token_url: str = ACLED_TOKEN_URL
    acled_client_id: str = ACLED_CLIENT_ID
    acled_page_size: int = ACLED_PAGE_SIZE
    acled_max_pages: int = ACLED_MAX_PAGES
    acled_page_timeout: float = ACLED_PAGE_TIMEOUT
    acled_token_timeout: float = ACLED_TOKEN_TIMEOUT
    acled_page_delay: float = ACLED_PAGE_DELAY
    acled_rate_limit_backoff: float = ACLED_RATE_LIMIT_BACKOFF
    acled_default_token_ttl: int = ACLED_DEFAULT_TOKEN_TTL
    acled_refresh_threshold: int = ACLED_REFRESH_THRESHOLD

    # ── ACLED credentials (from environment only) ──────────────────────────────
    acled_username: Optional[str] = field(default_factory=lambda: os.getenv("ACLED_USERNAME"))
    acled_password: Optional[str] = field(default_factory=lambda: os.getenv("ACLED_PASSWORD"))
    acled_access_token: Optional[str] = field(
        default_factory=lambda: os.getenv("ACLED_ACCESS_TOKEN")
    )
    acled_refresh_token: Optional[str] = field(
        default_factory=lambda: os.getenv("ACLED_REFRESH_TOKEN")
    )

    # ── Cache tiers ────────────────────────────────────────────────────────────
    conflict_cache_ttl: int = CONFLICT_CACHE_TTL
    displacement_cache_ttl: int = DISPLACEMENT_CACHE_TTL
    cache_key_prefix: str = CACHE_KEY_PREFIX
    serve_stale_on_error: bool = SERVE_STALE_ON_ERROR
    snapshot_root: Optional[str] = field(
        default_factory=lambda: os.getenv("ATLAS_SNAPSHOT_ROOT", SNAPSHOT_ROOT)
    )
    cache_dir: Optional[str] = field(
        default_factory=lambda: os.getenv("ATLAS_CACHE_DIR", CACHE_DIR)
    )

    # ── Country identity ───────────────────────────────────────────────────────
    country_name_match_threshold: float = COUNTRY_NAME_MATCH_THRESHOLD

    # ── Logging ────────────────────────────────────────────────────────────────
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL))
    # File logging is off unless a path is given
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("ATLAS_LOG_FILE") or None)

    def __post_init__(self) -> None:
        for name in ("unhcr_page_limit", "unhcr_max_pages", "unhcr_max_workers",
                     "acled_page_size", "acled_max_pages"):
            if getattr(self, name) < 1:
                raise ValueError(f"AtlasConfig.{name} must be >= 1, got {getattr(self, name)}")
        for name in ("iom_country_delay", "acled_page_delay", "acled_rate_limit_backoff",
                     "acled_refresh_threshold"):
            if getattr(self, name) < 0:
                raise ValueError(f"AtlasConfig.{name} must be >= 0, got {getattr(self, name)}")
        if self.conflict_cache_ttl <= 0 or self.displacement_cache_ttl <= 0:
            raise ValueError("AtlasConfig cache TTLs must be positive")
        # Clamp the fuzzy-match threshold into a usable ratio range
        self.country_name_match_threshold = min(max(self.country_name_match_threshold, 0.0), 1.0)

    @property
    def has_acled_credentials(self) -> bool:
        """True when either a password login or a token pair is configured."""
        return bool(
            (self.acled_username and self.acled_password)
            or self.acled_access_token
            or self.acled_refresh_token
        )
