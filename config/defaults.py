"""Displacement Atlas — default endpoints, limits and cache lifetimes.

All tuneable values live here. Never hard-code magic numbers in source files.
Import constants from this module; override via AtlasConfig at runtime.
"""

# ── UNHCR population API ───────────────────────────────────────────────────────
UNHCR_BASE_URL: str = "https://api.unhcr.org/population/v1"

# Rows per page requested from the population endpoint
UNHCR_PAGE_LIMIT: int = 1000

# Hard ceiling on pages fetched for one scope, whatever maxPages reports
UNHCR_MAX_PAGES: int = 100

# Worker threads used to fetch pages 2..N concurrently
UNHCR_MAX_WORKERS: int = 8

# ── UNRWA (served from the UNHCR host) ─────────────────────────────────────────
UNRWA_ORIGIN_ISO: str = "PSE"
UNRWA_ORIGIN_NAME: str = "Palestine"

# Countries and territories in which UNRWA registers Palestine refugees
UNRWA_HOST_COUNTRIES: tuple = ("JOR", "LBN", "SYR", "PSE", "EGY")

# ── IOM Displacement Tracking Matrix ───────────────────────────────────────────
IOM_BASE_URL: str = "https://dtmapi.iom.int/api"

# Abort a DTM request after this many seconds
IOM_REQUEST_TIMEOUT: int = 30

# Reporting window wide enough to cover every published round
IOM_FROM_REPORTING_DATE: str = "2000-01-01"
IOM_TO_REPORTING_DATE: str = "2030-12-31"

# Pause between per-country requests in a batch (seconds)
IOM_COUNTRY_DELAY: float = 0.15

# Operation whose figures win over every other operation in the same year
IOM_PRIORITY_OPERATION: str = "Countrywide monitoring"

# ── ACLED ──────────────────────────────────────────────────────────────────────
ACLED_READ_URL: str = "https://acleddata.com/api/acled/read"
ACLED_TOKEN_URL: str = "https://acleddata.com/oauth/token"
ACLED_CLIENT_ID: str = "acled"

# Rows per page (ACLED API maximum)
ACLED_PAGE_SIZE: int = 5000

# Hard ceiling on pages fetched for one country-year
ACLED_MAX_PAGES: int = 50

# Per-page request timeout (seconds)
ACLED_PAGE_TIMEOUT: int = 15

# Token endpoint request timeout (seconds)
ACLED_TOKEN_TIMEOUT: int = 30

# Pause between successive pages (seconds)
ACLED_PAGE_DELAY: float = 0.2

# Fixed backoff after a 403 rate-limit response (seconds)
ACLED_RATE_LIMIT_BACKOFF: float = 5.0

# Validity assumed for a token that arrives without expires_in (seconds)
ACLED_DEFAULT_TOKEN_TTL: int = 24 * 3600

# Refresh proactively once remaining validity drops below this (seconds)
ACLED_REFRESH_THRESHOLD: int = 3600

# Countries warmed by ConflictService.preload() when no list is given
ACLED_PRELOAD_COUNTRIES: tuple = (
    "COD", "SYR", "AFG", "YEM", "SSD", "SOM", "ETH", "NGA", "CMR", "TCD",
)

# ── Cache lifetimes (seconds) ──────────────────────────────────────────────────
CONFLICT_CACHE_TTL: int = 24 * 3600
DISPLACEMENT_CACHE_TTL: int = 30 * 24 * 3600

# Prefix applied to every persisted cache key
CACHE_KEY_PREFIX: str = "atlas_cache_"

# Serve an expired persisted entry when the live fetch fails
SERVE_STALE_ON_ERROR: bool = True

# ── Country identity ───────────────────────────────────────────────────────────
UNKNOWN_ISO3: str = "UNK"

# Minimum Levenshtein ratio for fuzzy country-name resolution
COUNTRY_NAME_MATCH_THRESHOLD: float = 0.85

# ── Summaries ──────────────────────────────────────────────────────────────────
CONFLICT_TOP_LOCATIONS: int = 5
CONFLICT_TOP_EVENTS: int = 5

# ── Paths and logging ──────────────────────────────────────────────────────────
# Root of the pre-generated static snapshots (conflict-data/, iom-cache.json,
# unhcr-cache.json, unrwa-cache.json)
SNAPSHOT_ROOT: str = "public"

# Directory backing the persisted cache tier
CACHE_DIR: str = ".atlas_cache"

DEFAULT_LOG_LEVEL: str = "INFO"

# Snapshot format version written by the snapshot writers
SNAPSHOT_VERSION: str = "1.0"
