"""Displacement Atlas configuration package."""

from config.defaults import (
    ACLED_PAGE_SIZE,
    CACHE_KEY_PREFIX,
    CONFLICT_CACHE_TTL,
    DISPLACEMENT_CACHE_TTL,
    IOM_PRIORITY_OPERATION,
    UNHCR_PAGE_LIMIT,
    UNKNOWN_ISO3,
    UNRWA_HOST_COUNTRIES,
)
from config.settings import AtlasConfig

__all__ = [
    "AtlasConfig",
    "ACLED_PAGE_SIZE",
    "CACHE_KEY_PREFIX",
    "CONFLICT_CACHE_TTL",
    "DISPLACEMENT_CACHE_TTL",
    "IOM_PRIORITY_OPERATION",
    "UNHCR_PAGE_LIMIT",
    "UNKNOWN_ISO3",
    "UNRWA_HOST_COUNTRIES",
]
