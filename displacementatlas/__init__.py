"""Displacement Atlas — global displacement and conflict data pipeline.

Public API surface:
    - AtlasConfig: Runtime configuration
    - DisplacementAtlas: Facade over the flow, IDP and conflict services
    - TieredCache: The process-wide memory/static/persisted/live cache
"""

__version__ = "1.0.0"
__author__ = "Displacement Atlas Contributors"

from config.settings import AtlasConfig
from displacementatlas.atlas import DisplacementAtlas, LatestRequestGuard
from displacementatlas.cache.tiered_cache import TieredCache

__all__ = [
    "__version__",
    "AtlasConfig",
    "DisplacementAtlas",
    "LatestRequestGuard",
    "TieredCache",
]
