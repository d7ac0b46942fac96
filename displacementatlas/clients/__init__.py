"""Displacement Atlas source clients.

HTTP communication only: request construction, pagination, authentication
and transport error mapping. No normalization or business logic here.
"""

from displacementatlas.clients.acled_auth import AcledTokenManager, TokenState
from displacementatlas.clients.acled_client import ACLEDClient, AcledFetchResult
from displacementatlas.clients.iom_client import IOMClient
from displacementatlas.clients.unhcr_client import PopulationApiClient, UNHCRClient, UNRWAClient

__all__ = [
    "AcledTokenManager",
    "TokenState",
    "ACLEDClient",
    "AcledFetchResult",
    "IOMClient",
    "PopulationApiClient",
    "UNHCRClient",
    "UNRWAClient",
]
