"""Displacement Atlas services: cached, degradation-aware data access."""

from displacementatlas.services.base import BaseService
from displacementatlas.services.conflict_service import ConflictService
from displacementatlas.services.flow_service import FlowService
from displacementatlas.services.idp_service import IdpService

__all__ = [
    "BaseService",
    "ConflictService",
    "FlowService",
    "IdpService",
]
