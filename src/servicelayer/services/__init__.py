"""Service layer — actions returning ServiceResponse inside a ServiceContext.

Services may import from domain and infrastructure layers.
"""

from servicelayer.services.actions import ActionCall, ActionInterceptor
from servicelayer.services.base import BaseService
from servicelayer.services.context import ServiceContext
from servicelayer.services.result import MergedResponse, ServiceResponse, merge_responses

__all__ = [
    "ActionCall",
    "ActionInterceptor",
    "BaseService",
    "MergedResponse",
    "ServiceContext",
    "ServiceResponse",
    "merge_responses",
]
