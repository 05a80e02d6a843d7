"""Integrations that actions are dispatched to"""

from .base import Integration
from .registry import DispatchTable, INTEGRATION_TYPES, build_dispatch_table

__all__ = ["Integration", "DispatchTable", "INTEGRATION_TYPES", "build_dispatch_table"]
