"""
Cadence Configuration Module - unified config exports
"""

from cadence.config.base import CadenceBaseConfig
from cadence.config.models import (
    ClassifierConfig,
    EventBusConfig,
    RuntimeConfig,
    StateStoreConfig,
)

__all__ = [
    "CadenceBaseConfig",
    "ClassifierConfig",
    "EventBusConfig",
    "RuntimeConfig",
    "StateStoreConfig",
]
