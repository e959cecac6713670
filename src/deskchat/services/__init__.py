"""Service layer for deskchat business logic.

- ChatService: chat requests, connection tests and statistics over stored configs
- ConfigStore: lookup boundary to the application's configuration store
"""

from .chat_service import ChatService, ConfigTestReport, ProviderStats, parse_model_id
from .config_store import ConfigStore, InMemoryConfigStore
from .exceptions import ConfigDisabledError, NoConfigAvailableError, ServiceError

__all__ = [
    "ChatService",
    "ConfigStore",
    "InMemoryConfigStore",
    # Types
    "ConfigTestReport",
    "ProviderStats",
    "parse_model_id",
    # Exceptions
    "ConfigDisabledError",
    "NoConfigAvailableError",
    "ServiceError",
]
