# SPDX-License-Identifier: MIT
"""Registry of storage backends with factory-based creation."""

import inspect
from collections.abc import Callable
from typing import Any

from ..config import StorageConfig
from ..logging_config import get_detail_logger
from .base import StorageBase
from .gcs import create_gcs_storage
from .local import LocalStorage
from .memory import MemoryStorage
from .s3 import create_s3_storage


detail_logger = get_detail_logger()


class StorageRegistry:
    """Maps backend names to factories building StorageBase instances."""

    def __init__(self) -> None:
        self._factories: dict[str, Callable[..., StorageBase]] = {}

    def register_factory(self, name: str, factory: Callable[..., StorageBase]) -> None:
        """Register a storage factory under a backend name.

        Args:
            name: Backend name as used in ``storage.backend``
            factory: Callable accepting a subset of the StorageConfig fields
        """
        self._factories[name] = factory

    def get_backend_names(self) -> list[str]:
        """Get names of all registered backends."""
        return list(self._factories.keys())

    def create_storage(self, name: str, **config: Any) -> StorageBase:
        """Create a storage backend, passing only the parameters its factory accepts.

        Raises:
            ValueError: If no backend is registered under name
        """
        if name not in self._factories:
            raise ValueError(
                f"Storage backend '{name}' not found. "
                f"Available: {', '.join(self.get_backend_names())}"
            )

        factory = self._factories[name]
        accepted_params = set(inspect.signature(factory).parameters)
        filtered_config = {
            key: value for key, value in config.items() if key in accepted_params
        }
        detail_logger.debug(
            f"Creating {name} storage with parameters {sorted(filtered_config)}"
        )
        return factory(**filtered_config)


def _default_registry() -> StorageRegistry:
    registry = StorageRegistry()
    registry.register_factory("s3", create_s3_storage)
    registry.register_factory("gcs", create_gcs_storage)
    registry.register_factory("local", LocalStorage)
    registry.register_factory("memory", MemoryStorage)
    return registry


# Global storage registry with factory pattern
_storage_registry_instance: StorageRegistry | None = None


def get_storage_registry() -> StorageRegistry:
    """Get or create the global storage registry instance."""
    global _storage_registry_instance
    if _storage_registry_instance is None:
        _storage_registry_instance = _default_registry()
    return _storage_registry_instance


def create_storage(config: StorageConfig) -> StorageBase:
    """Create the storage backend described by a StorageConfig."""
    return get_storage_registry().create_storage(
        config.backend, **config.model_dump(exclude={"backend"})
    )
