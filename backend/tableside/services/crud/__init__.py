"""
CRUD Services - tombstone lifecycle for session-core entities.

Provides:
- SoftDeleteStore: soft delete, restore, purge, default-live reads
- ENTITY_REGISTRY / get_model_class: entity name -> model
"""

from .soft_delete import (
    SoftDeleteStore,
    ENTITY_REGISTRY,
    TombstoneListener,
    get_model_class,
)

__all__ = [
    "SoftDeleteStore",
    "ENTITY_REGISTRY",
    "TombstoneListener",
    "get_model_class",
]
