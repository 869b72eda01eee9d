"""Domain layer — entities persisted through the infrastructure layer."""

from servicelayer.domain.entity import ENTITY_REGISTRY, Entity, get_entity

__all__ = ["ENTITY_REGISTRY", "Entity", "get_entity"]
