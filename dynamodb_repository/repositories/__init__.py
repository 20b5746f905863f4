from .base import DynamoRepository
from .cached import CachedDynamoRepository
from .managed import ManagedDynamoRepository, TrackedEntry

__all__ = [
    "DynamoRepository",
    "CachedDynamoRepository",
    "ManagedDynamoRepository",
    "TrackedEntry",
]
