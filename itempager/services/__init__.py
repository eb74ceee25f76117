"""Service layer abstractions for ItemPager."""

from .items import ItemsService

__all__ = ["ItemsService"]
