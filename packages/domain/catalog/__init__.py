"""
Catalog Module - brand defaults learned from purchases

Cache strategy:
- First purchase of a brand → brand row created with that purchase's item/unit/tags
- Later purchases → defaults overwritten, so the catalog tracks the latest habit
- Lookups are case-insensitive; writes match the trimmed name exactly
"""

from packages.domain.catalog.catalog_service import CatalogService, catalog_service

__all__ = [
    'CatalogService',
    'catalog_service',
]
