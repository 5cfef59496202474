"""
Tags - household labels attached to line items and ledger entries
"""

from packages.domain.tags.tag_service import TagService, tag_service

__all__ = [
    'TagService',
    'tag_service',
]
