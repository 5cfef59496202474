"""
Tag Service - resolve tag ids and maintain tag links on line items and ledger entries
"""
from typing import Iterable, List
from uuid import UUID

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.models import Tag, ledger_entry_tags, line_item_tags

logger = structlog.get_logger()


class TagService:
    """Tag lookups and association writes. Never commits."""

    async def create_tag(self, household_id: UUID, name: str, db: AsyncSession) -> Tag:
        tag = Tag(household_id=household_id, name=name)
        db.add(tag)
        await db.flush()
        return tag

    async def resolve_tags(
        self,
        household_id: UUID,
        tag_ids: Iterable[UUID],
        db: AsyncSession,
    ) -> List[Tag]:
        """
        Load the household's tags for the given ids.

        Unknown ids (or ids owned by another household) are dropped.
        """
        tag_ids = list(dict.fromkeys(tag_ids or []))
        if not tag_ids:
            return []

        result = await db.execute(
            select(Tag).where(Tag.id.in_(tag_ids), Tag.household_id == household_id)
        )
        tags = list(result.scalars().all())

        if len(tags) != len(tag_ids):
            found = {tag.id for tag in tags}
            logger.warning("tags_not_found",
                           household_id=str(household_id),
                           missing=[str(t) for t in tag_ids if t not in found])

        return tags

    async def set_line_item_tags(self, line_item_id: UUID, tags: List[Tag], db: AsyncSession) -> None:
        """Replace the tag set of a line item"""
        await db.execute(delete(line_item_tags).where(line_item_tags.c.line_item_id == line_item_id))
        if tags:
            await db.execute(
                insert(line_item_tags),
                [{"line_item_id": line_item_id, "tag_id": tag.id} for tag in tags],
            )

    async def set_ledger_entry_tags(self, ledger_entry_id: UUID, tags: List[Tag], db: AsyncSession) -> None:
        """Replace the tag set of a ledger entry"""
        await db.execute(delete(ledger_entry_tags).where(ledger_entry_tags.c.ledger_entry_id == ledger_entry_id))
        if tags:
            await db.execute(
                insert(ledger_entry_tags),
                [{"ledger_entry_id": ledger_entry_id, "tag_id": tag.id} for tag in tags],
            )

    async def get_line_item_tag_ids(self, line_item_id: UUID, db: AsyncSession) -> List[UUID]:
        result = await db.execute(
            select(line_item_tags.c.tag_id).where(line_item_tags.c.line_item_id == line_item_id)
        )
        return list(result.scalars().all())

    async def clear_line_item_tags(self, line_item_ids: List[UUID], db: AsyncSession) -> None:
        if line_item_ids:
            await db.execute(delete(line_item_tags).where(line_item_tags.c.line_item_id.in_(line_item_ids)))

    async def clear_ledger_entry_tags(self, ledger_entry_ids: List[UUID], db: AsyncSession) -> None:
        if ledger_entry_ids:
            await db.execute(delete(ledger_entry_tags).where(ledger_entry_tags.c.ledger_entry_id.in_(ledger_entry_ids)))


# Singleton instance
tag_service = TagService()
