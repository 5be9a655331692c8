from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import MediaItem, MediaType

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(slots=True)
class MediaPage:
    items: Sequence[MediaItem]
    total: int
    page: int
    page_size: int


def normalise_paging(page: int | None, page_size: int | None) -> tuple[int, int]:
    """Clamp paging input: page below 1 becomes 1, page_size outside 1-100 becomes the default."""
    page = page if page and page >= 1 else 1
    if not page_size or page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = DEFAULT_PAGE_SIZE
    return page, page_size


class MediaRecordStore:
    """Catalog access for ``media_items``. Callers own the transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, item: MediaItem) -> MediaItem:
        self.session.add(item)
        await self.session.commit()
        await self.session.refresh(item)
        return item

    async def get_by_id(self, household_id: str, media_id: str) -> MediaItem | None:
        stmt = select(MediaItem).where(MediaItem.id == media_id, MediaItem.household_id == household_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_by_path(self, household_id: str, path: str) -> MediaItem | None:
        stmt = select(MediaItem).where(MediaItem.household_id == household_id, MediaItem.path == path)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def list(
        self,
        household_id: str,
        *,
        page: int | None = 1,
        page_size: int | None = DEFAULT_PAGE_SIZE,
        media_type: MediaType | None = None,
    ) -> MediaPage:
        page, page_size = normalise_paging(page, page_size)
        filters = [MediaItem.household_id == household_id]
        if media_type is not None:
            filters.append(MediaItem.type == media_type)

        total = (await self.session.execute(select(func.count()).select_from(MediaItem).where(*filters))).scalar_one()
        stmt = (
            select(MediaItem)
            .where(*filters)
            .order_by(func.coalesce(MediaItem.taken_at, MediaItem.created_at).desc(), MediaItem.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        items = (await self.session.execute(stmt)).scalars().all()
        return MediaPage(items=items, total=int(total), page=page, page_size=page_size)

    async def delete(self, household_id: str, media_id: str) -> bool:
        result = await self.session.execute(
            delete(MediaItem).where(MediaItem.id == media_id, MediaItem.household_id == household_id)
        )
        await self.session.commit()
        return bool(result.rowcount)

    async def set_web_path(self, media_id: str, web_path: str) -> None:
        result = await self.session.execute(
            update(MediaItem).where(MediaItem.id == media_id).values(web_path=web_path)
        )
        await self.session.commit()
        if not result.rowcount:
            raise LookupError(f"media item {media_id} not found")

    async def list_photos_missing_web(self, *, limit: int | None = None) -> Sequence[MediaItem]:
        stmt = (
            select(MediaItem)
            .where(MediaItem.type == MediaType.photo, MediaItem.web_path.is_(None))
            .order_by(MediaItem.created_at)
        )
        if limit:
            stmt = stmt.limit(limit)
        return (await self.session.execute(stmt)).scalars().all()


__all__ = ["MediaRecordStore", "MediaPage", "normalise_paging", "DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE"]
