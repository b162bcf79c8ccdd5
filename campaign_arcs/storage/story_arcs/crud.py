from __future__ import annotations

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_arcs.domain.timestamps import utc_now
from campaign_arcs.storage.story_arcs.base import StoryArcRecord
from campaign_arcs.storage.types import InsertResult, StoryArcRow


def _to_row(record: StoryArcRecord) -> StoryArcRow:
    return StoryArcRow(
        id=int(record.id),
        campaign_id=str(record.campaign_id),
        theme=str(record.theme),
        payload_json=str(record.payload_json),
        version=int(record.version),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


async def get_story_arc(session: AsyncSession, campaign_id: str) -> StoryArcRow | None:
    result = await session.execute(select(StoryArcRecord).where(StoryArcRecord.campaign_id == campaign_id))
    record = result.scalar_one_or_none()
    if record is None:
        return None
    return _to_row(record)


async def insert_story_arc(session: AsyncSession, campaign_id: str, theme: str, payload_json: str) -> InsertResult:
    now = utc_now()
    stmt = (
        sqlite_insert(StoryArcRecord)
        .values(
            campaign_id=campaign_id,
            theme=theme,
            payload_json=payload_json,
            version=1,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=[StoryArcRecord.campaign_id])
    )
    result = await session.execute(stmt)
    inserted = result.rowcount == 1
    if inserted and result.lastrowid is not None:
        arc_id = result.lastrowid
    else:
        id_result = await session.execute(select(StoryArcRecord.id).where(StoryArcRecord.campaign_id == campaign_id))
        arc_id = id_result.scalar_one()
    return InsertResult(id=int(arc_id), inserted=inserted)


async def update_story_arc(
    session: AsyncSession,
    campaign_id: str,
    theme: str,
    payload_json: str,
    expected_version: int,
) -> bool:
    """Compare-and-swap on ``version``; False means another writer got there first."""
    stmt = (
        update(StoryArcRecord)
        .where(StoryArcRecord.campaign_id == campaign_id, StoryArcRecord.version == expected_version)
        .values(
            theme=theme,
            payload_json=payload_json,
            version=StoryArcRecord.version + 1,
            updated_at=utc_now(),
        )
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def delete_story_arc(session: AsyncSession, campaign_id: str) -> bool:
    result = await session.execute(delete(StoryArcRecord).where(StoryArcRecord.campaign_id == campaign_id))
    return result.rowcount > 0


async def list_campaign_ids(session: AsyncSession) -> list[str]:
    result = await session.execute(select(StoryArcRecord.campaign_id).order_by(StoryArcRecord.campaign_id))
    return [str(value) for value in result.scalars().all()]
