from __future__ import annotations

import orjson
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_arcs.domain.models import StoryArc
from campaign_arcs.errors import StaleStoryArcError
from campaign_arcs.storage.story_arcs import crud as story_arcs_crud


def _dump_arc(arc: StoryArc) -> str:
    payload = arc.model_dump(mode="json", exclude={"version"})
    return orjson.dumps(payload).decode("utf-8")


def _load_arc(payload_json: str, version: int) -> StoryArc:
    payload = orjson.loads(payload_json)
    payload["version"] = version
    return StoryArc.model_validate(payload)


class StoryArcRepository:
    """Persistence for one arc per campaign with optimistic versioning.

    ``arc.version`` is 0 until the first save and then mirrors the stored row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_campaign(self, campaign_id: str) -> StoryArc | None:
        row = await story_arcs_crud.get_story_arc(self.session, campaign_id)
        if row is None:
            return None
        return _load_arc(row.payload_json, row.version)

    async def save(self, arc: StoryArc) -> StoryArc:
        payload_json = _dump_arc(arc)
        log = logger.bind(campaign_id=arc.campaign_id)

        if arc.version == 0:
            result = await story_arcs_crud.insert_story_arc(self.session, arc.campaign_id, arc.theme, payload_json)
            if not result.inserted:
                raise StaleStoryArcError(arc.campaign_id, expected_version=0)
            arc.version = 1
            log.debug("Inserted story arc id={}", result.id)
            return arc

        updated = await story_arcs_crud.update_story_arc(
            self.session,
            arc.campaign_id,
            arc.theme,
            payload_json,
            expected_version=arc.version,
        )
        if not updated:
            raise StaleStoryArcError(arc.campaign_id, expected_version=arc.version)
        arc.version += 1
        log.debug("Saved story arc version={}", arc.version)
        return arc

    async def delete_by_campaign(self, campaign_id: str) -> bool:
        return await story_arcs_crud.delete_story_arc(self.session, campaign_id)

    async def list_campaign_ids(self) -> list[str]:
        return await story_arcs_crud.list_campaign_ids(self.session)
