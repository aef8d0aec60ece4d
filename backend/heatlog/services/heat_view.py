from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas import HeatDetail
from .annotations import project_annotations
from .heat_store import HeatStore, validate_heat_number
from .log_reconciler import select_logs


async def get_heat_aggregate(session: AsyncSession, heat_number: str) -> HeatDetail:
    """
    Heat with its logs (by log number) and each log's annotations (by position).
    """
    validate_heat_number(heat_number)
    heat = await HeatStore(session).get_heat_by_number(heat_number)
    logs = await project_annotations(session, await select_logs(session, heat.id))
    return HeatDetail.model_validate(heat).model_copy(update={"logs": logs})
