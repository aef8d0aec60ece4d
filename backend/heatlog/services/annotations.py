from __future__ import annotations

import logging
from collections import defaultdict
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError, PersistenceError
from ..db.models import Annotation, Log
from ..schemas import AnnotationCreate, AnnotationIn, AnnotationOut, LogOut

logger = logging.getLogger(__name__)


def annotation_row(log_id: str, item: AnnotationIn) -> Annotation:
    return Annotation(log_id=log_id, **item.model_dump(exclude={"log_id"}))


async def project_annotations(session: AsyncSession, logs: Sequence[Log]) -> list[LogOut]:
    """
    Attach each log's annotations, ordered by position, in a single query.

    Logs keep the order they were given in.
    """
    if not logs:
        return []

    result = await session.execute(
        select(Annotation)
        .where(Annotation.log_id.in_([log.id for log in logs]))
        .order_by(Annotation.position, Annotation.id)
    )
    by_log: dict[str, list[AnnotationOut]] = defaultdict(list)
    for row in result.scalars():
        by_log[row.log_id].append(AnnotationOut.model_validate(row))

    return [
        LogOut.model_validate(log).model_copy(update={"annotations": by_log.get(log.id, [])})
        for log in logs
    ]


async def _require_log(session: AsyncSession, log_id: str) -> Log:
    log = await session.get(Log, log_id)
    if log is None:
        raise NotFoundError("Log not found")
    return log


async def list_annotations(session: AsyncSession, log_id: str) -> list[AnnotationOut]:
    await _require_log(session, log_id)
    result = await session.execute(
        select(Annotation).where(Annotation.log_id == log_id).order_by(Annotation.position, Annotation.id)
    )
    return [AnnotationOut.model_validate(row) for row in result.scalars()]


async def create_annotation(session: AsyncSession, data: AnnotationCreate) -> AnnotationOut:
    await _require_log(session, data.log_id)
    row = annotation_row(data.log_id, data)
    session.add(row)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error creating annotation on log {data.log_id}: {e}")
        raise PersistenceError("Failed to create annotation") from e
    return AnnotationOut.model_validate(row)


async def delete_annotation(session: AsyncSession, annotation_id: int) -> None:
    try:
        result = await session.execute(delete(Annotation).where(Annotation.id == annotation_id))
        if result.rowcount == 0:
            await session.rollback()
            raise NotFoundError("Annotation not found")
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error deleting annotation {annotation_id}: {e}")
        raise PersistenceError("Failed to delete annotation") from e