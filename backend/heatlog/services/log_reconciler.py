from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import case, delete, literal, or_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, settings as default_settings
from ..core.errors import ConflictError, HeatLogError, NotFoundError, PersistenceError, ValidationError
from ..db.models import Annotation, Heat, Log
from ..schemas import AnnotationIn, LogOut, LogPayload, ReconcileResult
from .annotations import annotation_row, project_annotations
from .heat_store import HeatStore

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def derive_log_id(heat: Heat, log_number: int) -> str:
    return f"{heat.heat_number}-{log_number}"


async def select_logs(session: AsyncSession, heat_id: int) -> list[Log]:
    result = await session.execute(
        select(Log).where(Log.heat_id == heat_id).order_by(Log.log_number.asc().nulls_last(), Log.id)
    )
    return list(result.scalars().all())


def _describe(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "annotation"
    return f"{loc}: {err.get('msg')}"


class LogReconciler:
    """
    Upserts a log and replaces its whole annotation set.

    Everything from the log upsert to the last annotation insert runs in one
    transaction, so a failure leaves the previously committed annotations in
    place. With ``annotation_policy="lenient"`` malformed annotations, and
    annotation inserts the store rejects, are logged and skipped instead.
    """

    def __init__(self, session: AsyncSession, config: Settings | None = None):
        self.session = session
        self.config = config or default_settings
        self.heats = HeatStore(session)

    @property
    def lenient(self) -> bool:
        return self.config.annotation_policy == "lenient"

    def _dialect(self) -> str:
        return self.session.get_bind().dialect.name

    async def reconcile_log(self, heat_ref: str | int, log_id: str, payload: LogPayload) -> ReconcileResult:
        if not log_id or not log_id.strip():
            raise ValidationError("Log id is required")

        heat = await self.heats.resolve(heat_ref)
        annotations, skipped = self._check_annotations(log_id, payload.annotations)

        logger.info(
            "Reconciling log %s on heat %s",
            log_id,
            heat.heat_number,
            extra={"extra_data": {"annotations": len(payload.annotations), "policy": self.config.annotation_policy}},
        )
        try:
            await self._lock(log_id)
            await self._upsert_log(heat, log_id, payload.scalar_fields())
            await self.session.execute(delete(Annotation).where(Annotation.log_id == log_id))
            skipped += await self._insert_annotations(log_id, annotations)
            await self.session.commit()
        except HeatLogError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error saving log {log_id} and annotations: {e}")
            raise PersistenceError("Failed to save log and annotations") from e

        log = await self._load_log(log_id)
        [out] = await project_annotations(self.session, [log])
        logger.info(
            "Saved log %s: %d annotation(s), %d skipped",
            log_id,
            len(out.annotations),
            skipped,
        )
        return ReconcileResult(log=out, skipped_annotations=skipped)

    async def submit_log(self, heat_ref: str | int, payload: LogPayload) -> ReconcileResult:
        """Reconcile under the id derived from the heat number and log number."""
        if payload.log_number is None:
            raise ValidationError("log_number: Field required")
        heat = await self.heats.resolve(heat_ref)
        return await self.reconcile_log(heat.heat_number, derive_log_id(heat, payload.log_number), payload)

    async def list_logs(self, heat_ref: str | int, include_annotations: bool = True) -> list[LogOut]:
        heat = await self.heats.resolve(heat_ref)
        logs = await select_logs(self.session, heat.id)
        if include_annotations:
            return await project_annotations(self.session, logs)
        return [LogOut.model_validate(log) for log in logs]

    def _check_annotations(self, log_id: str, raw_items: list[Any]) -> tuple[list[AnnotationIn], int]:
        # Runs before any statement so a strict rejection never touches stored rows
        accepted: list[AnnotationIn] = []
        skipped = 0
        for index, raw in enumerate(raw_items):
            try:
                accepted.append(AnnotationIn.model_validate(raw))
            except PydanticValidationError as e:
                if not self.lenient:
                    raise ValidationError(f"Invalid annotation at index {index}: {_describe(e)}") from e
                skipped += 1
                logger.warning(
                    "Skipping invalid annotation %d on log %s: %s", index, log_id, _describe(e)
                )
        return accepted, skipped

    async def _lock(self, log_id: str) -> None:
        # Serializes concurrent reconciliations of the same log until commit
        if self.config.reconcile_advisory_lock and self._dialect() == "postgresql":
            await self.session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": log_id})

    async def _upsert_log(self, heat: Heat, log_id: str, fields: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc)
        insert = _UPSERT_DIALECTS.get(self._dialect())

        if insert is not None:
            stmt = insert(Log).values(id=log_id, heat_id=heat.id, updated_at=now, **fields)
            # updated_at only moves when a scalar field actually differs
            changed = or_(*(getattr(Log, key).is_distinct_from(stmt.excluded[key]) for key in fields))
            stmt = stmt.on_conflict_do_update(
                index_elements=["id"],
                set_={**fields, "updated_at": case((changed, literal(now, Log.updated_at.type)), else_=Log.updated_at)},
                where=Log.heat_id == heat.id,
            ).returning(Log.id)
            written = (await self.session.execute(stmt)).scalar_one_or_none()
            if written is None:
                raise ConflictError(f"Log {log_id} belongs to a different heat")
            return

        existing = (
            await self.session.execute(select(Log).where(Log.id == log_id).with_for_update())
        ).scalar_one_or_none()
        if existing is None:
            self.session.add(Log(id=log_id, heat_id=heat.id, updated_at=now, **fields))
        elif existing.heat_id != heat.id:
            raise ConflictError(f"Log {log_id} belongs to a different heat")
        elif any(getattr(existing, key) != value for key, value in fields.items()):
            for key, value in fields.items():
                setattr(existing, key, value)
            existing.updated_at = now
        await self.session.flush()

    async def _insert_annotations(self, log_id: str, items: list[AnnotationIn]) -> int:
        if not self.lenient:
            self.session.add_all([annotation_row(log_id, item) for item in items])
            await self.session.flush()
            return 0

        skipped = 0
        for index, item in enumerate(items):
            try:
                async with self.session.begin_nested():
                    self.session.add(annotation_row(log_id, item))
            except SQLAlchemyError as e:
                skipped += 1
                logger.warning(f"Skipping annotation {index} on log {log_id}: {e}")
        return skipped

    async def _load_log(self, log_id: str) -> Log:
        result = await self.session.execute(
            select(Log).where(Log.id == log_id).execution_options(populate_existing=True)
        )
        log = result.scalar_one_or_none()
        if log is None:
            raise NotFoundError("Log not found")
        return log
