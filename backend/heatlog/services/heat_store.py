from __future__ import annotations

import logging
import re

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from ..db.models import Heat
from ..schemas import HEAT_NUMBER_PATTERN, HeatCreate, HeatFields

logger = logging.getLogger(__name__)

_HEAT_NUMBER_RE = re.compile(HEAT_NUMBER_PATTERN, re.ASCII)


def is_heat_number(value: str | None) -> bool:
    return bool(value) and _HEAT_NUMBER_RE.fullmatch(value) is not None


def validate_heat_number(value: str | None) -> str:
    if not is_heat_number(value):
        raise ValidationError("Invalid heat number format. Must be 'A' followed by 7 digits.")
    return value


class HeatStore:
    """Create, update and look up heats by their heat number."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_heat(self, data: HeatCreate) -> Heat:
        validate_heat_number(data.heat_number)
        heat = Heat(
            heat_number=data.heat_number,
            customer=data.customer,
            alloy=data.alloy,
            diameter=data.diameter,
            length=data.length,
        )
        self.session.add(heat)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Heat {data.heat_number} already exists") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error creating heat {data.heat_number}: {e}")
            raise PersistenceError("Failed to create heat") from e

        logger.info("Created heat %s (id=%s)", heat.heat_number, heat.id)
        return heat

    async def update_heat(self, heat_number: str, data: HeatFields) -> Heat:
        validate_heat_number(heat_number)
        try:
            result = await self.session.execute(
                update(Heat)
                .where(Heat.heat_number == heat_number)
                .values(
                    customer=data.customer,
                    alloy=data.alloy,
                    diameter=data.diameter,
                    length=data.length,
                )
            )
            if result.rowcount == 0:
                await self.session.rollback()
                raise NotFoundError("Heat not found")
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error updating heat {heat_number}: {e}")
            raise PersistenceError("Failed to update heat") from e

        return await self.get_heat_by_number(heat_number)

    async def list_heats(self, skip: int = 0, limit: int | None = None) -> list[Heat]:
        stmt = select(Heat).order_by(Heat.id.desc()).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_heat_by_number(self, heat_number: str) -> Heat:
        result = await self.session.execute(
            select(Heat).where(Heat.heat_number == heat_number).execution_options(populate_existing=True)
        )
        heat = result.scalar_one_or_none()
        if heat is None:
            raise NotFoundError("Heat not found")
        return heat

    async def resolve(self, heat_ref: str | int) -> Heat:
        """
        Look a heat up by heat number ("A1234567") or by internal id ("42").
        """
        ref = str(heat_ref).strip()
        if is_heat_number(ref):
            return await self.get_heat_by_number(ref)
        if ref.isascii() and ref.isdigit():
            heat = await self.session.get(Heat, int(ref))
            if heat is not None:
                return heat
        raise NotFoundError("Heat not found")
