from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..db.base import get_db
from ..services.heat_store import HeatStore
from ..services.log_reconciler import LogReconciler


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_heat_store(session: AsyncSession = Depends(get_db)) -> HeatStore:
    return HeatStore(session)


def get_log_reconciler(
    session: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
) -> LogReconciler:
    return LogReconciler(session, config)
