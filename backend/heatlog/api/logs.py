from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.base import get_db
from ..schemas import AnnotationOut, LogOut, LogPayload, ReconcileResult
from ..services.annotations import list_annotations
from ..services.log_reconciler import LogReconciler
from .deps import get_log_reconciler

router = APIRouter(tags=["logs"])


@router.get("/heats/{heat_ref}/logs", response_model=list[LogOut])
async def get_logs(
    heat_ref: str,
    include_annotations: bool = Query(True),
    reconciler: LogReconciler = Depends(get_log_reconciler),
):
    return await reconciler.list_logs(heat_ref, include_annotations=include_annotations)


@router.post("/heats/{heat_ref}/logs", response_model=ReconcileResult)
async def submit_log(
    heat_ref: str,
    payload: LogPayload,
    reconciler: LogReconciler = Depends(get_log_reconciler),
):
    return await reconciler.submit_log(heat_ref, payload)


@router.put("/heats/{heat_ref}/logs/{log_id}", response_model=ReconcileResult)
async def save_log(
    heat_ref: str,
    log_id: str,
    payload: LogPayload,
    reconciler: LogReconciler = Depends(get_log_reconciler),
):
    return await reconciler.reconcile_log(heat_ref, log_id, payload)


@router.get("/logs/{log_id}/annotations", response_model=list[AnnotationOut])
async def get_log_annotations(log_id: str, session: AsyncSession = Depends(get_db)):
    return await list_annotations(session, log_id)
