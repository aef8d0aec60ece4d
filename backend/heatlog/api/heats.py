from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.base import get_db
from ..schemas import HeatCreate, HeatDetail, HeatFields, HeatOut
from ..services.heat_store import HeatStore
from ..services.heat_view import get_heat_aggregate
from .deps import get_heat_store

router = APIRouter(prefix="/heats", tags=["heats"])


@router.get("", response_model=list[HeatOut])
async def list_heats(
    skip: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1),
    store: HeatStore = Depends(get_heat_store),
):
    return await store.list_heats(skip=skip, limit=limit)


@router.post("", response_model=HeatOut, status_code=status.HTTP_201_CREATED)
async def create_heat(data: HeatCreate, store: HeatStore = Depends(get_heat_store)):
    return await store.create_heat(data)


@router.put("/{heat_number}", response_model=HeatOut)
async def update_heat(heat_number: str, data: HeatFields, store: HeatStore = Depends(get_heat_store)):
    return await store.update_heat(heat_number, data)


@router.get("/{heat_number}", response_model=HeatDetail)
async def get_heat(heat_number: str, session: AsyncSession = Depends(get_db)):
    return await get_heat_aggregate(session, heat_number)
