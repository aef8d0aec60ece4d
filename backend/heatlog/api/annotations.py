from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.base import get_db
from ..schemas import AnnotationCreate, AnnotationOut
from ..services import annotations as annotation_service

router = APIRouter(prefix="/annotations", tags=["annotations"])


@router.post("", response_model=AnnotationOut, status_code=status.HTTP_201_CREATED)
async def create_annotation(data: AnnotationCreate, session: AsyncSession = Depends(get_db)):
    return await annotation_service.create_annotation(session, data)


@router.delete("/{annotation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_annotation(annotation_id: int, session: AsyncSession = Depends(get_db)):
    await annotation_service.delete_annotation(session, annotation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
