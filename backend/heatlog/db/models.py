from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Heat(Base):
    __tablename__ = "heats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    heat_number: Mapped[str] = mapped_column(String(8), unique=True, index=True)
    customer: Mapped[str] = mapped_column(String, default="")
    alloy: Mapped[str] = mapped_column(String, default="")
    diameter: Mapped[float | None] = mapped_column(Float, nullable=True)
    length: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Log(Base):
    __tablename__ = "logs"

    # Caller-supplied, e.g. "A1234567-3"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    heat_id: Mapped[int] = mapped_column(ForeignKey("heats.id", ondelete="CASCADE"), index=True)
    log_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    name: Mapped[str] = mapped_column(String, default="")
    finished_diameter: Mapped[float | None] = mapped_column(Float, nullable=True)
    finished_length: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Instrument settings
    unit: Mapped[str] = mapped_column(String, default="")
    transducer: Mapped[str] = mapped_column(String, default="")
    calibration: Mapped[str] = mapped_column(String, default="")
    gain: Mapped[float | None] = mapped_column(Float, nullable=True)
    prf: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Annotation(Base):
    __tablename__ = "annotations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    log_id: Mapped[str] = mapped_column(ForeignKey("logs.id", ondelete="CASCADE"), index=True)
    position: Mapped[float] = mapped_column(Float)
    type: Mapped[str] = mapped_column(String)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Provenance
    user_name: Mapped[str | None] = mapped_column(String, nullable=True)
    user_role: Mapped[str | None] = mapped_column(String, nullable=True)
    user_color: Mapped[str | None] = mapped_column(String, nullable=True)
    inspector: Mapped[str | None] = mapped_column(String, nullable=True)
    depth: Mapped[float | None] = mapped_column(Float, nullable=True)
    content_hash: Mapped[str | None] = mapped_column(String, nullable=True)