from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

HEAT_NUMBER_PATTERN = r"^A\d{7}$"


def _empty_if_none(value: Any) -> Any:
    return "" if value is None else value


# --- Heats ---

class HeatFields(BaseModel):
    customer: str = ""
    alloy: str = ""
    diameter: float | None = Field(default=None, description="Billet diameter")
    length: float | None = Field(default=None, description="Billet length")

    @field_validator("customer", "alloy", mode="before")
    @classmethod
    def default_strings(cls, value: Any) -> Any:
        return _empty_if_none(value)


class HeatCreate(HeatFields):
    heat_number: str = Field(..., description="'A' followed by 7 digits, e.g. A1234567")


class HeatOut(HeatFields):
    model_config = ConfigDict(from_attributes=True)

    id: int
    heat_number: str
    created_at: datetime


# --- Annotations ---

class AnnotationIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    position: float = Field(..., allow_inf_nan=False)
    type: str = Field(..., min_length=1, description="Finding category, e.g. 'crack'")
    note: str | None = None
    comment: str | None = None
    user_name: str | None = None
    user_role: str | None = None
    user_color: str | None = None
    inspector: str | None = None
    depth: float | None = Field(default=None, allow_inf_nan=False)
    content_hash: str | None = Field(default=None, validation_alias=AliasChoices("content_hash", "hash"))

    @model_validator(mode="before")
    @classmethod
    def flatten_user(cls, data: Any) -> Any:
        # Older clients send {"user": {"name", "role", "color"}}
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            user = data["user"]
            data = {k: v for k, v in data.items() if k != "user"}
            data.setdefault("user_name", user.get("name"))
            data.setdefault("user_role", user.get("role"))
            data.setdefault("user_color", user.get("color"))
        return data


class AnnotationCreate(AnnotationIn):
    log_id: str = Field(..., min_length=1, validation_alias=AliasChoices("log_id", "logId"))


class AnnotationOut(AnnotationIn):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    log_id: str


# --- Logs ---

class LogFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    log_number: int | None = Field(default=None, validation_alias=AliasChoices("log_number", "logNumber"))
    name: str = ""
    finished_diameter: float | None = Field(
        default=None, validation_alias=AliasChoices("finished_diameter", "finishedDiameter")
    )
    finished_length: float | None = Field(
        default=None, validation_alias=AliasChoices("finished_length", "finishedLength")
    )
    unit: str = ""
    transducer: str = ""
    calibration: str = ""
    gain: float | None = None
    prf: float | None = Field(default=None, description="Pulse repetition frequency")

    @field_validator("name", "unit", "transducer", "calibration", mode="before")
    @classmethod
    def default_strings(cls, value: Any) -> Any:
        return _empty_if_none(value)


class LogPayload(LogFields):
    """Full log submission. Annotations stay raw here and are checked by the reconciler."""

    annotations: list[Any] = Field(default_factory=list)

    @field_validator("annotations", mode="before")
    @classmethod
    def none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def scalar_fields(self) -> dict[str, Any]:
        return self.model_dump(exclude={"annotations"})


class LogOut(LogFields):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    heat_id: int
    updated_at: datetime
    annotations: list[AnnotationOut] = Field(default_factory=list)


class ReconcileResult(BaseModel):
    status: str = "Saved"
    log: LogOut
    skipped_annotations: int = 0


class HeatDetail(HeatOut):
    logs: list[LogOut] = Field(default_factory=list)
