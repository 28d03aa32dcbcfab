from datetime import date as Date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.appointment import AppointmentStatus


class AppointmentCreate(BaseModel):
    # The patient is always the caller, so a supplied "patient" is ignored
    model_config = ConfigDict(extra="ignore")

    doctor: int
    date: Date
    time: str = Field(..., min_length=1, max_length=20)
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    """Partial update, validated after the caller's field set has been checked."""

    model_config = ConfigDict(extra="forbid")

    doctor: Optional[int] = None
    date: Optional[Date] = None
    time: Optional[str] = Field(None, min_length=1, max_length=20)
    reason: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None
    status: Optional[AppointmentStatus] = None

    @field_validator("doctor", "date", "time", "reason", "status", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

    def changes(self) -> dict:
        """Fields explicitly present in the request body."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class DoctorUserSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None


class DoctorSummary(BaseModel):
    id: int
    specialization: str
    fees: float
    user: Optional[DoctorUserSummary] = None


class PatientSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None


class AppointmentView(BaseModel):
    """Appointment with its doctor and patient references resolved."""

    id: int
    doctor_id: int
    patient_id: int
    doctor: Optional[DoctorSummary] = None
    patient: Optional[PatientSummary] = None
    date: Date
    time: str
    reason: str
    notes: Optional[str] = None
    status: AppointmentStatus
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
