from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional

from ...core.database import get_db
from ...core.security import UserRole
from ...api.deps import get_current_user, get_expected_version, require_role
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import AppointmentCreate
from ...models.user import User

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.get("")
async def list_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the appointments visible to the caller."""
    appointments, message = AppointmentService(db).list_appointments(current_user)

    body = {"success": True, "count": len(appointments), "data": appointments}
    if message:
        body["message"] = message
    return body

@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    appointment = AppointmentService(db).get_appointment(current_user, appointment_id)
    return {"success": True, "data": appointment}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    current_user: User = Depends(require_role([UserRole.PATIENT])),
    db: Session = Depends(get_db)
):
    """Book an appointment for the calling patient."""
    appointment = AppointmentService(db).create_appointment(current_user, appointment_data)
    return {"success": True, "data": appointment}

@router.put("/{appointment_id}")
async def update_appointment(
    appointment_id: int,
    appointment_data: Dict[str, Any] = Body(...),
    expected_version: Optional[int] = Depends(get_expected_version),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update an appointment. Doctors may only change status and notes."""
    appointment = AppointmentService(db).update_appointment(
        current_user, appointment_id, appointment_data, expected_version
    )
    return {"success": True, "data": appointment}

@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: int,
    expected_version: Optional[int] = Depends(get_expected_version),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    AppointmentService(db).delete_appointment(current_user, appointment_id, expected_version)
    return {"success": True, "data": {}}
