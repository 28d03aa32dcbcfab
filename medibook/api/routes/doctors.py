from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.security import UserRole
from ...api.deps import require_role
from ...services.doctor_service import DoctorService
from ...schemas.doctor import DoctorCreate, DoctorUpdate, ReviewCreate
from ...models.user import User

router = APIRouter(prefix="/doctors", tags=["Doctors"])

# Public routes
@router.get("")
async def list_doctors(
    specialization: Optional[str] = None,
    db: Session = Depends(get_db)
):
    doctors = DoctorService(db).list_doctors(specialization)
    return {"success": True, "count": len(doctors), "data": doctors}

@router.get("/{doctor_id}")
async def get_doctor(
    doctor_id: int,
    db: Session = Depends(get_db)
):
    return {"success": True, "data": DoctorService(db).get_doctor(doctor_id)}

# Protected routes
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_doctor(
    doctor_data: DoctorCreate,
    current_user: User = Depends(require_role([UserRole.DOCTOR])),
    db: Session = Depends(get_db)
):
    """Create the caller's doctor profile."""
    return {"success": True, "data": DoctorService(db).create_doctor(current_user, doctor_data)}

@router.put("/{doctor_id}")
async def update_doctor(
    doctor_id: int,
    doctor_data: DoctorUpdate,
    current_user: User = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN])),
    db: Session = Depends(get_db)
):
    doctor = DoctorService(db).update_doctor(current_user, doctor_id, doctor_data)
    return {"success": True, "data": doctor}

@router.post("/{doctor_id}/reviews", status_code=status.HTTP_201_CREATED)
async def add_doctor_review(
    doctor_id: int,
    review_data: ReviewCreate,
    current_user: User = Depends(require_role([UserRole.PATIENT])),
    db: Session = Depends(get_db)
):
    review = DoctorService(db).add_review(current_user, doctor_id, review_data)
    return {"success": True, "data": review}
