from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
import logging

from ..core.errors import BadRequest, Forbidden, NotFound
from ..core.security import UserRole
from ..models.doctor import Doctor, DoctorReview
from ..models.user import User
from ..schemas.appointment import DoctorUserSummary
from ..schemas.doctor import (
    DoctorCreate, DoctorResponse, DoctorUpdate, ReviewCreate, ReviewResponse
)

logger = logging.getLogger(__name__)


class DoctorService:
    def __init__(self, db: Session):
        self.db = db

    def list_doctors(self, specialization: Optional[str] = None) -> List[DoctorResponse]:
        query = self.db.query(Doctor).options(
            selectinload(Doctor.user), selectinload(Doctor.reviews)
        )
        if specialization:
            term = (
                specialization.replace("\\", "\\\\")
                .replace("%", "\\%")
                .replace("_", "\\_")
            )
            query = query.filter(Doctor.specialization.ilike(f"%{term}%", escape="\\"))
        return [self._to_response(doctor) for doctor in query.order_by(Doctor.id).all()]

    def get_doctor(self, doctor_id: int) -> DoctorResponse:
        return self._to_response(self._get_or_404(doctor_id))

    def create_doctor(self, subject: User, data: DoctorCreate) -> DoctorResponse:
        """Create the doctor profile owned by ``subject``."""
        if subject.role != UserRole.DOCTOR:
            raise Forbidden("Only doctors can create a doctor profile")

        existing = self.db.query(Doctor).filter(Doctor.user_id == subject.id).first()
        if existing:
            raise BadRequest("Doctor profile already exists")

        doctor = Doctor(user_id=subject.id, **data.model_dump())
        self.db.add(doctor)
        self.db.commit()
        self.db.refresh(doctor)

        logger.info(f"Doctor profile {doctor.id} created for user {subject.id}")
        return self._to_response(doctor)

    def update_doctor(self, subject: User, doctor_id: int, data: DoctorUpdate) -> DoctorResponse:
        doctor = self._get_or_404(doctor_id)

        if doctor.user_id != subject.id and subject.role != UserRole.ADMIN:
            raise Forbidden("Not authorized to update this doctor profile")

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field in ("specialization", "fees", "timings"):
                raise BadRequest(f"{field} may not be null")
            setattr(doctor, field, value)

        self.db.commit()
        self.db.refresh(doctor)
        return self._to_response(doctor)

    def add_review(self, subject: User, doctor_id: int, data: ReviewCreate) -> ReviewResponse:
        doctor = self._get_or_404(doctor_id)

        if subject.role != UserRole.PATIENT:
            raise Forbidden("Only patients can review doctors")

        already_reviewed = self.db.query(DoctorReview).filter(
            DoctorReview.doctor_id == doctor.id,
            DoctorReview.user_id == subject.id
        ).first()
        if already_reviewed:
            raise BadRequest("You have already reviewed this doctor")

        review = DoctorReview(
            doctor_id=doctor.id,
            user_id=subject.id,
            rating=data.rating,
            comment=data.comment,
        )
        self.db.add(review)
        self.db.commit()
        self.db.refresh(review)
        return ReviewResponse.model_validate(review)

    def _get_or_404(self, doctor_id: int) -> Doctor:
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise NotFound(f"Doctor not found with id of {doctor_id}")
        return doctor

    @staticmethod
    def _to_response(doctor: Doctor) -> DoctorResponse:
        ratings = [review.rating for review in doctor.reviews]
        owner = doctor.user
        return DoctorResponse(
            id=doctor.id,
            specialization=doctor.specialization,
            fees=doctor.fees,
            timings=list(doctor.timings or []),
            experience=doctor.experience,
            bio=doctor.bio,
            user=DoctorUserSummary(
                id=owner.id, name=owner.name, email=owner.email, phone=owner.phone
            ) if owner is not None else None,
            rating=round(sum(ratings) / len(ratings), 2) if ratings else None,
            review_count=len(ratings),
        )
