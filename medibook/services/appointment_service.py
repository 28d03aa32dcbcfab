from typing import Any, Dict, List, Optional, Tuple
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.errors import (
    BadRequest, Conflict, Forbidden, InvalidFieldSet, InvalidTransition, NotFound,
    SlotConflict, format_validation_errors
)
from ..core.security import UserRole
from ..models.appointment import (
    Appointment, AppointmentStatus, STATUS_TRANSITIONS, TERMINAL_STATUSES
)
from ..models.doctor import Doctor
from ..models.user import User
from ..repositories.appointment_repository import AppointmentRepository
from ..schemas.appointment import AppointmentCreate, AppointmentUpdate, AppointmentView

logger = logging.getLogger(__name__)

NO_DOCTOR_PROFILE = "No doctor profile found. Please create your doctor profile first."

# Request field -> model attribute
UPDATABLE_FIELDS = {
    "doctor": "doctor_id",
    "date": "date",
    "time": "time",
    "reason": "reason",
    "notes": "notes",
    "status": "status",
}
DOCTOR_UPDATABLE_FIELDS = ("status", "notes")


class AppointmentService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository(db)

    def list_appointments(self, subject: User) -> Tuple[List[AppointmentView], Optional[str]]:
        """Return the appointments visible to ``subject`` and an optional message."""
        if subject.role == UserRole.PATIENT:
            appointments = self.repo.list_for_patient(subject.id)
        elif subject.role == UserRole.DOCTOR:
            profile = self._doctor_profile_for(subject)
            if profile is None:
                return [], NO_DOCTOR_PROFILE
            appointments = self.repo.list_for_doctor(profile.id)
        else:
            appointments = self.repo.list_all()

        return self.repo.populate(appointments), None

    def get_appointment(self, subject: User, appointment_id: int) -> AppointmentView:
        appointment = self._get_or_404(appointment_id)
        view = self.repo.populate_one(appointment)

        is_patient = appointment.patient_id == subject.id
        is_assigned_doctor = (
            view.doctor is not None
            and view.doctor.user is not None
            and view.doctor.user.id == subject.id
        )
        if not (is_patient or is_assigned_doctor or subject.role == UserRole.ADMIN):
            raise Forbidden("Not authorized to access this appointment")

        return view

    def create_appointment(self, subject: User, data: AppointmentCreate) -> AppointmentView:
        if subject.role != UserRole.PATIENT:
            raise Forbidden("Only patients can book appointments")

        if self.db.get(Doctor, data.doctor) is None:
            raise NotFound(f"Doctor not found with id of {data.doctor}")

        if self.repo.find_active_slot(data.doctor, data.date, data.time) is not None:
            raise SlotConflict()

        appointment = self.repo.add(Appointment(
            patient_id=subject.id,
            doctor_id=data.doctor,
            date=data.date,
            time=data.time,
            reason=data.reason,
            notes=data.notes,
            status=AppointmentStatus.PENDING,
        ))
        logger.info(
            f"Appointment {appointment.id} booked by user {subject.id} "
            f"with doctor {appointment.doctor_id} on {appointment.date} {appointment.time}"
        )
        return self.repo.populate_one(appointment)

    def update_appointment(
        self,
        subject: User,
        appointment_id: int,
        body: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> AppointmentView:
        """Apply a partial update given as the raw request body.

        Who may touch which keys is decided on the raw key set, so a doctor
        naming a forbidden field is refused even when its value is invalid.
        Values are validated afterwards.
        """
        appointment = self._get_or_404(appointment_id)
        requested = set(body)

        if appointment.patient_id != subject.id and subject.role != UserRole.ADMIN:
            if subject.role != UserRole.DOCTOR:
                raise Forbidden("Not authorized to update this appointment")

            profile = self._doctor_profile_for(subject)
            if profile is None:
                raise NotFound(NO_DOCTOR_PROFILE)
            if profile.id != appointment.doctor_id:
                raise Forbidden("Not authorized to update this appointment")
            if not requested <= set(DOCTOR_UPDATABLE_FIELDS):
                raise InvalidFieldSet(
                    f"Doctors can only update: {', '.join(DOCTOR_UPDATABLE_FIELDS)}"
                )

        unknown = requested - set(UPDATABLE_FIELDS)
        if unknown:
            raise InvalidFieldSet(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        try:
            changes = AppointmentUpdate.model_validate(body).changes()
        except ValidationError as exc:
            raise BadRequest(format_validation_errors(exc.errors()))

        self._check_version(appointment, expected_version)

        new_status = changes.get("status", appointment.status)
        self._check_transition(appointment.status, new_status)

        doctor_id = changes.get("doctor", appointment.doctor_id)
        if doctor_id != appointment.doctor_id and self.db.get(Doctor, doctor_id) is None:
            raise NotFound(f"Doctor not found with id of {doctor_id}")

        slot_moved = any(
            field in changes and changes[field] != getattr(appointment, UPDATABLE_FIELDS[field])
            for field in ("doctor", "date", "time")
        )
        if slot_moved and new_status != AppointmentStatus.CANCELLED:
            clash = self.repo.find_active_slot(
                doctor_id,
                changes.get("date", appointment.date),
                changes.get("time", appointment.time),
                exclude_id=appointment.id,
            )
            if clash is not None:
                raise SlotConflict()

        for field, value in changes.items():
            setattr(appointment, UPDATABLE_FIELDS[field], value)

        try:
            self.repo.save(appointment)
        except StaleDataError:
            self.db.rollback()
            raise Conflict()

        logger.info(
            f"Appointment {appointment.id} updated by user {subject.id}: "
            f"{', '.join(sorted(changes)) or 'no changes'}"
        )
        return self.repo.populate_one(appointment)

    def delete_appointment(
        self,
        subject: User,
        appointment_id: int,
        expected_version: Optional[int] = None,
    ) -> None:
        appointment = self._get_or_404(appointment_id)

        if appointment.patient_id != subject.id and subject.role != UserRole.ADMIN:
            raise Forbidden("Not authorized to delete this appointment")

        self._check_version(appointment, expected_version)

        try:
            self.repo.delete(appointment)
        except StaleDataError:
            self.db.rollback()
            raise Conflict()

        logger.info(f"Appointment {appointment_id} deleted by user {subject.id}")

    def _get_or_404(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get(appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment not found with id of {appointment_id}")
        return appointment

    def _doctor_profile_for(self, user: User) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.user_id == user.id).first()

    @staticmethod
    def _check_version(appointment: Appointment, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != appointment.version:
            raise Conflict(
                f"Appointment {appointment.id} is at version {appointment.version}, "
                f"not {expected_version}"
            )

    @staticmethod
    def _check_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
        if target == current:
            return
        if current in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Cannot change status of a {current.value} appointment"
            )
        if settings.STRICT_STATUS_TRANSITIONS and target not in STATUS_TRANSITIONS[current]:
            raise InvalidTransition(
                f"Cannot change status from {current.value} to {target.value}"
            )
