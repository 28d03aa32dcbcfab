from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..models.appointment import Appointment, AppointmentStatus, slot_sort_key
from ..models.doctor import Doctor
from ..models.user import User
from ..schemas.appointment import (
    AppointmentView, DoctorSummary, DoctorUserSummary, PatientSummary
)


class AppointmentRepository:
    """Appointment persistence plus the read-time join into populated views."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, appointment_id: int) -> Optional[Appointment]:
        return self.db.get(Appointment, appointment_id)

    def find_active_slot(
        self,
        doctor_id: int,
        day: date,
        time: str,
        exclude_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        """Return a non-cancelled appointment holding the slot, if any."""
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date == day,
            Appointment.time == time,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.first()

    def list_for_patient(self, patient_id: int) -> List[Appointment]:
        return self._ordered(
            self.db.query(Appointment).filter(Appointment.patient_id == patient_id)
        )

    def list_for_doctor(self, doctor_id: int) -> List[Appointment]:
        return self._ordered(
            self.db.query(Appointment).filter(Appointment.doctor_id == doctor_id)
        )

    def list_all(self) -> List[Appointment]:
        return self._ordered(self.db.query(Appointment))

    def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def save(self, appointment: Appointment) -> Appointment:
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def delete(self, appointment: Appointment) -> None:
        self.db.delete(appointment)
        self.db.commit()

    def populate(self, appointments: Sequence[Appointment]) -> List[AppointmentView]:
        """Resolve doctor, doctor owner and patient references.

        Doctors are loaded first, then every user referenced either as a
        doctor's owner or as a patient in one batch. Dangling references
        come back as ``None``.
        """
        doctors = self._by_id(Doctor, {a.doctor_id for a in appointments})
        user_ids = {d.user_id for d in doctors.values()} | {a.patient_id for a in appointments}
        users = self._by_id(User, user_ids)

        return [self._view(a, doctors, users) for a in appointments]

    def populate_one(self, appointment: Appointment) -> AppointmentView:
        return self.populate([appointment])[0]

    def _ordered(self, query) -> List[Appointment]:
        # Slot labels are free text, so time of day is sorted here rather than in SQL
        rows = query.order_by(Appointment.date, Appointment.id).all()
        return sorted(rows, key=lambda a: (a.date, slot_sort_key(a.time), a.id))

    def _by_id(self, model, ids: Iterable[int]) -> Dict[int, object]:
        ids = list(ids)
        if not ids:
            return {}
        rows = self.db.query(model).filter(model.id.in_(ids)).all()
        return {row.id: row for row in rows}

    @staticmethod
    def _view(
        appointment: Appointment,
        doctors: Dict[int, Doctor],
        users: Dict[int, User],
    ) -> AppointmentView:
        doctor_summary = None
        doctor = doctors.get(appointment.doctor_id)
        if doctor is not None:
            owner = users.get(doctor.user_id)
            doctor_summary = DoctorSummary(
                id=doctor.id,
                specialization=doctor.specialization,
                fees=doctor.fees,
                user=DoctorUserSummary(
                    id=owner.id, name=owner.name, email=owner.email, phone=owner.phone
                ) if owner is not None else None,
            )

        patient_summary = None
        patient = users.get(appointment.patient_id)
        if patient is not None:
            patient_summary = PatientSummary(
                id=patient.id,
                name=patient.name,
                email=patient.email,
                phone=patient.phone,
                address=patient.address,
            )

        return AppointmentView(
            id=appointment.id,
            doctor_id=appointment.doctor_id,
            patient_id=appointment.patient_id,
            doctor=doctor_summary,
            patient=patient_summary,
            date=appointment.date,
            time=appointment.time,
            reason=appointment.reason,
            notes=appointment.notes,
            status=appointment.status,
            version=appointment.version,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )
