from .user import User
from .doctor import Doctor, DoctorReview
from .appointment import Appointment, AppointmentStatus

__all__ = ["User", "Doctor", "DoctorReview", "Appointment", "AppointmentStatus"]
