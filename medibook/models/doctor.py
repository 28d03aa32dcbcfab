from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Float, Text, JSON, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Professional information
    specialization = Column(String(100), nullable=False, index=True)
    fees = Column(Float, nullable=False)
    experience = Column(Integer, nullable=True)
    bio = Column(Text, nullable=True)

    # Ordered slot labels, e.g. ["09:00 AM", "09:30 AM"]
    timings = Column(JSON, nullable=False, default=list)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor")
    reviews = relationship("DoctorReview", back_populates="doctor", order_by="DoctorReview.id")

    def __repr__(self):
        return f"<Doctor(id={self.id}, user_id={self.user_id}, specialization='{self.specialization}')>"

class DoctorReview(Base):
    __tablename__ = "doctor_reviews"
    __table_args__ = (
        UniqueConstraint("doctor_id", "user_id", name="uq_doctor_review_author"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    doctor = relationship("Doctor", back_populates="reviews")
    user = relationship("User")

    def __repr__(self):
        return f"<DoctorReview(id={self.id}, doctor_id={self.doctor_id}, rating={self.rating})>"
