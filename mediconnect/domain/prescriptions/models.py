"""
Prescription Domain Models

A prescription carries a fixed allotment of doses. Every dose handed out at a
pharmacy is recorded as an append-only dispensation row whose dose_number is
the prescription's doses_dispensed value after that dose.
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey,
    Integer, Text, Enum, CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
import enum

from mediconnect.infrastructure.database import Base
from mediconnect.domain.directory.models import gen_uuid, utcnow


class PrescriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Prescription(Base):
    __tablename__ = "prescriptions"
    __table_args__ = (
        CheckConstraint("total_doses > 0", name="ck_prescriptions_total_doses_positive"),
        CheckConstraint("doses_dispensed >= 0", name="ck_prescriptions_doses_dispensed_non_negative"),
        CheckConstraint("doses_dispensed <= total_doses", name="ck_prescriptions_doses_within_total"),
    )

    id = Column(String(36), primary_key=True, default=gen_uuid)

    # References
    patient_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    medic_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)

    # Medication
    medication_name = Column(String(255), nullable=False, index=True)
    dosage = Column(String(255), nullable=False)
    frequency = Column(String(255), nullable=False)
    duration = Column(String(255), nullable=False)
    notes = Column(Text)
    prescribed_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Dose tracking
    total_doses = Column(Integer, nullable=False)
    doses_dispensed = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(PrescriptionStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=16),
        nullable=False,
        default=PrescriptionStatus.ACTIVE
    )

    # Invalidation
    is_invalidated = Column(Boolean, nullable=False, default=False)
    invalidated_at = Column(DateTime(timezone=True))
    invalidated_by = Column(String(36), ForeignKey("profiles.id"))
    invalidation_reason = Column(Text)

    # Audit
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    patient = relationship("Profile", foreign_keys=[patient_id], lazy="raise")
    medic = relationship("Profile", foreign_keys=[medic_id], lazy="raise")
    dispensations = relationship(
        "PrescriptionDispensation",
        back_populates="prescription",
        order_by="PrescriptionDispensation.dose_number",
        lazy="raise"
    )


class PrescriptionDispensation(Base):
    __tablename__ = "prescription_dispensations"
    __table_args__ = (
        UniqueConstraint("prescription_id", "dose_number", name="uq_dispensations_prescription_dose"),
        UniqueConstraint("prescription_id", "idempotency_key", name="uq_dispensations_prescription_idempotency_key"),
        CheckConstraint("dose_number > 0", name="ck_dispensations_dose_number_positive"),
        Index("ix_dispensations_pharmacy_dispensed_at", "pharmacy_id", "dispensed_at"),
    )

    id = Column(String(36), primary_key=True, default=gen_uuid)
    prescription_id = Column(String(36), ForeignKey("prescriptions.id"), nullable=False, index=True)
    pharmacy_id = Column(String(36), ForeignKey("pharmacies.id"), nullable=False)
    pharmacist_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    dose_number = Column(Integer, nullable=False)
    notes = Column(Text)
    idempotency_key = Column(String(255))
    dispensed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    prescription = relationship("Prescription", back_populates="dispensations", lazy="raise")
    pharmacist = relationship("Profile", lazy="raise")
    pharmacy = relationship("Pharmacy", lazy="raise")
