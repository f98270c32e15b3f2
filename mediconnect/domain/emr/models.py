"""
Electronic Medical Records (EMR) Domain Models

Visit records written by medics. Pharmacists and the patient chat assistant
read them; nothing in this service writes them after creation.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship

from mediconnect.infrastructure.database import Base
from mediconnect.domain.directory.models import gen_uuid, utcnow


class MedicalHistory(Base):
    __tablename__ = "medical_history"
    __table_args__ = (
        Index("ix_medical_history_patient_visit_date", "patient_id", "visit_date"),
    )

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    medic_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)

    visit_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    diagnosis = Column(Text)
    symptoms = Column(Text)
    treatment = Column(Text)
    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    medic = relationship("Profile", foreign_keys=[medic_id], lazy="raise")
