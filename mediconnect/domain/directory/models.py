"""
Profile Directory Models

Profiles (patients, medics, pharmacists, admins) and pharmacies. Rows here are
maintained by the administration side; the pharmacist workflow only reads them.
"""

from sqlalchemy import Column, String, DateTime, Enum, Text
from datetime import datetime, timezone
import enum
import uuid

from mediconnect.infrastructure.database import Base


def gen_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class ProfileRole(str, enum.Enum):
    PATIENT = "patient"
    HOSPITAL_MEDIC = "hospital_medic"
    HOSPITAL_ADMIN = "hospital_admin"
    MEDICONNECT_ADMIN = "mediconnect_admin"
    PHARMACY_ADMIN = "pharmacy_admin"
    PHARMACIST = "pharmacist"


class Pharmacy(Base):
    __tablename__ = "pharmacies"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(255), nullable=False, index=True)
    address = Column(Text, nullable=True)
    phone = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=True, index=True)
    role = Column(
        Enum(ProfileRole, values_callable=lambda e: [m.value for m in e], native_enum=False, length=32),
        nullable=False,
        default=ProfileRole.PATIENT
    )
    hospital_id = Column(String(36), nullable=True)
    pharmacy_id = Column(String(36), nullable=True)
    # National personal numeric code
    cnp = Column(String(13), nullable=True, unique=True, index=True)
    department = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
