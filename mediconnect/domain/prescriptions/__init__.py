# Prescriptions domain module
from mediconnect.domain.prescriptions.models import (
    Prescription,
    PrescriptionDispensation,
    PrescriptionStatus,
)

__all__ = [
    "Prescription",
    "PrescriptionDispensation",
    "PrescriptionStatus",
]
