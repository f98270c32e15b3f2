# EMR domain module
from mediconnect.domain.emr.models import MedicalHistory

__all__ = ["MedicalHistory"]
