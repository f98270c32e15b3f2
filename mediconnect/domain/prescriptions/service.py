"""
Prescription Service Layer

Pharmacist-facing operations on prescriptions: the dispensation workflow
(dose counting with a compare-and-set guard), invalidation, and the read side
used to find prescriptions and review dispensation history.
"""

from typing import Dict, Optional, List
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.config import settings
from mediconnect.core.exceptions import (
    BaseCustomException, ValidationError, NotFoundError,
    PrescriptionNotFoundError, InvalidatedPrescriptionError, DoseLimitExceededError,
    ConcurrencyConflictError, TransientFailureError,
    STORE_ERRORS, handle_database_error, is_lock_contention
)
from mediconnect.domain.directory.models import ProfileRole
from mediconnect.domain.directory.repository import DirectoryRepository
from mediconnect.domain.emr.models import MedicalHistory
from mediconnect.domain.emr.repository import MedicalHistoryRepository
from mediconnect.domain.prescriptions.models import (
    Prescription, PrescriptionDispensation, PrescriptionStatus
)
from mediconnect.domain.prescriptions.repository import PrescriptionRepository

MEDICAL_CONTEXT_VISITS = 5


class PrescriptionService:
    """Service layer for pharmacist prescription handling"""

    def __init__(self, db: AsyncSession, max_attempts: Optional[int] = None):
        self.db = db
        self.repo = PrescriptionRepository(db)
        self.directory = DirectoryRepository(db)
        self.records = MedicalHistoryRepository(db)
        if max_attempts is None:
            max_attempts = settings.DISPENSE_MAX_ATTEMPTS
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts

    # Dispensation workflow

    async def dispense(
        self,
        prescription_id: str,
        pharmacy_id: str,
        pharmacist_id: str,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None
    ) -> PrescriptionDispensation:
        """Hand out the next dose of a prescription.

        The read-check-write runs as one transaction guarded by a conditional
        update on doses_dispensed. A lost race rolls back and starts over from a
        fresh read, up to ``max_attempts`` times.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                dispensation_id = await self._dispense_once(
                    prescription_id, pharmacy_id, pharmacist_id, notes, idempotency_key
                )
            except ConcurrencyConflictError:
                await self.db.rollback()
                logger.warning(
                    f"Dispense conflict on prescription {prescription_id} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue
            except (PrescriptionNotFoundError, InvalidatedPrescriptionError, DoseLimitExceededError):
                # Nothing was written; end the read without expiring loaded instances
                await self.db.commit()
                raise
            except BaseCustomException:
                await self.db.rollback()
                raise
            except STORE_ERRORS as e:
                await self.db.rollback()
                raise handle_database_error(e, "dispense") from e

            try:
                return await self.repo.get_dispensation(dispensation_id)
            except STORE_ERRORS as e:
                await self.db.rollback()
                raise handle_database_error(e, "load dispensation") from e

        logger.error(f"Dispense on prescription {prescription_id} gave up after {self.max_attempts} conflicts")
        raise TransientFailureError(
            message="Prescription is being updated concurrently, try again",
            details={"prescription_id": prescription_id, "attempts": self.max_attempts}
        )

    async def _dispense_once(
        self,
        prescription_id: str,
        pharmacy_id: str,
        pharmacist_id: str,
        notes: Optional[str],
        idempotency_key: Optional[str]
    ) -> str:
        prescription = await self.repo.get(prescription_id)
        if prescription is None:
            raise PrescriptionNotFoundError(prescription_id)

        if idempotency_key:
            existing = await self.repo.find_by_idempotency_key(prescription_id, idempotency_key)
            if existing is not None:
                logger.info(
                    f"Dispense replay for prescription {prescription_id} "
                    f"with key {idempotency_key}, returning dose {existing.dose_number}"
                )
                return existing.id

        if prescription.is_invalidated:
            raise InvalidatedPrescriptionError(prescription_id, prescription.invalidation_reason)

        expected_doses = prescription.doses_dispensed
        if expected_doses >= prescription.total_doses:
            raise DoseLimitExceededError(prescription_id, prescription.total_doses)

        dose_number = expected_doses + 1
        new_status = (
            PrescriptionStatus.COMPLETED
            if dose_number == prescription.total_doses
            else PrescriptionStatus.ACTIVE
        )

        try:
            updated = await self.repo.conditional_update(
                prescription_id,
                expected_doses,
                {"doses_dispensed": dose_number, "status": new_status}
            )
            if not updated:
                raise ConcurrencyConflictError(prescription_id, expected_doses)

            dispensation = await self.repo.append_dispensation({
                "prescription_id": prescription_id,
                "pharmacy_id": pharmacy_id,
                "pharmacist_id": pharmacist_id,
                "dose_number": dose_number,
                "notes": notes,
                "idempotency_key": idempotency_key,
            })
            await self.db.commit()
        except IntegrityError as e:
            if _is_unique_violation(e):
                # Duplicate dose number or idempotency key from a racing writer
                raise ConcurrencyConflictError(prescription_id, expected_doses) from e
            raise ValidationError(
                message="Dispensation references an unknown pharmacy or pharmacist",
                details={"pharmacy_id": pharmacy_id, "pharmacist_id": pharmacist_id}
            ) from e
        except STORE_ERRORS as e:
            if is_lock_contention(e):
                raise ConcurrencyConflictError(prescription_id, expected_doses) from e
            raise

        logger.info(
            f"Dispensed dose {dose_number}/{prescription.total_doses} of prescription "
            f"{prescription_id} at pharmacy {pharmacy_id} by {pharmacist_id}"
        )
        return dispensation.id

    async def invalidate(self, prescription_id: str, pharmacist_id: str, reason: str) -> Prescription:
        """Permanently revoke the remaining doses of a prescription.

        Invalidating twice is a no-op: the first invalidation's metadata is kept.
        """
        if not reason or not reason.strip():
            raise ValidationError(
                message="Invalidation reason is required",
                details={"field": "reason"}
            )

        for attempt in range(1, self.max_attempts + 1):
            try:
                changed = await self.repo.mark_invalidated(prescription_id, {
                    "invalidated_at": datetime.now(timezone.utc),
                    "invalidated_by": pharmacist_id,
                    "invalidation_reason": reason.strip(),
                })
                await self.db.commit()
                prescription = await self.repo.get(prescription_id)
                break
            except STORE_ERRORS as e:
                await self.db.rollback()
                if is_lock_contention(e) and attempt < self.max_attempts:
                    logger.warning(f"Invalidate on prescription {prescription_id} waiting on a concurrent writer")
                    continue
                raise handle_database_error(e, "invalidate") from e

        if prescription is None:
            raise PrescriptionNotFoundError(prescription_id)

        if changed:
            logger.info(f"Prescription {prescription_id} invalidated by {pharmacist_id}: {reason.strip()}")
        else:
            logger.info(f"Prescription {prescription_id} already invalidated, keeping original metadata")
        return prescription

    # Read side

    async def search_prescriptions(
        self,
        patient_cnp: Optional[str] = None,
        patient_name: Optional[str] = None,
        medication_name: Optional[str] = None
    ) -> List[Prescription]:
        """Active, dispensable prescriptions matching the given filters"""
        patient_ids: Optional[List[str]] = None

        if patient_cnp:
            patient = await self.directory.get_profile_by_cnp(patient_cnp.strip())
            if patient is None:
                return []
            patient_ids = [patient.id]

        if patient_name:
            matches = await self.directory.search_profile_ids_by_name(patient_name.strip())
            if not matches:
                return []
            patient_ids = matches if patient_ids is None else [i for i in patient_ids if i in matches]
            if not patient_ids:
                return []

        return await self.repo.search_active(
            patient_ids=patient_ids,
            medication_name=medication_name.strip() if medication_name else None
        )

    async def get_prescription(self, prescription_id: str) -> Prescription:
        prescription = await self.repo.get_detailed(prescription_id)
        if prescription is None:
            raise PrescriptionNotFoundError(prescription_id)
        return prescription

    async def get_patient_prescriptions(self, patient_id: str) -> List[Prescription]:
        return await self.repo.list_by_patient(patient_id)

    async def get_patient_medical_history(
        self, patient_id: str, limit: Optional[int] = None
    ) -> List[MedicalHistory]:
        """Visit records for a patient, most recent first"""
        return await self.records.list_by_patient(patient_id, limit=limit)

    async def get_patient_medical_context(self, patient_id: str) -> Dict[str, list]:
        """Recent visits and active prescriptions, as shown to the chat assistant"""
        await self.ensure_patient(patient_id)
        history = await self.records.list_by_patient(patient_id, limit=MEDICAL_CONTEXT_VISITS)
        prescriptions = [
            p for p in await self.repo.list_by_patient(patient_id)
            if p.status == PrescriptionStatus.ACTIVE and not p.is_invalidated
        ]
        return {"medical_history": history, "prescriptions": prescriptions}

    async def list_dispensations(self, prescription_id: str) -> List[PrescriptionDispensation]:
        if await self.repo.get(prescription_id) is None:
            raise PrescriptionNotFoundError(prescription_id)
        return await self.repo.list_dispensations(prescription_id)

    async def get_dispensation_history(
        self, pharmacy_id: str, limit: Optional[int] = None
    ) -> List[PrescriptionDispensation]:
        await self.ensure_pharmacy(pharmacy_id)
        return await self.repo.list_by_pharmacy(
            pharmacy_id, limit=limit or settings.DISPENSATION_HISTORY_LIMIT
        )

    async def ensure_pharmacy(self, pharmacy_id: str) -> None:
        if await self.directory.get_pharmacy(pharmacy_id) is None:
            raise NotFoundError(
                message="Pharmacy not found",
                details={"pharmacy_id": pharmacy_id},
                error_code="PHARMACY_NOT_FOUND"
            )

    async def ensure_patient(self, patient_id: str) -> None:
        profile = await self.directory.get_profile(patient_id)
        if profile is None or profile.role != ProfileRole.PATIENT:
            raise NotFoundError(
                message="Patient not found",
                details={"patient_id": patient_id},
                error_code="PATIENT_NOT_FOUND"
            )

    async def ensure_pharmacist(self, pharmacist_id: str) -> None:
        profile = await self.directory.get_profile(pharmacist_id)
        if profile is None or profile.role != ProfileRole.PHARMACIST:
            raise NotFoundError(
                message="Pharmacist not found",
                details={"pharmacist_id": pharmacist_id},
                error_code="PHARMACIST_NOT_FOUND"
            )


def _is_unique_violation(error: IntegrityError) -> bool:
    text = str(error.orig if error.orig is not None else error).lower()
    return "unique" in text or "duplicate key" in text
