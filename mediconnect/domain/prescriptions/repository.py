"""
Prescription Repository Layer

Data access for prescriptions and their dispensation events. Reads always go
to the database (populate_existing) so the workflow never acts on a stale copy
from the session identity map.
"""

from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from mediconnect.domain.prescriptions.models import (
    Prescription, PrescriptionDispensation, PrescriptionStatus
)


class PrescriptionRepository:
    """Record store for prescriptions, append-only store for dispensations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: dict) -> Prescription:
        prescription = Prescription(**data)
        self.db.add(prescription)
        await self.db.commit()
        return prescription

    async def get(self, prescription_id: str) -> Optional[Prescription]:
        result = await self.db.execute(
            select(Prescription)
            .where(Prescription.id == prescription_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_detailed(self, prescription_id: str) -> Optional[Prescription]:
        result = await self.db.execute(
            select(Prescription)
            .options(
                selectinload(Prescription.patient),
                selectinload(Prescription.medic),
                selectinload(Prescription.dispensations).selectinload(PrescriptionDispensation.pharmacist),
                selectinload(Prescription.dispensations).selectinload(PrescriptionDispensation.pharmacy),
            )
            .where(Prescription.id == prescription_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def conditional_update(self, prescription_id: str, expected_doses: int, values: dict) -> bool:
        """Compare-and-set on doses_dispensed.

        Applies ``values`` only if the row still has ``expected_doses`` dispensed
        and is not invalidated. Returns False when nothing matched, which means
        either a concurrent writer got there first or the row is gone.
        """
        result = await self.db.execute(
            update(Prescription)
            .where(
                Prescription.id == prescription_id,
                Prescription.doses_dispensed == expected_doses,
                Prescription.is_invalidated.is_(False),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_invalidated(self, prescription_id: str, values: dict) -> bool:
        """Invalidate only if not already invalidated. Returns whether a row changed."""
        result = await self.db.execute(
            update(Prescription)
            .where(
                Prescription.id == prescription_id,
                Prescription.is_invalidated.is_(False),
            )
            .values(is_invalidated=True, status=PrescriptionStatus.CANCELLED, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def append_dispensation(self, data: dict) -> PrescriptionDispensation:
        """Add a dispensation inside the caller's open transaction."""
        dispensation = PrescriptionDispensation(**data)
        self.db.add(dispensation)
        await self.db.flush()
        return dispensation

    async def get_dispensation(self, dispensation_id: str) -> Optional[PrescriptionDispensation]:
        result = await self.db.execute(
            select(PrescriptionDispensation)
            .options(
                selectinload(PrescriptionDispensation.pharmacist),
                selectinload(PrescriptionDispensation.pharmacy),
            )
            .where(PrescriptionDispensation.id == dispensation_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_idempotency_key(
        self, prescription_id: str, idempotency_key: str
    ) -> Optional[PrescriptionDispensation]:
        result = await self.db.execute(
            select(PrescriptionDispensation).where(
                PrescriptionDispensation.prescription_id == prescription_id,
                PrescriptionDispensation.idempotency_key == idempotency_key,
            )
        )
        return result.scalar_one_or_none()

    async def list_dispensations(self, prescription_id: str) -> List[PrescriptionDispensation]:
        result = await self.db.execute(
            select(PrescriptionDispensation)
            .options(
                selectinload(PrescriptionDispensation.pharmacist),
                selectinload(PrescriptionDispensation.pharmacy),
            )
            .where(PrescriptionDispensation.prescription_id == prescription_id)
            .order_by(PrescriptionDispensation.dose_number.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_by_pharmacy(self, pharmacy_id: str, limit: int = 50) -> List[PrescriptionDispensation]:
        result = await self.db.execute(
            select(PrescriptionDispensation)
            .options(
                selectinload(PrescriptionDispensation.prescription).selectinload(Prescription.patient),
                selectinload(PrescriptionDispensation.pharmacist),
                selectinload(PrescriptionDispensation.pharmacy),
            )
            .where(PrescriptionDispensation.pharmacy_id == pharmacy_id)
            .order_by(PrescriptionDispensation.dispensed_at.desc(), PrescriptionDispensation.dose_number.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def search_active(
        self,
        patient_ids: Optional[List[str]] = None,
        medication_name: Optional[str] = None,
    ) -> List[Prescription]:
        query = (
            select(Prescription)
            .options(selectinload(Prescription.patient), selectinload(Prescription.medic))
            .where(
                Prescription.status == PrescriptionStatus.ACTIVE,
                Prescription.is_invalidated.is_(False),
            )
        )
        if patient_ids is not None:
            query = query.where(Prescription.patient_id.in_(patient_ids))
        if medication_name:
            query = query.where(Prescription.medication_name.ilike(f"%{medication_name}%"))

        result = await self.db.execute(
            query.order_by(Prescription.prescribed_date.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_by_patient(self, patient_id: str) -> List[Prescription]:
        result = await self.db.execute(
            select(Prescription)
            .options(selectinload(Prescription.patient), selectinload(Prescription.medic))
            .where(Prescription.patient_id == patient_id)
            .order_by(Prescription.prescribed_date.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
