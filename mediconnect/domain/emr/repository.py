from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from mediconnect.domain.emr.models import MedicalHistory


class MedicalHistoryRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: dict) -> MedicalHistory:
        record = MedicalHistory(**data)
        self.db.add(record)
        await self.db.commit()
        return record

    async def list_by_patient(self, patient_id: str, limit: Optional[int] = None) -> List[MedicalHistory]:
        query = (
            select(MedicalHistory)
            .options(selectinload(MedicalHistory.medic))
            .where(MedicalHistory.patient_id == patient_id)
            .order_by(MedicalHistory.visit_date.desc())
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())
