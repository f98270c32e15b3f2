from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.infrastructure.database import get_db
from mediconnect.domain.prescriptions.service import PrescriptionService


async def get_prescription_service(db: AsyncSession = Depends(get_db)) -> PrescriptionService:
    return PrescriptionService(db)
