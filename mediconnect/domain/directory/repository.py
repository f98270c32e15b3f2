from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from mediconnect.domain.directory.models import Profile, Pharmacy


class DirectoryRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_profile(self, data: dict) -> Profile:
        profile = Profile(**data)
        self.db.add(profile)
        await self.db.commit()
        return profile

    async def create_pharmacy(self, data: dict) -> Pharmacy:
        pharmacy = Pharmacy(**data)
        self.db.add(pharmacy)
        await self.db.commit()
        return pharmacy

    async def get_profile(self, profile_id: str) -> Optional[Profile]:
        result = await self.db.execute(select(Profile).where(Profile.id == profile_id))
        return result.scalar_one_or_none()

    async def get_profile_by_cnp(self, cnp: str) -> Optional[Profile]:
        result = await self.db.execute(select(Profile).where(Profile.cnp == cnp))
        return result.scalar_one_or_none()

    async def search_profile_ids_by_name(self, fragment: str) -> List[str]:
        result = await self.db.execute(
            select(Profile.id).where(Profile.full_name.ilike(f"%{fragment}%"))
        )
        return list(result.scalars().all())

    async def get_pharmacy(self, pharmacy_id: str) -> Optional[Pharmacy]:
        result = await self.db.execute(select(Pharmacy).where(Pharmacy.id == pharmacy_id))
        return result.scalar_one_or_none()
