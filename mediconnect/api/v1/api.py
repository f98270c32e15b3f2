from fastapi import APIRouter
from mediconnect.api.v1.endpoints import ai
from mediconnect.api.v1.pharmacy import routes as pharmacy

api_router = APIRouter()
api_router.include_router(pharmacy.router, prefix="/pharmacist", tags=["pharmacist"])
api_router.include_router(ai.router, prefix="/ai", tags=["ai"])
