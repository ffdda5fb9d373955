from fastapi import APIRouter
from app.api.v1.endpoints import bills, groups

api_router = APIRouter()

api_router.include_router(bills.router, prefix="/bills", tags=["bills"])
api_router.include_router(groups.router, prefix="/groups", tags=["groups"])
