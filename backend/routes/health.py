from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_business_service
from services import BusinessService

router = APIRouter()


@router.get("")
async def health(
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    await db.execute(text("SELECT 1"))
    return {"status": "ok", "database": "ok", "document_storage": service.storage.is_configured()}
