"""Advice generation, history and tracking."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_advice_service
from models import AdviceType
from schemas import AdviceCreate, AdviceOut, AdvicePage, AdviceStatusUpdate, EffectivenessOut, TrendAnalysis
from services import BusinessAdviceService

router = APIRouter()


@router.post("/generate/{business_id}", response_model=list[AdviceOut], status_code=201)
async def generate_advice(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: BusinessAdviceService = Depends(get_advice_service),
):
    return await service.generate_advice(db, business_id)


@router.post("/catalog/{business_id}", response_model=list[AdviceOut], status_code=201)
async def generate_catalog_advice(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: BusinessAdviceService = Depends(get_advice_service),
):
    return await service.generate_catalog_advice(db, business_id)


@router.get("/business/{business_id}", response_model=list[AdviceOut])
async def list_advice(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: BusinessAdviceService = Depends(get_advice_service),
):
    return await service.list_advice(db, business_id)


@router.post("/business/{business_id}", response_model=AdviceOut, status_code=201)
async def add_advice(
    business_id: int,
    body: AdviceCreate,
    db: AsyncSession = Depends(get_db),
    service: BusinessAdviceService = Depends(get_advice_service),
):
    return await service.add_advice(db, business_id, body)


@router.get("/search/{business_id}", response_model=list[AdviceOut])
async def search_advice(
    business_id: int,
    q: str = Query("", description="Case-insensitive match on title or content"),
    db: AsyncSession = Depends(get_db),
    service: BusinessAdviceService = Depends(get_advice_service),
):
    return await service.search_advice(db, business_id, q)


@router.get("/implemented/{business_id}", response_model=AdvicePage)
async def get_implemented_advice(
    business_id: int,
    page: int = Query(1),
    limit: int = Query(10),
    db: AsyncSession = Depends(get_db),
    service: BusinessAdviceService = Depends(get_advice_service),
):
    return await service.get_implemented_advice(db, business_id, page, limit)


@router.patch("/{advice_id}/status", response_model=AdviceOut)
async def update_advice_status(
    advice_id: int,
    body: AdviceStatusUpdate,
    db: AsyncSession = Depends(get_db),
    service: BusinessAdviceService = Depends(get_advice_service),
):
    return await service.update_advice_status(db, advice_id, body.status)


@router.get("/trends/{business_id}", response_model=list[TrendAnalysis])
async def get_advice_trends(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: BusinessAdviceService = Depends(get_advice_service),
):
    return await service.analyze_trends(db, business_id)


@router.get("/effectiveness/{business_id}", response_model=EffectivenessOut)
async def get_advice_effectiveness(
    business_id: int,
    type: Optional[AdviceType] = Query(None),
    db: AsyncSession = Depends(get_db),
    service: BusinessAdviceService = Depends(get_advice_service),
):
    effectiveness = await service.calculate_effectiveness(db, business_id, type)
    return EffectivenessOut(type=type, effectiveness=effectiveness)
