"""Business CRUD, documents and subscription lookups."""
from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_business_service, get_subscription_service
from schemas import (
    BusinessCreate,
    BusinessDetail,
    BusinessDocumentOut,
    BusinessOut,
    BusinessUpdate,
    SubscriptionAccess,
    SubscriptionOut,
)
from services import BusinessService, SubscriptionService

router = APIRouter()


@router.post("", response_model=BusinessOut, status_code=201)
async def create_business(
    body: BusinessCreate,
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    return await service.create_business(db, body)


@router.get("/user/{user_id}", response_model=list[BusinessOut])
async def list_user_businesses(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    return await service.list_businesses_for_user(db, user_id)


@router.get("/{business_id}", response_model=BusinessDetail)
async def get_business(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    return await service.get_business(db, business_id)


@router.put("/{business_id}", response_model=BusinessOut)
async def update_business(
    business_id: int,
    body: BusinessUpdate,
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    return await service.update_business(db, business_id, body)


@router.delete("/{business_id}", status_code=204)
async def delete_business(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    await service.delete_business(db, business_id)
    return Response(status_code=204)


# ----- Documents -----

@router.get("/{business_id}/documents", response_model=list[BusinessDocumentOut])
async def list_documents(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    return await service.list_documents(db, business_id)


@router.post("/{business_id}/documents", response_model=BusinessDocumentOut, status_code=201)
async def upload_document(
    business_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    content = await file.read()
    return await service.upload_document(db, business_id, {
        "file_name": file.filename or "",
        "file_type": file.content_type or "application/octet-stream",
        "size": len(content),
        "content": content,
    })


@router.get("/{business_id}/documents/{document_id}/download")
async def download_document(
    business_id: int,
    document_id: int,
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    document = await service.get_document(db, business_id, document_id)
    return FileResponse(service.document_path(document), media_type=document.file_type, filename=document.file_name)


@router.delete("/{business_id}/documents/{document_id}", status_code=204)
async def delete_document(
    business_id: int,
    document_id: int,
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    await service.delete_document(db, business_id, document_id)
    return Response(status_code=204)


# ----- Subscription -----

@router.get("/{business_id}/subscription", response_model=SubscriptionOut)
async def get_subscription(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_subscription(db, business_id)


@router.post("/{business_id}/subscription", response_model=SubscriptionOut, status_code=201)
async def create_free_subscription(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.create_free_subscription(db, business_id)


@router.get("/{business_id}/subscription/access", response_model=SubscriptionAccess)
async def check_subscription_access(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.check_access(db, business_id)
