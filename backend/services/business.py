"""Business registration, ledger writes and document storage."""
import asyncio
import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.document_storage import DocumentStorageConnector
from errors import ConflictError, NotFoundError, StorageError
from models import (
    Advice,
    AnalyticsSnapshot,
    Business,
    BusinessDocument,
    FinancialRecord,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    utcnow,
)
from schemas import (
    AdviceOut,
    AnalyticsSnapshotOut,
    BusinessDetail,
    BusinessDocumentOut,
    BusinessOut,
    FinancialRecordOut,
)
from validation import (
    validate_business,
    validate_business_update,
    validate_date_range,
    validate_financial_record,
    validate_uploaded_file,
)

logger = logging.getLogger(__name__)

FREE_TRIAL_DAYS = 30


async def require_business(db: AsyncSession, business_id: int) -> Business:
    """Load a business or raise NotFoundError. Every child write goes through this first."""
    business = await db.get(Business, business_id)
    if business is None:
        raise NotFoundError("Business not found")
    return business


async def find_subscription(db: AsyncSession, business_id: int) -> Optional[Subscription]:
    r = await db.execute(select(Subscription).where(Subscription.business_id == business_id))
    return r.scalar_one_or_none()


class BusinessService:
    """Business CRUD, the append-only ledger, and business documents."""

    def __init__(self, storage: DocumentStorageConnector):
        self.storage = storage

    async def create_business(self, db: AsyncSession, data: Any) -> BusinessOut:
        dto = validate_business(data)
        business = Business(
            name=dto.name,
            type=dto.type.value,
            size=dto.size.value,
            registration_no=dto.registration_no,
            user_id=dto.user_id,
        )
        db.add(business)
        try:
            await db.flush()
            subscription = Subscription(
                business_id=business.id,
                plan=SubscriptionPlan.FREE.value,
                status=SubscriptionStatus.ACTIVE.value,
                current_period_end=utcnow() + timedelta(days=FREE_TRIAL_DAYS),
            )
            db.add(subscription)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning("Duplicate business %r for user %s", dto.name, dto.user_id)
            raise ConflictError("Business with this name already exists") from e
        logger.info("Created business %s (%s) for user %s", business.id, business.type, business.user_id)
        return BusinessOut.from_row(business, subscription)

    async def update_business(self, db: AsyncSession, business_id: int, data: Any) -> BusinessOut:
        dto = validate_business_update(data)
        business = await require_business(db, business_id)
        changes = dto.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(business, field, value.value if hasattr(value, "value") else value)
        business.updated_at = utcnow()
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError("Business with this name already exists") from e
        return BusinessOut.from_row(business, await find_subscription(db, business_id))

    async def get_business(self, db: AsyncSession, business_id: int) -> BusinessDetail:
        business = await require_business(db, business_id)
        subscription = await find_subscription(db, business_id)
        r_fin = await db.execute(
            select(FinancialRecord)
            .where(FinancialRecord.business_id == business_id)
            .order_by(FinancialRecord.date.desc(), FinancialRecord.id.desc())
            .limit(10)
        )
        r_an = await db.execute(
            select(AnalyticsSnapshot)
            .where(AnalyticsSnapshot.business_id == business_id)
            .order_by(AnalyticsSnapshot.period.desc(), AnalyticsSnapshot.id.desc())
            .limit(5)
        )
        r_adv = await db.execute(
            select(Advice)
            .where(Advice.business_id == business_id)
            .order_by(Advice.created_at.desc(), Advice.id.desc())
            .limit(5)
        )
        return BusinessDetail.from_row(
            business,
            subscription,
            financials=[FinancialRecordOut.model_validate(f) for f in r_fin.scalars().all()],
            analytics=[AnalyticsSnapshotOut.from_row(a) for a in r_an.scalars().all()],
            advice=[AdviceOut.from_row(a) for a in r_adv.scalars().all()],
        )

    async def list_businesses_for_user(self, db: AsyncSession, user_id: str) -> list[BusinessOut]:
        r = await db.execute(
            select(Business).where(Business.user_id == user_id).order_by(Business.created_at.desc(), Business.id.desc())
        )
        businesses = r.scalars().all()
        subs: dict[int, Subscription] = {}
        if businesses:
            r_sub = await db.execute(
                select(Subscription).where(Subscription.business_id.in_([b.id for b in businesses]))
            )
            subs = {s.business_id: s for s in r_sub.scalars().all()}
        return [BusinessOut.from_row(b, subs.get(b.id)) for b in businesses]

    async def delete_business(self, db: AsyncSession, business_id: int) -> None:
        """Delete a business and everything that references it."""
        await require_business(db, business_id)
        r_docs = await db.execute(select(BusinessDocument.file_path).where(BusinessDocument.business_id == business_id))
        doc_keys = [k for (k,) in r_docs.all()]
        for model in (Advice, AnalyticsSnapshot, FinancialRecord, BusinessDocument, Subscription):
            await db.execute(delete(model).where(model.business_id == business_id))
        await db.execute(delete(Business).where(Business.id == business_id))
        await db.commit()
        for key in doc_keys:
            try:
                await asyncio.to_thread(self.storage.remove, key)
            except StorageError:
                logger.warning("Orphaned document blob %s after deleting business %s", key, business_id)
        logger.info("Deleted business %s (%d documents)", business_id, len(doc_keys))

    # ----- Ledger -----

    async def add_financial_record(self, db: AsyncSession, data: Any) -> FinancialRecordOut:
        dto = validate_financial_record(data)
        await require_business(db, dto.business_id)
        record = FinancialRecord(
            business_id=dto.business_id,
            type=dto.type.value,
            amount=dto.amount,
            currency=dto.currency,
            date=dto.date,
            category=dto.category,
            description=dto.description,
        )
        db.add(record)
        await db.commit()
        return FinancialRecordOut.model_validate(record)

    async def get_financial_records(
        self, db: AsyncSession, business_id: int, start_date: Any, end_date: Any
    ) -> list[FinancialRecordOut]:
        rng = validate_date_range(start_date, end_date)
        await require_business(db, business_id)
        r = await db.execute(
            select(FinancialRecord)
            .where(
                FinancialRecord.business_id == business_id,
                FinancialRecord.date >= rng.start_date,
                FinancialRecord.date <= rng.end_date,
            )
            .order_by(FinancialRecord.date.desc(), FinancialRecord.id.desc())
        )
        return [FinancialRecordOut.model_validate(f) for f in r.scalars().all()]

    # ----- Documents -----

    async def list_documents(self, db: AsyncSession, business_id: int) -> list[BusinessDocumentOut]:
        await require_business(db, business_id)
        r = await db.execute(
            select(BusinessDocument)
            .where(BusinessDocument.business_id == business_id)
            .order_by(BusinessDocument.uploaded_at.desc(), BusinessDocument.id.desc())
        )
        return [BusinessDocumentOut.model_validate(d) for d in r.scalars().all()]

    async def upload_document(self, db: AsyncSession, business_id: int, file: Any) -> BusinessDocumentOut:
        """
        Check the business, write the blob, then insert the metadata row.
        If the insert fails the blob is removed again (best effort, not atomic).
        """
        upload = validate_uploaded_file(file)
        await require_business(db, business_id)
        key = self.storage.new_key(business_id, upload.file_name)
        await asyncio.to_thread(self.storage.upload, key, upload.content)
        document = BusinessDocument(
            business_id=business_id,
            file_name=upload.file_name,
            file_type=upload.file_type,
            file_path=key,
            size=upload.size,
        )
        db.add(document)
        try:
            await db.commit()
        except Exception:
            await db.rollback()
            try:
                await asyncio.to_thread(self.storage.remove, key)
            except StorageError:
                logger.exception("Could not remove blob %s after failed metadata insert", key)
            raise
        logger.info("Stored document %s for business %s (%d bytes)", key, business_id, upload.size)
        return BusinessDocumentOut.model_validate(document)

    async def get_document(self, db: AsyncSession, business_id: int, document_id: int) -> BusinessDocument:
        r = await db.execute(
            select(BusinessDocument).where(
                BusinessDocument.id == document_id,
                BusinessDocument.business_id == business_id,
            )
        )
        document = r.scalar_one_or_none()
        if document is None:
            raise NotFoundError("Document not found")
        return document

    async def delete_document(self, db: AsyncSession, business_id: int, document_id: int) -> None:
        document = await self.get_document(db, business_id, document_id)
        await asyncio.to_thread(self.storage.remove, document.file_path)
        await db.delete(document)
        await db.commit()

    def document_path(self, document: BusinessDocument):
        if not self.storage.exists(document.file_path):
            logger.warning("Blob %s for document %s is missing", document.file_path, document.id)
            raise NotFoundError("Document file not found")
        return self.storage.path_for(document.file_path)
