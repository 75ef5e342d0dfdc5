"""
Payment transaction repository backed by SQLAlchemy
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from domain.common.exceptions import (
    ConcurrentModificationException,
    TransactionNotFoundException,
)
from domain.payment.entity import PaymentDisplay, PaymentTransaction
from domain.payment.repository import PaymentTransactionRepository
from infrastructure.models.payment import PaymentTransactionModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyPaymentTransactionRepository(PaymentTransactionRepository):
    """SQLAlchemy implementation of the transaction repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentTransactionModel) -> PaymentTransaction:
        """Map the ORM model to the domain entity."""
        return PaymentTransaction(
            id=model.id,
            order_id=model.order_id,
            transaction_id=model.transaction_id,
            cancelled=model.cancelled,
            declined=model.declined,
            failure=model.failure,
            pending_notified=model.pending_notified,
            refunded_ids=list(model.refunded_ids or []),
            display=PaymentDisplay.from_dict(model.display),
            last_status=model.last_status,
            created_at=model.created_at,
            updated_at=model.updated_at,
            version=model.version,
        )

    def _to_model(self, entity: PaymentTransaction) -> PaymentTransactionModel:
        """Map the domain entity to an ORM model."""
        return PaymentTransactionModel(
            id=entity.id,
            order_id=entity.order_id,
            transaction_id=entity.transaction_id,
            cancelled=entity.cancelled,
            declined=entity.declined,
            failure=entity.failure,
            pending_notified=entity.pending_notified,
            refunded_ids=list(entity.refunded_ids),
            display=entity.display.as_dict() if entity.display else None,
            last_status=entity.last_status,
        )

    async def create(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """Insert the order's transaction record."""
        try:
            db_tx = self._to_model(transaction)
            self.session.add(db_tx)
            await self.session.flush()
            await self.session.refresh(db_tx)
        except IntegrityError:
            logger.warning(
                "transaction_create_conflict",
                order_id=transaction.order_id,
                transaction_id=transaction.transaction_id,
            )
            raise
        transaction.id = db_tx.id
        transaction.version = db_tx.version
        logger.info(
            "transaction_created",
            id=db_tx.id,
            order_id=db_tx.order_id,
            transaction_id=db_tx.transaction_id,
        )
        return self._to_entity(db_tx)

    async def get_by_order_id(self, order_id: int) -> Optional[PaymentTransaction]:
        """Transaction record of an order."""
        result = await self.session.execute(
            select(PaymentTransactionModel).where(PaymentTransactionModel.order_id == order_id)
        )
        db_tx = result.scalar_one_or_none()
        return self._to_entity(db_tx) if db_tx else None

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[PaymentTransaction]:
        """Transaction record by gateway charge uuid."""
        result = await self.session.execute(
            select(PaymentTransactionModel).where(
                PaymentTransactionModel.transaction_id == transaction_id
            )
        )
        db_tx = result.scalar_one_or_none()
        return self._to_entity(db_tx) if db_tx else None

    async def update(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """Persist transaction changes, checking the version first."""
        result = await self.session.execute(
            select(PaymentTransactionModel).where(PaymentTransactionModel.id == transaction.id)
        )
        db_tx = result.scalar_one_or_none()

        if not db_tx:
            raise TransactionNotFoundException(
                order_id=transaction.order_id, transaction_id=transaction.transaction_id
            )
        if db_tx.version != transaction.version:
            raise ConcurrentModificationException(
                "PaymentTransaction", transaction.id, transaction.version, db_tx.version
            )

        db_tx.transaction_id = transaction.transaction_id
        db_tx.cancelled = transaction.cancelled
        db_tx.declined = transaction.declined
        db_tx.failure = transaction.failure
        db_tx.pending_notified = transaction.pending_notified
        db_tx.refunded_ids = list(transaction.refunded_ids)
        db_tx.display = transaction.display.as_dict() if transaction.display else None
        db_tx.last_status = transaction.last_status

        try:
            await self.session.flush()
        except StaleDataError:
            raise ConcurrentModificationException(
                "PaymentTransaction", transaction.id, transaction.version, transaction.version + 1
            )
        await self.session.refresh(db_tx)
        transaction.version = db_tx.version

        logger.info(
            "transaction_updated",
            id=db_tx.id,
            order_id=db_tx.order_id,
            last_status=db_tx.last_status,
            version=db_tx.version,
        )
        return self._to_entity(db_tx)
