from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from domain.common.exceptions import ConcurrentModificationException
from domain.payment.entity import PaymentDisplay, PaymentTransaction
from infrastructure.models import Base
from infrastructure.models.order import OrderModel
from infrastructure.repositories.order_repository import SQLAlchemyOrderRepository
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'genpay.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def uow(session_factory):
    def factory(readonly: bool = False):
        return SQLAlchemyUnitOfWork(session_factory, readonly=readonly)
    return factory


async def _create(uow, order, transaction=None):
    async with uow() as tx:
        await tx.order_repository.create(order)
        if transaction is not None:
            await tx.transaction_repository.create(transaction)


@pytest.mark.asyncio
async def test_order_round_trip(uow, order_factory):
    await _create(uow, order_factory())

    async with uow(readonly=True) as tx:
        order = await tx.order_repository.get_by_id(42)

    assert order.number == "1042"
    assert order.total == Decimal("150.00")
    assert order.items[0].unit_price == Decimal("70.00")
    assert order.items[0].categories[0].name == "Roupas"
    assert order.billing.email == "joao@example.com"
    assert order.billing_address.postcode == "01001-000"
    assert order.version == 1


@pytest.mark.asyncio
async def test_order_update_bumps_version_and_appends_refunds(uow, order_factory):
    await _create(uow, order_factory())

    async with uow() as tx:
        order = await tx.order_repository.get_by_id(42)
        order.create_refund(Decimal("50.00"), "damaged", gateway_refund_id="r1")
        order.add_note("GenPay: The transaction received a partial refund.")
        await tx.order_repository.update(order)

    assert order.version == 2
    assert order.refunds[0].id is not None

    async with uow(readonly=True) as tx:
        stored = await tx.order_repository.get_by_id(42)
    assert [r.gateway_refund_id for r in stored.refunds] == ["r1"]
    assert stored.refunds[0].amount == Decimal("50.00")
    assert stored.remaining_refundable == Decimal("100.00")
    assert stored.notes == ["GenPay: The transaction received a partial refund."]


@pytest.mark.asyncio
async def test_outdated_order_is_rejected(uow, order_factory):
    await _create(uow, order_factory())
    async with uow(readonly=True) as tx:
        outdated = await tx.order_repository.get_by_id(42)

    async with uow() as tx:
        fresh = await tx.order_repository.get_by_id(42)
        fresh.add_note("first writer")
        await tx.order_repository.update(fresh)

    outdated.add_note("second writer")
    with pytest.raises(ConcurrentModificationException) as exc_info:
        async with uow() as tx:
            await tx.order_repository.update(outdated)

    assert exc_info.value.details["expected_version"] == 1
    assert exc_info.value.details["actual_version"] == 2
    async with uow(readonly=True) as tx:
        assert (await tx.order_repository.get_by_id(42)).notes == ["first writer"]


@pytest.mark.asyncio
async def test_row_changed_under_loaded_order_is_rejected(session_factory, order_factory):
    async with session_factory() as session:
        async with session.begin():
            await SQLAlchemyOrderRepository(session).create(order_factory())

    async with session_factory() as session:
        repository = SQLAlchemyOrderRepository(session)
        with pytest.raises(ConcurrentModificationException):
            async with session.begin():
                order = await repository.get_by_id(42)
                # Keep the loaded row in the identity map while another writer bumps it
                loaded = (await session.execute(select(OrderModel).where(OrderModel.id == 42))).scalar_one()
                await session.execute(
                    update(OrderModel)
                    .where(OrderModel.id == 42)
                    .values(version=OrderModel.version + 1)
                    .execution_options(synchronize_session=False)
                )
                assert loaded.version == 1
                order.add_note("lost update")
                await repository.update(order)


@pytest.mark.asyncio
async def test_transaction_round_trip(uow, order_factory):
    transaction = PaymentTransaction(
        id=None,
        order_id=42,
        transaction_id="tx-1",
        display=PaymentDisplay(
            payment_method="credit_card",
            amount=Decimal("150.00"),
            card_brand="Visa",
            card_number="4111********1111",
            installments=3,
        ),
    )
    await _create(uow, order_factory(), transaction)

    async with uow() as tx:
        stored = await tx.transaction_repository.get_by_transaction_id("tx-1")
        stored.record_refund("r1")
        stored.record_refund("r2")
        stored.mark_declined()
        stored.last_status = "declined"
        await tx.transaction_repository.update(stored)

    async with uow(readonly=True) as tx:
        reloaded = await tx.transaction_repository.get_by_order_id(42)

    assert reloaded.transaction_id == "tx-1"
    assert reloaded.refunded_ids == ["r1", "r2"]
    assert reloaded.declined is True
    assert reloaded.last_status == "declined"
    assert reloaded.display.card_brand == "Visa"
    assert reloaded.display.installments == 3
    assert reloaded.version == 2


@pytest.mark.asyncio
async def test_outdated_transaction_is_rejected(uow, order_factory):
    await _create(uow, order_factory(), PaymentTransaction(id=None, order_id=42, transaction_id="tx-1"))
    async with uow(readonly=True) as tx:
        outdated = await tx.transaction_repository.get_by_order_id(42)

    async with uow() as tx:
        fresh = await tx.transaction_repository.get_by_order_id(42)
        fresh.record_refund("r1")
        await tx.transaction_repository.update(fresh)

    outdated.record_refund("r1")
    with pytest.raises(ConcurrentModificationException):
        async with uow() as tx:
            await tx.transaction_repository.update(outdated)


@pytest.mark.asyncio
async def test_failed_unit_of_work_persists_nothing(uow, order_factory):
    with pytest.raises(RuntimeError):
        async with uow() as tx:
            await tx.order_repository.create(order_factory())
            raise RuntimeError("boom")

    async with uow(readonly=True) as tx:
        assert await tx.order_repository.get_by_id(42) is None
