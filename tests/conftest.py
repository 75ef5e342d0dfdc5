"""Pytest bootstrap configuration.

Ensure environment variables are set before test collection and module
imports that depend on application settings, and provide in-memory
stand-ins for the persistence, gateway and notification ports.
"""
import copy
import os
from decimal import Decimal
from typing import Any, Optional

import pytest

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")

from application.dtos.payments import GatewayResponse  # noqa: E402
from core.settings import GenPayConfig  # noqa: E402
from domain.common.exceptions import ConcurrentModificationException  # noqa: E402
from domain.common.unit_of_work import AbstractUnitOfWork  # noqa: E402
from domain.order.entity import (  # noqa: E402
    Address,
    BillingContact,
    Category,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethodKind,
)
from domain.order.repository import OrderRepository  # noqa: E402
from domain.payment.entity import PaymentTransaction  # noqa: E402
from domain.payment.repository import PaymentTransactionRepository  # noqa: E402
from infrastructure.external.cache.locks import InProcessOrderLock  # noqa: E402


class InMemoryStore:
    def __init__(self):
        self.orders: dict[int, Order] = {}
        self.transactions: dict[int, PaymentTransaction] = {}
        self._tx_seq = 0
        self._refund_seq = 0

    def next_tx_id(self) -> int:
        self._tx_seq += 1
        return self._tx_seq

    def next_refund_id(self) -> int:
        self._refund_seq += 1
        return self._refund_seq


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, store: InMemoryStore, orders: dict):
        self.store = store
        self.orders = orders

    async def get_by_id(self, order_id):
        order = self.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def create(self, order):
        order.version = 1
        self.orders[order.id] = copy.deepcopy(order)
        return order

    async def update(self, order):
        stored = self.orders[order.id]
        if stored.version != order.version:
            raise ConcurrentModificationException("Order", order.id, order.version, stored.version)
        for refund in order.refunds:
            if refund.id is None:
                refund.id = self.store.next_refund_id()
        order.version += 1
        self.orders[order.id] = copy.deepcopy(order)
        return order


class InMemoryTransactionRepository(PaymentTransactionRepository):
    def __init__(self, store: InMemoryStore, transactions: dict):
        self.store = store
        self.transactions = transactions

    async def get_by_order_id(self, order_id):
        for tx in self.transactions.values():
            if tx.order_id == order_id:
                return copy.deepcopy(tx)
        return None

    async def get_by_transaction_id(self, transaction_id):
        for tx in self.transactions.values():
            if tx.transaction_id == transaction_id:
                return copy.deepcopy(tx)
        return None

    async def create(self, transaction):
        transaction.id = self.store.next_tx_id()
        transaction.version = 1
        self.transactions[transaction.id] = copy.deepcopy(transaction)
        return transaction

    async def update(self, transaction):
        stored = self.transactions[transaction.id]
        if stored.version != transaction.version:
            raise ConcurrentModificationException(
                "PaymentTransaction", transaction.id, transaction.version, stored.version
            )
        transaction.version += 1
        self.transactions[transaction.id] = copy.deepcopy(transaction)
        return transaction


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Works on copies of the store; commit publishes them."""

    def __init__(self, store: InMemoryStore, *, readonly: bool = False):
        super().__init__(readonly=readonly)
        self.store = store

    async def __aenter__(self):
        self._orders = copy.deepcopy(self.store.orders)
        self._transactions = copy.deepcopy(self.store.transactions)
        self.order_repository = InMemoryOrderRepository(self.store, self._orders)
        self.transaction_repository = InMemoryTransactionRepository(self.store, self._transactions)
        return self

    async def commit(self):
        if not self._readonly:
            self.store.orders = self._orders
            self.store.transactions = self._transactions
        self._committed = True

    async def rollback(self):
        self._committed = False


class StubGateway:
    """Scripted PaymentGateway; queue responses or exceptions per operation."""

    provider = "genpay"

    def __init__(self, signature_key: str = "sig-key"):
        self.signature_key = signature_key
        self.calls: list[tuple[str, Any]] = []
        self.charge_result: Any = GatewayResponse(200, {"charge_uuid": "tx-1", "result": "approved"})
        self.cancel_result: Any = GatewayResponse(200, {"result": "success"})
        self.refund_result: Any = GatewayResponse(200, {"result": "success", "refunds": [{"id": "r1"}]})
        self.transaction_result: Any = {"payments": [{"id": "p1"}]}
        self.installments_result: Any = []

    @staticmethod
    def _resolve(result):
        if isinstance(result, Exception):
            raise result
        return result

    def verify_signature(self, body: bytes, signature: Optional[str]) -> bool:
        from infrastructure.external.payments.signing import verify

        return verify(self.signature_key, body, signature)

    async def charge(self, req):
        self.calls.append(("charge", req))
        return self._resolve(self.charge_result)

    async def cancel(self, transaction_id):
        self.calls.append(("cancel", transaction_id))
        return self._resolve(self.cancel_result)

    async def refund(self, transaction_id, kind, req):
        self.calls.append(("refund", (transaction_id, kind, req)))
        return self._resolve(self.refund_result)

    async def get_transaction(self, transaction_id):
        self.calls.append(("get_transaction", transaction_id))
        return self._resolve(self.transaction_result)

    async def get_installments(self, amount):
        self.calls.append(("get_installments", amount))
        return self._resolve(self.installments_result)

    async def billet_download(self, transaction_id):
        return "<html>billet</html>"

    async def verify_credentials(self, document, api_key, environment):
        return 200


class RecordingNotifier:
    def __init__(self):
        self.merchant: list[tuple[str, str, str]] = []
        self.customer: list[tuple[str, str, str, str]] = []

    async def notify_merchant(self, subject, title, message):
        self.merchant.append((subject, title, message))

    async def notify_customer(self, recipient, subject, title, message):
        self.customer.append((recipient, subject, title, message))


def make_order(**overrides) -> Order:
    data = dict(
        id=42,
        number="1042",
        status=OrderStatus.PENDING,
        payment_method=PaymentMethodKind.CREDIT_CARD,
        total=Decimal("150.00"),
        subtotal=Decimal("140.00"),
        shipping_total=Decimal("10.00"),
        total_tax=Decimal("0.00"),
        discount_total=Decimal("0.00"),
        customer_ip="10.0.0.1",
        billing=BillingContact(
            first_name="João",
            last_name="Silva",
            email="joao@example.com",
            phone="(11) 98765-4321",
        ),
        billing_address=Address(
            street="Rua das Flores",
            number="100",
            district="Centro",
            city="São Paulo",
            state="SP",
            country="BR",
            postcode="01001-000",
        ),
        items=[
            OrderItem(
                product_id=7,
                name="Camiseta",
                unit_price=Decimal("70.00"),
                quantity=2,
                total=Decimal("140.00"),
                sku="CAMISÉTA-01",
                categories=[Category(id="3", name="Roupas")],
            )
        ],
        version=1,
    )
    data.update(overrides)
    return Order(**data)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store):
    def factory(readonly: bool = False):
        return InMemoryUnitOfWork(store, readonly=readonly)
    return factory


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def genpay_config() -> GenPayConfig:
    return GenPayConfig(
        document="12345678000199",
        api_key="api-key",
        signature_key="sig-key",
        webhook_url="https://shop.example.com/api/v1/payments/webhooks/genpay",
        dashboard_url="https://dashboard.genpay.com.br",
        merchant_email="merchant@example.com",
    )


@pytest.fixture
def payment_service(gateway, uow_factory, notifier, genpay_config):
    from application.services.payment_service import PaymentService

    return PaymentService(
        gateway,
        uow_factory=uow_factory,
        notifier=notifier,
        locks=InProcessOrderLock(blocking_timeout=1),
        config=genpay_config,
        thank_you_url="https://shop.example.com/checkout/order-received/{order_id}",
        billet_base_url="https://shop.example.com/api/v1/payments/billets",
    )


def seed(store: InMemoryStore, order: Order, transaction: Optional[PaymentTransaction] = None) -> None:
    store.orders[order.id] = copy.deepcopy(order)
    if transaction is not None:
        if transaction.id is None:
            transaction.id = store.next_tx_id()
        store.transactions[transaction.id] = copy.deepcopy(transaction)


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def seed_store(store):
    def _seed(order: Order, transaction: Optional[PaymentTransaction] = None) -> None:
        seed(store, order, transaction)
    return _seed
