import pytest

from application.services.shipping_service import ShippingService
from domain.common.exceptions import OrderNotFoundException
from domain.order.entity import ShipmentTracking
from infrastructure.external.cache.locks import InProcessOrderLock


class StubLogistics:
    def __init__(self, tracking=None):
        self.tracking = tracking
        self.batches = []

    async def create_calculation(self, payload):
        return {"status": "OK", "content": {"shipping_options": []}}

    async def create_batch(self, payload):
        self.batches.append(payload)
        return {"status": "OK"}

    async def get_order(self, order_id):
        return self.tracking


def _service(logistics, uow_factory) -> ShippingService:
    return ShippingService(logistics, uow_factory=uow_factory, locks=InProcessOrderLock(blocking_timeout=1))


@pytest.mark.asyncio
async def test_dispatch_stores_tracking_metadata(uow_factory, seed_store, order_factory, store):
    seed_store(order_factory())
    tracking = ShipmentTracking(tracking_code="BR1", print_url="https://print/1", batch_code="77", volume="1")
    service = _service(StubLogistics(tracking), uow_factory)

    result = await service.dispatch_batch(42, {"order": {"id": 42}})

    assert result == tracking
    assert store.orders[42].metadata["genlog_tracking_code"] == "BR1"
    assert store.orders[42].metadata["genlog_batch_print_url"] == "https://print/1"
    assert store.orders[42].notes[-1] == "GenLog: Shipment dispatched, tracking code BR1."


@pytest.mark.asyncio
async def test_dispatch_without_tracking_leaves_order(uow_factory, seed_store, order_factory, store):
    seed_store(order_factory())
    logistics = StubLogistics(None)

    assert await _service(logistics, uow_factory).dispatch_batch(42, {}) is None
    assert logistics.batches == [{}]
    assert store.orders[42].metadata == {}


@pytest.mark.asyncio
async def test_dispatch_unknown_order(uow_factory):
    with pytest.raises(OrderNotFoundException):
        await _service(StubLogistics(), uow_factory).dispatch_batch(7, {})


@pytest.mark.asyncio
async def test_quote_passes_through(uow_factory):
    content = await _service(StubLogistics(), uow_factory).quote({"zipcode": "01001000"})
    assert content["status"] == "OK"
