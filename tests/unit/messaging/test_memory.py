"""Unit tests for the in-memory consumer."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from email_dispatch.messaging.consumer import DeliveryDispatcher
from email_dispatch.messaging.memory import InMemoryConsumer
from email_dispatch.types.models import DeliveryOutcome
from email_dispatch.types.protocols import MessageConsumer


def _dispatcher(*outcomes: DeliveryOutcome) -> AsyncMock:
    dispatcher = AsyncMock(spec=DeliveryDispatcher)
    if outcomes:
        dispatcher.dispatch.side_effect = list(outcomes)
    else:
        dispatcher.dispatch.return_value = DeliveryOutcome.ACK
    return dispatcher


@pytest.mark.unit
class TestInMemoryConsumer:
    """Test worker lifecycle, requeue, and dead-lettering."""

    def test_satisfies_consumer_protocol(self) -> None:
        assert isinstance(InMemoryConsumer(_dispatcher()), MessageConsumer)

    @pytest.mark.parametrize("kwargs", [{"workers": 0}, {"max_deliveries": 0}])
    def test_invalid_settings(self, kwargs: dict[str, int]) -> None:
        with pytest.raises(ValueError, match="greater than zero"):
            _ = InMemoryConsumer(_dispatcher(), **kwargs)

    @pytest.mark.asyncio
    async def test_acked_deliveries_are_consumed(self) -> None:
        dispatcher = _dispatcher()
        consumer = InMemoryConsumer(dispatcher, workers=2)
        await consumer.start()
        try:
            ids = [await consumer.publish(f"payload-{i}") for i in range(3)]
            await asyncio.wait_for(consumer.join(), timeout=1)
        finally:
            await consumer.stop()

        assert dispatcher.dispatch.await_count == 3
        delivered_ids = {call.kwargs["delivery_id"] for call in dispatcher.dispatch.await_args_list}
        assert delivered_ids == set(ids)
        assert consumer.pending() == 0
        assert consumer.dead_letters == []

    @pytest.mark.asyncio
    async def test_requeued_delivery_is_retried(self) -> None:
        dispatcher = _dispatcher(DeliveryOutcome.REQUEUE, DeliveryOutcome.ACK)
        consumer = InMemoryConsumer(dispatcher, workers=1)
        await consumer.start()
        try:
            _ = await consumer.publish("payload")
            await asyncio.wait_for(consumer.join(), timeout=1)
        finally:
            await consumer.stop()

        assert dispatcher.dispatch.await_count == 2
        assert consumer.dead_letters == []

    @pytest.mark.asyncio
    async def test_dead_letter_after_max_deliveries(self) -> None:
        dispatcher = _dispatcher()
        dispatcher.dispatch.return_value = DeliveryOutcome.REQUEUE
        consumer = InMemoryConsumer(dispatcher, workers=1, max_deliveries=3)
        await consumer.start()
        try:
            _ = await consumer.publish("poison")
            await asyncio.wait_for(consumer.join(), timeout=1)
        finally:
            await consumer.stop()

        assert dispatcher.dispatch.await_count == 3
        assert len(consumer.dead_letters) == 1
        assert consumer.dead_letters[0].payload == "poison"
        assert consumer.dead_letters[0].attempt == 3

    @pytest.mark.asyncio
    async def test_stop_keeps_interrupted_delivery(self) -> None:
        started = asyncio.Event()

        async def slow_dispatch(payload: bytes | str, *, delivery_id: str | None = None) -> DeliveryOutcome:
            _ = (payload, delivery_id)
            started.set()
            await asyncio.sleep(10)
            return DeliveryOutcome.ACK

        dispatcher = _dispatcher()
        dispatcher.dispatch.side_effect = slow_dispatch
        consumer = InMemoryConsumer(dispatcher, workers=1)
        await consumer.start()
        _ = await consumer.publish("slow")
        _ = await asyncio.wait_for(started.wait(), timeout=1)

        await consumer.stop()

        assert not consumer.is_running
        assert consumer.pending() == 1

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self) -> None:
        consumer = InMemoryConsumer(_dispatcher(), workers=2)
        await consumer.start()
        await consumer.start()
        assert consumer.is_running
        await consumer.stop()
        await consumer.stop()
        assert not consumer.is_running
