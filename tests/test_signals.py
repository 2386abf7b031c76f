import asyncio

from app.fixpos.services.signals import SALE_COMPLETED, SignalBus


def test_publish_delivers_payload_to_every_subscriber():
    bus = SignalBus()
    received = []

    async def async_subscriber(signal, payload):
        received.append(("async", signal, payload["sale_id"]))

    bus.subscribe(SALE_COMPLETED, lambda signal, payload: received.append(("sync", signal, payload["sale_id"])))
    bus.subscribe(SALE_COMPLETED, async_subscriber)

    failures = asyncio.run(bus.publish(SALE_COMPLETED, {"sale_id": "s-1"}))

    assert failures == []
    assert received == [("sync", SALE_COMPLETED, "s-1"), ("async", SALE_COMPLETED, "s-1")]


def test_failing_subscriber_does_not_stop_the_rest():
    bus = SignalBus()
    received = []

    def broken(signal, payload):
        raise RuntimeError("listener down")

    bus.subscribe(SALE_COMPLETED, broken)
    bus.subscribe(SALE_COMPLETED, lambda signal, payload: received.append(signal))

    failures = asyncio.run(bus.publish(SALE_COMPLETED, {}))

    assert received == [SALE_COMPLETED]
    assert len(failures) == 1
    assert failures[0].error == "listener down"
    assert failures[0].subscriber.endswith("broken")


def test_unsubscribe_and_unknown_signals():
    bus = SignalBus()
    received = []
    unsubscribe = bus.subscribe(SALE_COMPLETED, lambda signal, payload: received.append(signal))

    unsubscribe()

    assert asyncio.run(bus.publish(SALE_COMPLETED, {})) == []
    assert asyncio.run(bus.publish("nobody-listens", {})) == []
    assert received == []
