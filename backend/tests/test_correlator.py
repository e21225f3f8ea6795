import asyncio

import pytest

from correlator import OutcomeStatus, PendingRequestRegistry
from errors import DuplicateRequestError
from models import CorrelationId


@pytest.mark.asyncio
async def test_deliver_resolves_waiter_with_exact_payload(registry):
    rid = CorrelationId("req_a")
    handle = registry.register(rid, timeout=5)
    payload = {"imageBase64": "AAA="}

    assert registry.deliver(rid, payload) is True
    outcome = await handle.wait()

    assert outcome.status is OutcomeStatus.DELIVERED
    assert outcome.payload is payload
    assert rid not in registry


@pytest.mark.asyncio
async def test_second_delivery_is_rejected(registry):
    rid = CorrelationId("req_b")
    handle = registry.register(rid, timeout=5)
    assert registry.deliver(rid, "first")
    assert registry.deliver(rid, "second") is False
    assert (await handle.wait()).payload == "first"


@pytest.mark.asyncio
async def test_timeout_fires_no_earlier_than_deadline(registry):
    loop = asyncio.get_running_loop()
    rid = CorrelationId("req_slow")
    started = loop.time()
    handle = registry.register(rid, timeout=0.05)

    outcome = await handle.wait()

    assert outcome.status is OutcomeStatus.TIMED_OUT
    assert outcome.payload is None
    assert loop.time() - started >= 0.05 - 0.005
    assert rid not in registry
    assert registry.deliver(rid, "late") is False


@pytest.mark.asyncio
async def test_unknown_id_is_not_delivered(registry):
    assert registry.deliver(CorrelationId("never-registered"), {"x": 1}) is False
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_concurrent_requests_resolve_out_of_order(registry):
    first = registry.register(CorrelationId("req_1"), timeout=5)
    second = registry.register(CorrelationId("req_2"), timeout=5)

    async def deliver_later():
        await asyncio.sleep(0)
        registry.deliver(CorrelationId("req_2"), "two")
        await asyncio.sleep(0.01)
        registry.deliver(CorrelationId("req_1"), "one")

    waiter_one = asyncio.create_task(first.wait())
    waiter_two = asyncio.create_task(second.wait())
    await deliver_later()

    done_two = await waiter_two
    done_one = await waiter_one
    assert done_two.payload == "two"
    assert done_one.payload == "one"
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_duplicate_live_registration_fails(registry):
    registry.register(CorrelationId("req_dup"), timeout=5)
    with pytest.raises(DuplicateRequestError):
        registry.register(CorrelationId("req_dup"), timeout=5)
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_id_can_be_reused_after_expiry(registry):
    rid = CorrelationId("req_again")
    await registry.register(rid, timeout=0.01).wait()
    handle = registry.register(rid, timeout=5)
    assert registry.deliver(rid, "fresh")
    assert (await handle.wait()).payload == "fresh"


@pytest.mark.asyncio
async def test_discard_abandons_and_frees_the_id(registry):
    rid = CorrelationId("req_unsent")
    handle = registry.register(rid, timeout=5)

    assert registry.discard(rid) is True
    assert (await handle.wait()).status is OutcomeStatus.ABANDONED
    assert registry.discard(rid) is False
    assert registry.deliver(rid, "late") is False


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_request_deliverable(registry):
    rid = CorrelationId("req_cancel")
    handle = registry.register(rid, timeout=5)
    waiter = asyncio.create_task(handle.wait())
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    assert rid in registry
    assert registry.deliver(rid, "still here") is True


@pytest.mark.asyncio
async def test_close_expires_everything(registry):
    handles = [registry.register(CorrelationId(f"req_{i}"), timeout=5) for i in range(3)]
    registry.close()

    outcomes = await asyncio.gather(*(h.wait() for h in handles))
    assert {o.status for o in outcomes} == {OutcomeStatus.TIMED_OUT}
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_non_positive_timeout_rejected():
    registry = PendingRequestRegistry()
    with pytest.raises(ValueError):
        registry.register(CorrelationId("req_zero"), timeout=0)
    assert len(registry) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("timeout", [float("inf"), float("nan"), -1])
async def test_non_finite_timeout_rejected(timeout):
    registry = PendingRequestRegistry()
    with pytest.raises(ValueError):
        registry.register(CorrelationId("req_forever"), timeout=timeout)
    assert len(registry) == 0


def test_empty_registry_is_truthy():
    registry = PendingRequestRegistry()
    assert len(registry) == 0
    assert registry
