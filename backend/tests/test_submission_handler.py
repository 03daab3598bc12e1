"""
Tests del envío del pedido: idempotencia, reintentos y aplicación del cupón.
"""

import asyncio

import pytest
from pydantic import ValidationError

from trois_quarts.services.checkout import events as ev
from trois_quarts.services.checkout.submission_handler import OrderSubmissionHandler


async def test_successful_submission(submission, advance_to_confirmation, cart_store, order_api, published):
    await advance_to_confirmation()

    result = await submission.submit(terms_accepted=True)

    assert result.success
    assert result.order_id == 1
    assert result.order_no == "ORD-20261019-0001"
    assert result.totals.total == "24.00"
    assert order_api.calls == ["key-1"]
    assert await cart_store.get_count() == 0

    confirmed = [e for e in published if e["event"] == ev.ORDER_CONFIRMED]
    assert len(confirmed) == 1
    assert confirmed[0]["orderId"] == 1
    assert confirmed[0]["totals"]["total"] == "24.00"


async def test_payload_is_frozen_snapshot(submission, advance_to_confirmation, order_api):
    await advance_to_confirmation()
    await submission.submit(terms_accepted=True)

    payload = order_api.payloads[0]
    wire = payload.to_wire()
    assert wire["idempotencyKey"] == "key-1"
    assert wire["items"] == [{"itemId": "5", "name": "Bouillabaisse", "unitPrice": "24.00", "quantity": 1}]
    assert wire["delivery"]["mode"] == "pickup"
    assert wire["clientInfo"]["firstName"] == "Marie"
    assert wire["totals"]["total"] == "24.00"


async def test_retry_reuses_key_and_returns_same_order(submission, advance_to_confirmation, cart_store, order_api):
    await advance_to_confirmation()

    first = await submission.submit(terms_accepted=True)
    second = await submission.retry()

    assert first.success and second.success
    assert first.order_id == second.order_id
    assert order_api.calls == ["key-1", "key-1"]
    assert len(order_api.orders_by_key) == 1
    # El segundo vaciado del carrito deja el mismo carrito vacío
    assert await cart_store.get_count() == 0


async def test_retry_after_success_confirms_only_once(submission, advance_to_confirmation, cart_store, published):
    await advance_to_confirmation()

    first = await submission.submit(terms_accepted=True)
    # El usuario vuelve a llenar el carrito antes de que llegue el reintento
    await cart_store.add_item("7")
    second = await submission.retry()

    assert second.success
    assert second.order_id == first.order_id
    assert second.totals == first.totals
    assert await cart_store.get_count() == 1
    confirmed = [e for e in published if e["event"] == ev.ORDER_CONFIRMED]
    assert len(confirmed) == 1


async def test_payload_is_detached_from_checkout_state(submission, checkout, advance_to_confirmation, order_api):
    await advance_to_confirmation()
    await submission.submit(terms_accepted=True)
    payload = order_api.payloads[0]

    for target, name, value in (
        (payload.delivery, "instructions", "sonner deux fois"),
        (payload.client_info, "first_name", "Jeanne"),
        (payload.payment, "mode", "cash"),
        (payload.totals, "total", "0.00"),
        (payload.items[0], "quantity", 3),
    ):
        with pytest.raises(ValidationError):
            setattr(target, name, value)

    checkout.update_delivery(instructions="code 1234")
    checkout.update_client_info(first_name="Jeanne")
    assert payload.delivery.instructions is None
    assert payload.client_info.first_name == "Marie"


async def test_network_failures_are_retried_with_same_key(submission, advance_to_confirmation, order_api):
    order_api.failures = 2
    await advance_to_confirmation()

    result = await submission.submit(terms_accepted=True)

    assert result.success
    assert order_api.calls == ["key-1", "key-1", "key-1"]


async def test_failed_submission_does_not_apply_coupon(
    submission, checkout, advance_to_confirmation, order_api, coupon_api, cart_store, published
):
    await advance_to_confirmation()
    assert (await checkout.apply_coupon_code("SAVE5")).valid
    order_api.failures = 10

    result = await submission.submit(terms_accepted=True)

    assert not result.success
    assert result.idempotency_key == "key-1"
    assert coupon_api.applied == []
    # Estado intacto para poder reintentar
    assert await cart_store.get_count() == 1
    assert checkout.state.coupon is not None
    notifications = [e for e in published if e["event"] == ev.NOTIFICATION]
    assert len(notifications) == 1
    assert notifications[0]["level"] == "error"


async def test_coupon_applied_once_after_confirmation(
    submission, checkout, advance_to_confirmation, order_api, coupon_api
):
    await advance_to_confirmation()
    await checkout.apply_coupon_code("SAVE5")

    first = await submission.submit(terms_accepted=True)
    await submission.retry()

    assert first.success
    assert first.totals.discount == "5.00"
    assert first.totals.total == "19.00"
    assert order_api.payloads[0].coupon_id == 1
    assert coupon_api.applied == [1]


async def test_non_retryable_error_is_not_retried(checkout, coupon_handler, cart_store, events, advance_to_confirmation):
    from conftest import FakeOrderAPI

    order_api = FakeOrderAPI(failures=1, retryable=False)
    handler = OrderSubmissionHandler(checkout, order_api, coupon_handler, cart_store, events, max_attempts=3)
    await advance_to_confirmation()

    result = await handler.submit(terms_accepted=True)

    assert not result.success
    assert len(order_api.calls) == 1


async def test_terms_must_be_accepted(submission, advance_to_confirmation, order_api):
    await advance_to_confirmation()

    result = await submission.submit(terms_accepted=False)

    assert not result.success
    assert order_api.calls == []


async def test_submit_requires_confirmation_step(submission, cart_store, order_api):
    await cart_store.add_item("5")

    result = await submission.submit(terms_accepted=True)

    assert not result.success
    assert order_api.calls == []


async def test_cart_emptied_elsewhere_blocks_submission(submission, advance_to_confirmation, cart_store, order_api):
    await advance_to_confirmation()
    await cart_store.clear()

    result = await submission.submit(terms_accepted=True)

    assert not result.success
    assert order_api.calls == []


async def test_double_submission_is_ignored(submission, advance_to_confirmation, order_api):
    await advance_to_confirmation()

    first, second = await asyncio.gather(
        submission.submit(terms_accepted=True),
        submission.submit(terms_accepted=True),
    )

    assert [first.success, second.success].count(True) == 1
    assert order_api.calls == ["key-1"]


async def test_each_user_attempt_gets_new_key(submission, checkout, advance_to_confirmation, cart_store, order_api):
    await advance_to_confirmation()
    await submission.submit(terms_accepted=True)

    await cart_store.add_item("7")
    await submission.submit(terms_accepted=True)

    assert order_api.calls == ["key-1", "key-2"]
    assert len(order_api.orders_by_key) == 2


async def test_retry_without_previous_attempt(submission):
    result = await submission.retry()
    assert not result.success
