"""Spend-guarded generation: charge if and only if generation succeeds."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.database.models import TransactionType
from src.modules.auth.retry import RetryPolicy
from src.modules.gems.exceptions import (
    BalanceStoreUnavailableError,
    GenerationFailedError,
    InsufficientGemsError,
    RefundFailedError,
)
from src.modules.gems.ledger import LedgerClient
from src.modules.gems.spend import (
    SpendFailure,
    SpendGuard,
    SpendPolicy,
)
from src.modules.gems.store import FeatureCost
from src.modules.generation.client import GenerationResult

NO_WAIT = RetryPolicy(attempts=2, base_delay=0, max_delay=0)


def ok_result(url: str = "https://cdn.example.com/out.png") -> GenerationResult:
    return GenerationResult(result={"imageUrl": url}, output_refs=[url])


@pytest.mark.asyncio
async def test_happy_path_deducts_once_and_logs_usage(
    ledger_factory, memory_store, usage_log, user_id
):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)
    generate = AsyncMock(return_value=ok_result())

    assert ledger.can_afford("dress-change") is True
    outcome = await guard.run(
        "dress-change",
        generate,
        {"prompt": "red dress"},
        input_refs=["https://cdn.example.com/in.png", ""],
    )

    assert outcome.success
    assert outcome.charged is True
    assert outcome.amount == 3
    assert outcome.balance == 7
    assert ledger.get_balance() == 7
    assert memory_store.balance_of(user_id) == 7
    generate.assert_awaited_once_with({"prompt": "red dress"})

    assert len(usage_log.entries) == 1
    entry = usage_log.entries[0]
    assert entry.user_id == user_id
    assert entry.feature_key == "dress-change"
    assert entry.input_refs == ["https://cdn.example.com/in.png"]
    assert entry.output_refs == ["https://cdn.example.com/out.png"]


@pytest.mark.asyncio
async def test_insufficient_funds_never_calls_deduct_or_generate(
    ledger_factory, memory_store, usage_log, user_id
):
    ledger = await ledger_factory(balance=2)
    guard = SpendGuard(ledger, usage_log)
    generate = AsyncMock(return_value=ok_result())

    assert ledger.can_afford("dress-change") is False
    outcome = await guard.run("dress-change", generate, {})

    assert outcome.failure == SpendFailure.INSUFFICIENT_FUNDS
    assert outcome.charged is False
    assert outcome.balance == 2
    generate.assert_not_awaited()
    assert memory_store.balance_of(user_id) == 2
    assert [t.transaction_type for t in memory_store.transactions] == ["topup"]


@pytest.mark.asyncio
async def test_generation_error_is_refunded_to_original_balance(
    ledger_factory, memory_store, usage_log, user_id
):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)
    generate = AsyncMock(side_effect=RuntimeError("model crashed"))

    outcome = await guard.run("dress-change", generate, {}, policy=SpendPolicy.DEDUCT_FIRST)

    assert outcome.failure == SpendFailure.GENERATION_FAILED
    assert outcome.error == "model crashed"
    assert outcome.charged is False
    assert outcome.balance == 10
    assert memory_store.balance_of(user_id) == 10
    assert usage_log.entries == []

    deltas = [(t.transaction_type, t.gems_amount) for t in memory_store.transactions[1:]]
    assert deltas == [
        (TransactionType.DEDUCTION.value, -3),
        (TransactionType.REFUND.value, 3),
    ]


@pytest.mark.asyncio
async def test_empty_result_counts_as_failure(ledger_factory, memory_store, usage_log, user_id):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)

    outcome = await guard.run("dress-change", AsyncMock(return_value={"result": None}), {})

    assert outcome.failure == SpendFailure.GENERATION_FAILED
    assert outcome.error == "Generation returned no result"
    assert memory_store.balance_of(user_id) == 10


@pytest.mark.asyncio
async def test_error_payload_counts_as_failure(ledger_factory, memory_store, usage_log, user_id):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)

    outcome = await guard.run(
        "dress-change", AsyncMock(return_value={"error": "NSFW content"}), {}
    )

    assert outcome.failure == SpendFailure.GENERATION_FAILED
    assert outcome.error == "NSFW content"
    assert memory_store.balance_of(user_id) == 10


@pytest.mark.asyncio
async def test_refund_matches_deducted_amount_when_cost_changes_mid_flight(
    ledger_factory, memory_store, cost_resolver, usage_log, user_id
):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)

    async def generate(payload):
        memory_store.set_feature_cost(FeatureCost("dress-change", 5, "Dress Change", "high-impact"))
        await cost_resolver.refresh()
        raise RuntimeError("timeout")

    outcome = await guard.run("dress-change", generate, {})

    assert cost_resolver.get_cost_sync("dress-change") == 5
    assert outcome.amount == 3
    assert memory_store.balance_of(user_id) == 10


@pytest.mark.asyncio
async def test_failed_refund_is_reported_as_charged(
    ledger_factory, memory_store, usage_log, user_id, monkeypatch
):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)
    monkeypatch.setattr(memory_store, "credit", AsyncMock(side_effect=ConnectionError("down")))

    outcome = await guard.run("dress-change", AsyncMock(side_effect=RuntimeError("boom")), {})

    assert outcome.failure == SpendFailure.REFUND_FAILED
    assert outcome.charged is True
    assert outcome.balance == 7
    assert memory_store.balance_of(user_id) == 7

    with pytest.raises(RefundFailedError) as exc_info:
        outcome.raise_for_failure()
    assert exc_info.value.status_code == 500
    assert exc_info.value.details["charged"] is True
    assert exc_info.value.details["balance"] == 7


@pytest.mark.asyncio
async def test_store_rejection_at_charge_time_aborts_generation(
    ledger_factory, memory_store, usage_log, user_id
):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)
    # Another session spends most of the balance after our last refresh
    await memory_store.deduct(user_id, 9, "face-swap")
    generate = AsyncMock(return_value=ok_result())

    outcome = await guard.run("dress-change", generate, {})

    assert outcome.failure == SpendFailure.INSUFFICIENT_FUNDS
    assert outcome.charged is False
    generate.assert_not_awaited()
    assert memory_store.balance_of(user_id) == 1


@pytest.mark.asyncio
async def test_cancellation_after_charge_refunds_before_propagating(
    ledger_factory, memory_store, usage_log, user_id
):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)
    started = asyncio.Event()

    async def hang(payload):
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(guard.run("dress-change", hang, {}))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert memory_store.balance_of(user_id) == 10
    assert guard.is_processing("dress-change") is False


@pytest.mark.asyncio
async def test_second_run_for_same_feature_is_rejected_while_in_flight(
    ledger_factory, memory_store, usage_log, user_id
):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow(payload):
        started.set()
        await release.wait()
        return ok_result()

    first = asyncio.create_task(guard.run("dress-change", slow, {}))
    await started.wait()

    second = await guard.run("dress-change", slow, {})
    assert second.failure == SpendFailure.SPEND_IN_PROGRESS
    assert second.charged is False

    release.set()
    assert (await first).success
    assert memory_store.balance_of(user_id) == 7


@pytest.mark.asyncio
async def test_deduct_after_charges_only_on_success(
    ledger_factory, memory_store, usage_log, user_id
):
    ledger = await ledger_factory(balance=10)
    guard = SpendGuard(ledger, usage_log)

    failed = await guard.run(
        "dress-change",
        AsyncMock(side_effect=RuntimeError("boom")),
        {},
        policy=SpendPolicy.DEDUCT_AFTER,
    )
    assert failed.failure == SpendFailure.GENERATION_FAILED
    assert failed.charged is False
    assert memory_store.balance_of(user_id) == 10
    assert len(memory_store.transactions) == 1

    succeeded = await guard.run(
        "dress-change", AsyncMock(return_value=ok_result()), {}, policy=SpendPolicy.DEDUCT_AFTER
    )
    assert succeeded.success
    assert succeeded.charged is True
    assert succeeded.balance == 7
    assert len(usage_log.entries) == 1


@pytest.mark.asyncio
async def test_deduct_after_drift_keeps_result_and_flags_it(
    ledger_factory, memory_store, usage_log, user_id
):
    ledger = await ledger_factory(balance=4)
    guard = SpendGuard(ledger, usage_log)

    async def generate(payload):
        await memory_store.deduct(user_id, 2, "generate-caption")
        return ok_result()

    outcome = await guard.run("dress-change", generate, {}, policy=SpendPolicy.DEDUCT_AFTER)

    assert outcome.success
    assert outcome.drift is True
    assert outcome.charged is False
    assert outcome.result == {"imageUrl": "https://cdn.example.com/out.png"}
    assert memory_store.balance_of(user_id) == 2
    assert len(usage_log.entries) == 1
    outcome.raise_for_failure()


@pytest.mark.asyncio
async def test_usage_log_failure_does_not_undo_success(ledger_factory, memory_store, user_id):
    ledger = await ledger_factory(balance=10)
    broken_log = AsyncMock()
    broken_log.append.side_effect = ConnectionError("log down")
    guard = SpendGuard(ledger, broken_log)

    outcome = await guard.run("dress-change", AsyncMock(return_value=ok_result()), {})

    assert outcome.success
    assert outcome.charged is True
    broken_log.append.assert_awaited_once()
    assert memory_store.balance_of(user_id) == 7


@pytest.mark.asyncio
async def test_default_overrides_route_features_to_deduct_after(ledger_factory, usage_log):
    guard = SpendGuard(await ledger_factory(), usage_log)

    assert guard.policy_for("enhance-photo") == SpendPolicy.DEDUCT_AFTER
    assert guard.policy_for("generate-video") == SpendPolicy.DEDUCT_AFTER
    assert guard.policy_for("dress-change") == SpendPolicy.DEDUCT_FIRST

    custom = SpendGuard(
        guard.ledger, usage_log, SpendPolicy.DEDUCT_AFTER, overrides={"face-swap": SpendPolicy.DEDUCT_FIRST}
    )
    assert custom.policy_for("face-swap") == SpendPolicy.DEDUCT_FIRST
    assert custom.policy_for("dress-change") == SpendPolicy.DEDUCT_AFTER


@pytest.mark.asyncio
async def test_raise_for_failure_maps_failures_to_errors(ledger_factory, usage_log):
    ledger = await ledger_factory(balance=0)
    guard = SpendGuard(ledger, usage_log)

    outcome = await guard.run("dress-change", AsyncMock(), {})
    with pytest.raises(InsufficientGemsError) as exc_info:
        outcome.raise_for_failure()
    assert exc_info.value.status_code == 402
    assert exc_info.value.details == {
        "feature_key": "dress-change",
        "charged": False,
        "balance": 0,
        "amount": 3,
    }

    await ledger.store.credit(ledger.user_id, 5, "topup")
    await ledger.refresh()
    failed = await guard.run("dress-change", AsyncMock(side_effect=RuntimeError("x")), {})
    with pytest.raises(GenerationFailedError) as exc_info:
        failed.raise_for_failure()
    assert exc_info.value.status_code == 502
    assert exc_info.value.details["error"] == "x"


@pytest.mark.asyncio
async def test_stale_balance_is_reloaded_before_spending(
    memory_store, cost_resolver, usage_log, user_id, monkeypatch
):
    await memory_store.credit(user_id, 10, "topup")
    healthy_read = memory_store.read_balance
    monkeypatch.setattr(
        memory_store, "read_balance", AsyncMock(side_effect=ConnectionError("blip"))
    )
    ledger = LedgerClient(memory_store, cost_resolver, user_id, NO_WAIT)
    await ledger.refresh()
    assert ledger.get_balance() == 0
    assert ledger.stale is True

    # The store recovers
    monkeypatch.setattr(memory_store, "read_balance", healthy_read)
    guard = SpendGuard(ledger, usage_log)

    outcome = await guard.run("dress-change", AsyncMock(return_value=ok_result()), {})

    assert outcome.success
    assert outcome.charged is True
    assert outcome.balance == 7
    assert ledger.stale is False


@pytest.mark.asyncio
async def test_unreachable_store_is_reported_as_unavailable_not_insufficient(
    memory_store, cost_resolver, usage_log, user_id, monkeypatch
):
    await memory_store.credit(user_id, 10, "topup")
    monkeypatch.setattr(
        memory_store, "read_balance", AsyncMock(side_effect=ConnectionError("down"))
    )
    ledger = LedgerClient(memory_store, cost_resolver, user_id, NO_WAIT)
    await ledger.refresh()
    guard = SpendGuard(ledger, usage_log)
    generate = AsyncMock(return_value=ok_result())

    outcome = await guard.run("dress-change", generate, {})

    assert outcome.failure == SpendFailure.STORE_UNAVAILABLE
    assert outcome.charged is False
    generate.assert_not_awaited()
    assert memory_store.balance_of(user_id) == 10

    with pytest.raises(BalanceStoreUnavailableError) as exc_info:
        outcome.raise_for_failure()
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_unloaded_ledger_is_loaded_on_first_run(
    memory_store, cost_resolver, usage_log, user_id
):
    await memory_store.credit(user_id, 10, "topup")
    ledger = LedgerClient(memory_store, cost_resolver, user_id, NO_WAIT)
    guard = SpendGuard(ledger, usage_log)

    outcome = await guard.run("dress-change", AsyncMock(return_value=ok_result()), {})

    assert outcome.success
    assert outcome.balance == 7


@pytest.mark.asyncio
async def test_busy_while_a_spend_is_in_flight(ledger_factory, usage_log):
    guard = SpendGuard(await ledger_factory(balance=10), usage_log)
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow(payload):
        started.set()
        await release.wait()
        return ok_result()

    assert guard.busy is False
    task = asyncio.create_task(guard.run("dress-change", slow, {}))
    await started.wait()
    assert guard.busy is True

    release.set()
    await task
    assert guard.busy is False
