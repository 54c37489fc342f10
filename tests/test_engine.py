from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from token_swap.domain.asset import AssetQuote
from token_swap.domain.errors import ConversionError, ErrorKind
from token_swap.domain.session import AssetRole, Phase

from tests.fakes import QUOTED_AT, FakeCatalog, FakeExecution, build_engine, wait_for_phase, wait_until


def assert_consistent(engine):
    """A session never shows a validation error next to a converted amount."""
    session = engine.session
    if session.validation_error is not None:
        assert session.target_amount_text == ""
        assert session.phase in (Phase.READY, Phase.SWAPPING)
    if session.source_asset is not None and session.target_asset is not None:
        assert session.source_asset.symbol != session.target_asset.symbol


# ---------------------------------------------------------------- catalog load


@pytest.mark.asyncio
async def test_load_catalog_selects_default_pair(engine):
    assert engine.phase is Phase.IDLE
    snapshot = await engine.load_catalog()
    assert snapshot.phase == "Ready"
    assert snapshot.source_asset.symbol == "ETH"
    assert snapshot.target_asset.symbol == "USDT"
    assert snapshot.rate == "2500"
    assert snapshot.error is None


@pytest.mark.asyncio
async def test_phase_is_catalog_loading_until_fetch_settles(engine, catalog):
    catalog.gate = asyncio.Event()
    task = asyncio.create_task(engine.load_catalog())
    await wait_for_phase(engine, Phase.CATALOG_LOADING)
    assert engine.snapshot().source_asset is None
    catalog.gate.set()
    await task
    assert engine.phase is Phase.READY


@pytest.mark.asyncio
async def test_defaults_fall_back_when_configured_symbols_missing(execution):
    quotes = [AssetQuote("BNB", Decimal("320"), QUOTED_AT), AssetQuote("SOL", Decimal("150"), QUOTED_AT)]
    engine = build_engine(FakeCatalog(quotes), execution)
    snapshot = await engine.load_catalog()
    assert snapshot.source_asset.symbol == "BNB"
    assert snapshot.target_asset.symbol == "SOL"


@pytest.mark.asyncio
async def test_default_source_comes_from_wallet(catalog, execution):
    engine = build_engine(catalog, execution, balances={"SOL": Decimal("3")})
    snapshot = await engine.load_catalog()
    assert snapshot.source_asset.symbol == "SOL"
    assert snapshot.target_asset.symbol == "USDT"


@pytest.mark.asyncio
async def test_fetch_error_leaves_degraded_ready_state(engine, catalog):
    catalog.error = ConversionError(ErrorKind.FETCH_ERROR, "Failed to load tokens")
    snapshot = await engine.load_catalog()
    assert snapshot.phase == "Ready"
    assert snapshot.error.code == "FetchError"
    assert snapshot.source_asset is None
    assert engine.directory.assets() == []

    # the error persists across unrelated edits
    await engine.set_source_amount_text("1")
    assert engine.snapshot().error.code == "FetchError"

    catalog.error = None
    snapshot = await engine.load_catalog()
    assert snapshot.error is None
    assert snapshot.source_asset.symbol == "ETH"
    assert snapshot.target_amount == "2500.0000"


@pytest.mark.asyncio
async def test_catalog_load_times_out(catalog, execution):
    engine = build_engine(catalog, execution, load_timeout_sec=0.01)
    catalog.gate = asyncio.Event()
    snapshot = await engine.load_catalog()
    assert snapshot.phase == "Ready"
    assert snapshot.error.code == "Timeout"


@pytest.mark.asyncio
async def test_refresh_rebinds_assets_and_recomputes(ready_engine, catalog):
    await ready_engine.set_source_amount_text("1")
    assert ready_engine.snapshot().target_amount == "2500.0000"
    catalog.quotes = [
        AssetQuote("ETH", Decimal("3000"), QUOTED_AT),
        AssetQuote("USDT", Decimal("1"), QUOTED_AT),
    ]
    snapshot = await ready_engine.load_catalog()
    assert snapshot.phase == "Ready"
    assert snapshot.source_asset.unit_price == "3000"
    assert snapshot.target_amount == "3000.0000"
    assert snapshot.source_amount == "1"


@pytest.mark.asyncio
async def test_intents_before_catalog_are_rejected(engine):
    with pytest.raises(ConversionError) as exc:
        await engine.set_source_amount_text("1")
    assert exc.value.kind is ErrorKind.NOT_READY
    with pytest.raises(ConversionError) as exc:
        await engine.select_asset("ETH", AssetRole.SOURCE)
    assert exc.value.kind is ErrorKind.NOT_READY


# -------------------------------------------------------------- amount input


@pytest.mark.asyncio
async def test_amount_converts_at_current_rate(ready_engine):
    snapshot = await ready_engine.set_source_amount_text("12.5")
    assert snapshot.target_amount == "31250.0000"
    assert snapshot.error is None
    assert_consistent(ready_engine)


@pytest.mark.asyncio
@pytest.mark.parametrize("digits", [25, 40, 120])
async def test_long_amount_converts_exactly(ready_engine, digits):
    text = "1" * digits
    snapshot = await ready_engine.set_source_amount_text(text)
    assert snapshot.error is None
    assert snapshot.source_amount == text
    assert snapshot.target_amount == f"{int(text) * 2500}.0000"
    assert_consistent(ready_engine)

    snapshot = await ready_engine.select_asset("BTC", AssetRole.TARGET)
    assert snapshot.error is None
    assert snapshot.target_amount != ""


@pytest.mark.asyncio
async def test_rejected_amount_blanks_target(ready_engine):
    await ready_engine.set_source_amount_text("2")
    snapshot = await ready_engine.set_source_amount_text("2x")
    assert snapshot.error.code == "MalformedNumber"
    assert snapshot.target_amount == ""
    assert snapshot.source_amount == "2x"
    assert_consistent(ready_engine)

    snapshot = await ready_engine.set_source_amount_text("0")
    assert snapshot.error.code == "NonPositiveAmount"
    assert snapshot.target_amount == ""


@pytest.mark.asyncio
@pytest.mark.parametrize("previous", ["abc", "0", "5", "-1"])
async def test_empty_text_clears_target_and_error(ready_engine, previous):
    await ready_engine.set_source_amount_text(previous)
    snapshot = await ready_engine.set_source_amount_text("")
    assert snapshot.source_amount == ""
    assert snapshot.target_amount == ""
    assert snapshot.error is None


@pytest.mark.asyncio
async def test_insufficient_balance_clears_when_asset_changes(wallet_engine):
    snapshot = await wallet_engine.set_source_amount_text("3")
    assert snapshot.error.code == "InsufficientBalance"
    assert snapshot.error.details["max_amount"] == "2.5"
    assert snapshot.target_amount == ""
    assert_consistent(wallet_engine)

    snapshot = await wallet_engine.select_asset("USDC", AssetRole.SOURCE)
    assert snapshot.error is None
    assert snapshot.source_amount == "3"
    assert snapshot.target_amount == "3.0000"


# ---------------------------------------------------------------- selection


@pytest.mark.asyncio
async def test_selecting_source_equal_to_target_clears_target(ready_engine):
    await ready_engine.set_source_amount_text("1")
    snapshot = await ready_engine.select_asset("USDT", AssetRole.SOURCE)
    assert snapshot.source_asset.symbol == "USDT"
    assert snapshot.target_asset is None
    assert snapshot.target_amount == ""
    assert snapshot.rate is None
    assert_consistent(ready_engine)


@pytest.mark.asyncio
async def test_selecting_target_equal_to_source_clears_source(ready_engine):
    snapshot = await ready_engine.select_asset("eth", "Target")
    assert snapshot.target_asset.symbol == "ETH"
    assert snapshot.source_asset is None
    assert_consistent(ready_engine)


@pytest.mark.asyncio
async def test_select_target_recomputes(ready_engine):
    await ready_engine.set_source_amount_text("2")
    snapshot = await ready_engine.select_asset("BTC", AssetRole.TARGET)
    assert snapshot.target_amount == "0.1111"


@pytest.mark.asyncio
async def test_select_unknown_symbol(ready_engine):
    with pytest.raises(ConversionError) as exc:
        await ready_engine.select_asset("DOGE", AssetRole.TARGET)
    assert exc.value.kind is ErrorKind.UNKNOWN_ASSET
    assert ready_engine.snapshot().target_asset.symbol == "USDT"


# --------------------------------------------------------------------- swap


@pytest.mark.asyncio
async def test_swap_exchanges_assets_and_amounts(ready_engine):
    await ready_engine.set_source_amount_text("2")
    snapshot = await ready_engine.swap()
    assert snapshot.phase == "Ready"
    assert snapshot.source_asset.symbol == "USDT"
    assert snapshot.target_asset.symbol == "ETH"
    assert snapshot.source_amount == "5000.0000"
    assert snapshot.target_amount == "2.0000"


@pytest.mark.asyncio
async def test_swap_without_pair_is_a_noop(ready_engine):
    await ready_engine.select_asset("USDT", AssetRole.SOURCE)
    snapshot = await ready_engine.swap()
    assert snapshot.source_asset.symbol == "USDT"
    assert snapshot.target_asset is None


@pytest.mark.asyncio
async def test_swap_is_observable_until_confirmed(catalog, execution):
    gate = asyncio.Event()

    async def confirm(source, target):
        await gate.wait()

    engine = build_engine(catalog, execution, confirm_swap=confirm)
    await engine.load_catalog()
    task = asyncio.create_task(engine.swap())
    await wait_for_phase(engine, Phase.SWAPPING)
    assert engine.snapshot().source_asset.symbol == "ETH"
    gate.set()
    snapshot = await task
    assert snapshot.phase == "Ready"
    assert snapshot.source_asset.symbol == "USDT"


@pytest.mark.asyncio
async def test_swaps_complete_in_request_order(catalog, execution):
    gates = [asyncio.Event(), asyncio.Event()]
    seen = []

    async def confirm(source, target):
        index = len(seen)
        seen.append((source.symbol, target.symbol))
        await gates[index].wait()

    engine = build_engine(catalog, execution, confirm_swap=confirm)
    await engine.load_catalog()
    first = asyncio.create_task(engine.swap())
    await wait_for_phase(engine, Phase.SWAPPING)
    second = asyncio.create_task(engine.swap())

    gates[1].set()
    for _ in range(20):
        await asyncio.sleep(0)
    assert not first.done()
    assert not second.done()

    gates[0].set()
    first_snapshot = await first
    second_snapshot = await second
    assert seen == [("ETH", "USDT"), ("USDT", "ETH")]
    assert first_snapshot.source_asset.symbol == "USDT"
    assert second_snapshot.source_asset.symbol == "ETH"


@pytest.mark.asyncio
async def test_amount_edit_during_swap_is_applied_after_it(catalog, execution):
    gate = asyncio.Event()

    async def confirm(source, target):
        await gate.wait()

    engine = build_engine(catalog, execution, confirm_swap=confirm)
    await engine.load_catalog()
    await engine.set_source_amount_text("2")
    swap = asyncio.create_task(engine.swap())
    await wait_for_phase(engine, Phase.SWAPPING)
    edit = asyncio.create_task(engine.set_source_amount_text("1"))
    for _ in range(20):
        await asyncio.sleep(0)
    assert engine.session.source_amount_text == "2"

    gate.set()
    await swap
    snapshot = await edit
    assert snapshot.source_asset.symbol == "USDT"
    assert snapshot.source_amount == "1"
    assert snapshot.target_amount == "0.0004"


# ------------------------------------------------------------------- submit


@pytest.mark.asyncio
async def test_submit_success_clears_amounts(ready_engine, execution):
    await ready_engine.set_source_amount_text("1.5")
    receipt = await ready_engine.submit()
    assert receipt.transaction_id == "0xabc123"
    assert receipt.source_amount == "1.5"
    assert receipt.target_amount == "3750.0000"
    assert execution.calls == [("ETH", "USDT", Decimal("1.5"))]

    snapshot = ready_engine.snapshot()
    assert snapshot.phase == "Ready"
    assert snapshot.source_amount == ""
    assert snapshot.target_amount == ""
    assert snapshot.last_receipt.transaction_id == "0xabc123"


@pytest.mark.asyncio
async def test_submit_failure_preserves_input(ready_engine, execution):
    execution.error = ConversionError(ErrorKind.SUBMIT_FAILURE, "Insufficient liquidity")
    await ready_engine.set_source_amount_text("1")
    with pytest.raises(ConversionError) as exc:
        await ready_engine.submit()
    assert exc.value.kind is ErrorKind.SUBMIT_FAILURE

    snapshot = ready_engine.snapshot()
    assert snapshot.phase == "Ready"
    assert snapshot.error.code == "SubmitFailure"
    assert snapshot.error.message == "Insufficient liquidity"
    assert snapshot.source_amount == "1"
    assert snapshot.target_amount == "2500.0000"

    snapshot = await ready_engine.set_source_amount_text("1.0")
    assert snapshot.error is None


@pytest.mark.asyncio
async def test_submit_unexpected_error_becomes_submit_failure(ready_engine, execution):
    execution.error = RuntimeError("socket closed")
    await ready_engine.set_source_amount_text("1")
    with pytest.raises(ConversionError) as exc:
        await ready_engine.submit()
    assert exc.value.kind is ErrorKind.SUBMIT_FAILURE
    assert exc.value.message == "Swap failed. Please try again."
    assert ready_engine.phase is Phase.READY


@pytest.mark.asyncio
async def test_submit_same_asset_fails_without_transition(ready_engine, execution):
    await ready_engine.set_source_amount_text("1")
    ready_engine.session.target_asset = ready_engine.session.source_asset
    with pytest.raises(ConversionError) as exc:
        await ready_engine.submit()
    assert exc.value.kind is ErrorKind.SAME_ASSET
    assert ready_engine.phase is Phase.READY
    assert execution.calls == []


@pytest.mark.asyncio
async def test_second_submit_while_in_flight_is_rejected(ready_engine, execution):
    execution.gate = asyncio.Event()
    await ready_engine.set_source_amount_text("1")
    first = asyncio.create_task(ready_engine.submit())
    await wait_for_phase(ready_engine, Phase.SUBMITTING)

    with pytest.raises(ConversionError) as exc:
        await ready_engine.submit()
    assert exc.value.kind is ErrorKind.ALREADY_SUBMITTING
    assert ready_engine.session.source_amount_text == "1"
    assert ready_engine.session.current_error is None

    execution.gate.set()
    receipt = await first
    assert receipt.transaction_id == "0xabc123"
    assert ready_engine.snapshot().source_amount == ""
    assert len(execution.calls) == 1


@pytest.mark.asyncio
async def test_submit_queued_behind_swap_still_blocks_second_submit(catalog, execution):
    gate = asyncio.Event()

    async def confirm(source, target):
        await gate.wait()

    engine = build_engine(catalog, execution, confirm_swap=confirm)
    await engine.load_catalog()
    await engine.set_source_amount_text("1")
    swap = asyncio.create_task(engine.swap())
    await wait_for_phase(engine, Phase.SWAPPING)
    first = asyncio.create_task(engine.submit())
    await wait_until(lambda: engine.submissions.in_flight)

    with pytest.raises(ConversionError) as exc:
        await engine.submit()
    assert exc.value.kind is ErrorKind.ALREADY_SUBMITTING

    gate.set()
    await swap
    receipt = await first
    assert receipt.source_symbol == "USDT"
    assert execution.calls == [("USDT", "ETH", Decimal("2500.0000"))]


@pytest.mark.asyncio
async def test_submit_times_out(catalog, execution):
    engine = build_engine(catalog, execution, submit_timeout_sec=0.01)
    await engine.load_catalog()
    execution.gate = asyncio.Event()
    await engine.set_source_amount_text("1")
    with pytest.raises(ConversionError) as exc:
        await engine.submit()
    assert exc.value.kind is ErrorKind.TIMEOUT
    snapshot = engine.snapshot()
    assert snapshot.phase == "Ready"
    assert snapshot.error.code == "Timeout"
    assert snapshot.source_amount == "1"
    assert not engine.submissions.in_flight


@pytest.mark.asyncio
async def test_submit_requires_amount(ready_engine, execution):
    with pytest.raises(ConversionError) as exc:
        await ready_engine.submit()
    assert exc.value.kind is ErrorKind.NOT_READY

    await ready_engine.set_source_amount_text("abc")
    with pytest.raises(ConversionError) as exc:
        await ready_engine.submit()
    assert exc.value.kind is ErrorKind.MALFORMED_NUMBER
    assert execution.calls == []
    assert not ready_engine.submissions.in_flight


@pytest.mark.asyncio
async def test_submit_requires_pair(ready_engine):
    await ready_engine.set_source_amount_text("1")
    await ready_engine.select_asset("USDT", AssetRole.SOURCE)
    with pytest.raises(ConversionError) as exc:
        await ready_engine.submit()
    assert exc.value.kind is ErrorKind.NOT_READY


@pytest.mark.asyncio
async def test_submit_before_catalog(engine):
    with pytest.raises(ConversionError) as exc:
        await engine.submit()
    assert exc.value.kind is ErrorKind.NOT_READY


@pytest.mark.asyncio
async def test_reset_restores_default_pair(ready_engine):
    await ready_engine.set_source_amount_text("1")
    await ready_engine.submit()
    await ready_engine.select_asset("BTC", AssetRole.SOURCE)
    snapshot = await ready_engine.reset()
    assert snapshot.source_asset.symbol == "ETH"
    assert snapshot.target_asset.symbol == "USDT"
    assert snapshot.last_receipt is None
    assert snapshot.source_amount == ""
