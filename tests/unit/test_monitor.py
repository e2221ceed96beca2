import asyncio

import pytest

from price_alert.alerts.monitor import PriceMonitor, MonitorConfig
from price_alert.alerts.state import AlertState, AlertStateStore
from price_alert.commands.processor import CommandProcessor
from price_alert.quotes.binance import FetchBadStatusError, FetchTransportError, FetchMalformedBodyError
from price_alert.utils.types import CommandEvent
from tests.helpers.fakes import RecordingNotifier, ScriptedPriceSource

CHAT = 555


def _monitor(prices, state=AlertState(92000.0, False), policy="every_cycle", fail=False, interval_s=60.0):
    store = AlertStateStore(state)
    notifier = RecordingNotifier(fail=fail)
    source = ScriptedPriceSource(prices)
    mon = PriceMonitor(source, notifier, store,
                       MonitorConfig(symbol="BTCUSDT", chat_id=CHAT, interval_s=interval_s, repeat_policy=policy))
    return mon, store, notifier, source


@pytest.mark.asyncio
async def test_price_below_threshold_notifies_recipient():
    mon, _, notifier, source = _monitor([91000.0])
    assert await mon.run_cycle() is True
    assert source.calls == ["BTCUSDT"]
    assert notifier.sent == [
        (CHAT, "🚨 Price Alert! BTCUSDT is now below $91000.00 (Threshold: $92000.00)")
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("state,price,fires", [
    (AlertState(92000.0, False), 91000.0, True),
    (AlertState(92000.0, False), 93000.0, False),
    (AlertState(92000.0, True), 93000.0, True),
    (AlertState(92000.0, True), 91000.0, False),
    (AlertState(92000.0, True), 92000.0, False),
])
async def test_trigger_table(state, price, fires):
    mon, _, notifier, _ = _monitor([price], state=state)
    assert await mon.run_cycle() is fires
    assert len(notifier.sent) == (1 if fires else 0)


@pytest.mark.asyncio
@pytest.mark.parametrize("err", [
    FetchTransportError("connection reset"),
    FetchBadStatusError(503),
    FetchMalformedBodyError("price not found in response"),
])
async def test_fetch_failure_skips_cycle(err):
    mon, _, notifier, _ = _monitor([err])
    assert await mon.run_cycle() is False
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_send_failure_is_not_fatal():
    mon, _, _, _ = _monitor([91000.0], fail=True)
    assert await mon.run_cycle() is False
    assert await mon.run_cycle() is False
    assert mon.cycles == 2


@pytest.mark.asyncio
async def test_sustained_crossing_notifies_every_cycle():
    mon, _, notifier, _ = _monitor([91000.0, 90000.0, 89000.0])
    for _ in range(3):
        await mon.run_cycle()
    assert len(notifier.sent) == 3


@pytest.mark.asyncio
async def test_once_until_reset_policy():
    mon, store, notifier, _ = _monitor([91000.0, 90000.0, 93000.0, 91000.0, 91000.0], policy="once_until_reset")
    results = [await mon.run_cycle() for _ in range(4)]
    # fire, suppressed, cleared, fire again
    assert results == [True, False, False, True]

    # a new threshold re-arms even while the condition holds
    store.replace(95000.0, False)
    assert await mon.run_cycle() is True
    assert len(notifier.sent) == 3


@pytest.mark.asyncio
async def test_setprice_is_visible_to_next_cycle():
    mon, store, notifier, _ = _monitor([150.0, 150.0], state=AlertState(92000.0, False))
    proc = CommandProcessor(store, RecordingNotifier())

    # 150 < 92000 → fires under the default rule
    assert await mon.run_cycle() is True
    await proc.handle(CommandEvent(chat_id=1, command="setprice", args="> 100"))
    # next cycle must use (100, greater) together
    assert await mon.run_cycle() is True
    assert notifier.sent[-1][1] == "🚨 Price Alert! BTCUSDT is now above $150.00 (Threshold: $100.00)"


@pytest.mark.asyncio
async def test_command_during_in_flight_fetch_is_never_torn():
    gate = asyncio.Event()
    store = AlertStateStore(AlertState(92000.0, False))
    notifier = RecordingNotifier()
    source = ScriptedPriceSource([150.0], gate=gate)
    mon = PriceMonitor(source, notifier, store, MonitorConfig(symbol="BTCUSDT", chat_id=CHAT))
    proc = CommandProcessor(store, RecordingNotifier())

    cycle = asyncio.create_task(mon.run_cycle())
    await asyncio.sleep(0)  # cycle is now blocked inside fetch_quote
    await proc.handle(CommandEvent(chat_id=1, command="setprice", args="> 100"))
    gate.set()
    assert await cycle is True

    text = notifier.sent[0][1]
    old_pair = "below" in text and "$92000.00" in text
    new_pair = "above" in text and "$100.00" in text
    assert old_pair or new_pair


@pytest.mark.asyncio
async def test_loop_runs_until_stopped():
    mon, _, notifier, source = _monitor([FetchTransportError("down"), 91000.0], interval_s=0.01)
    task = asyncio.create_task(mon.start())

    async def _wait_cycles(n):
        while mon.cycles < n:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_wait_cycles(3), timeout=2.0)
    await mon.stop()
    await asyncio.wait_for(task, timeout=2.0)

    # first cycle failed, later ones alerted
    assert len(source.calls) >= 3
    assert len(notifier.sent) == mon.cycles - 1


@pytest.mark.asyncio
async def test_unexpected_cycle_error_does_not_end_loop():
    mon, _, notifier, source = _monitor([RuntimeError("surprise"), 91000.0], interval_s=0.01)
    task = asyncio.create_task(mon.start())

    async def _wait_sent():
        while not notifier.sent:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_wait_sent(), timeout=2.0)
    await mon.stop()
    await asyncio.wait_for(task, timeout=2.0)

    assert len(source.calls) >= 2
    assert notifier.sent[0][1].startswith("🚨 Price Alert! BTCUSDT is now below $91000.00")
