import pytest

from stakemint.blockchain.core import events
from stakemint.protocol.types.common import NonMonotonicTime, TooSoon

from conftest import USDT, USER1, USER2, HOUR, stake


def test_genesis_snapshot_exists(engine, clock):
    assert engine.history_length() == 1
    genesis = engine.latest_snapshot()
    assert genesis.index == 0
    assert genesis.timestamp == clock.now()
    assert genesis.total_power == 0
    assert genesis.participant_count == 0


def test_should_checkpoint_before_one_hour(engine, clock):
    clock.advance(30 * 60)
    assert engine.should_checkpoint() is False
    upkeep_needed, _ = engine.check_upkeep()
    assert upkeep_needed is False


def test_should_checkpoint_after_one_hour(engine, clock):
    clock.advance(HOUR)
    assert engine.should_checkpoint() is True
    assert engine.check_upkeep()[0] is True


def test_should_checkpoint_does_not_mutate(engine, clock):
    clock.advance(HOUR)
    results = [engine.should_checkpoint() for _ in range(5)]
    assert results == [True] * 5
    assert engine.history_length() == 1

    start = engine.latest_snapshot().timestamp
    assert engine.should_checkpoint(start + HOUR - 1) is False
    assert engine.should_checkpoint(start + HOUR) is True


def test_perform_upkeep_appends_one_snapshot(engine, usdt, clock):
    engine.register(USER1)
    stake(engine, usdt, USER1, 1000 * USDT)
    clock.advance(HOUR)

    before = engine.history_length()
    engine.perform_upkeep()
    assert engine.history_length() == before + 1


def test_perform_upkeep_too_soon(engine, clock):
    clock.advance(HOUR - 1)
    with pytest.raises(TooSoon):
        engine.perform_upkeep()
    assert engine.history_length() == 1


def test_snapshot_records_aggregates(engine, usdt, clock):
    engine.register(USER1)
    engine.register(USER2)
    amount = 1000 * USDT
    stake(engine, usdt, USER1, amount)

    clock.advance(HOUR)
    engine.perform_upkeep()

    snapshot = engine.latest_snapshot()
    assert snapshot.total_staked == amount
    assert snapshot.participant_count == 2
    assert snapshot.total_power > 0
    assert snapshot.total_power == engine.power(USER1) + engine.power(USER2)
    assert snapshot.total_power == engine.current_total_power()


def test_checkpoint_requires_later_time(engine, clock):
    with pytest.raises(NonMonotonicTime):
        engine.checkpoint()

    clock.advance(10)
    engine.checkpoint()
    clock.set(clock.now() - 5)
    with pytest.raises(NonMonotonicTime):
        engine.checkpoint()
    assert engine.history_length() == 2


def test_timestamps_strictly_increase(engine, clock):
    for _ in range(5):
        clock.advance(HOUR)
        engine.perform_upkeep()

    history = engine.recent_snapshots(100)
    assert len(history) == engine.history_length() == 6
    assert all(a.timestamp < b.timestamp for a, b in zip(history, history[1:]))
    assert [s.index for s in history] == list(range(6))


def test_recent_snapshots(engine, usdt, clock):
    engine.register(USER1)
    engine.register(USER2)
    stake(engine, usdt, USER1, 1000 * USDT)

    for _ in range(3):
        clock.advance(HOUR)
        engine.perform_upkeep()

    snapshots = engine.recent_snapshots(3)
    assert len(snapshots) == 3
    assert snapshots[-1] == engine.latest_snapshot()
    assert snapshots[0].timestamp < snapshots[-1].timestamp

    assert len(engine.recent_snapshots(50)) == 4
    assert engine.recent_snapshots(0) == []


def test_current_total_power_is_live(engine, usdt):
    engine.register(USER1)
    engine.register(USER2)
    stake(engine, usdt, USER1, 1000 * USDT)

    assert engine.current_total_power() > 0
    assert engine.current_total_power() == engine.power(USER1) + engine.power(USER2)
    # History is untouched
    assert engine.latest_snapshot().total_power == 0


def test_checkpoint_event(engine, clock, bus):
    seen = []
    bus.subscribe(events.CHECKPOINT, lambda snapshot: seen.append(snapshot))
    clock.advance(HOUR)
    snapshot = engine.perform_upkeep()
    assert seen == [snapshot]


def test_covering_selects_bounding_snapshots(engine, clock):
    t0 = engine.latest_snapshot().timestamp
    for _ in range(4):
        clock.advance(HOUR)
        engine.perform_upkeep()

    ledger = engine.snapshots
    # Window inside the second interval: only the snapshot opening it
    covering = ledger.covering(t0 + HOUR + 10, t0 + HOUR + 20)
    assert [s.index for s in covering] == [1]
    # Window spanning several intervals
    covering = ledger.covering(t0 + 30, t0 + 3 * HOUR + 30)
    assert [s.index for s in covering] == [0, 1, 2, 3]
    # Window starting before genesis begins with genesis
    covering = ledger.covering(t0 - 100, t0 + 10)
    assert [s.index for s in covering] == [0]
