import time

from stakemint.blockchain.automation.keeper import Keeper

from conftest import HOUR


def test_run_once_waits_for_interval(engine, clock):
    keeper = Keeper(engine)

    clock.advance(HOUR - 1)
    assert keeper.run_once() is None
    assert engine.history_length() == 1

    clock.advance(1)
    snapshot = keeper.run_once()
    assert snapshot is not None
    assert snapshot.index == 1
    assert engine.history_length() == 2

    # Interval restarts from the new snapshot
    assert keeper.run_once() is None


def test_background_loop_checkpoints(engine, clock):
    clock.advance(HOUR)
    keeper = Keeper(engine, poll_interval=0.01)
    keeper.start()
    try:
        deadline = time.time() + 5
        while engine.history_length() < 2 and time.time() < deadline:
            time.sleep(0.01)
    finally:
        keeper.stop()

    # Clock is frozen, so exactly one checkpoint was due
    assert engine.history_length() == 2
