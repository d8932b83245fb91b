from stakemint.blockchain.core.power import PowerModel
from stakemint.protocol.config.economic_model import EconomicConfig, ECONOMIC_CONFIG
from stakemint.protocol.config.params import NETWORKS
from stakemint.protocol.types.participant import Participant
import pytest

from conftest import USDT, ETHER, USER1, USER2, stake


def test_base_power_is_003(engine):
    engine.register(USER1)
    assert engine.power(USER1) == 3 * ETHER // 100


def test_unregistered_has_zero_power(engine):
    assert engine.power(USER2) == 0
    model = PowerModel(NETWORKS["devnet"], ECONOMIC_CONFIG)
    assert model.power(None) == 0
    assert model.power(Participant(address=USER2)) == 0


def test_power_increases_with_stake(engine, usdt):
    engine.register(USER1)
    base = engine.power(USER1)

    stake(engine, usdt, USER1, 1000 * USDT)  # 10 units of 100

    assert engine.power(USER1) > base
    assert engine.power(USER1) == base + 10 * ECONOMIC_CONFIG.stake_unit_power


def test_power_is_monotonic_in_stake():
    model = PowerModel(NETWORKS["devnet"], ECONOMIC_CONFIG)
    unit = NETWORKS["devnet"].stake_unit
    previous = model.power_of(0)
    for units in range(1, 50):
        current = model.power_of(units * unit)
        assert current >= previous
        previous = current


def test_custom_economics():
    config = EconomicConfig(base_power=5, stake_unit_power=2, emission_rate_per_second=1)
    model = PowerModel(NETWORKS["devnet"], config)
    assert model.power_of(0) == 5
    assert model.power_of(3 * NETWORKS["devnet"].stake_unit) == 11


def test_negative_economics_rejected():
    with pytest.raises(ValueError):
        EconomicConfig(base_power=-1, stake_unit_power=0, emission_rate_per_second=0)
