import pytest

from stakemint.blockchain.core.assets import TokenLedger
from stakemint.blockchain.core.clock import ManualClock
from stakemint.blockchain.core.engine import StakeMint
from stakemint.blockchain.core.events import EventBus
from stakemint.protocol.config.params import NETWORKS

USDT = 10**6
ETHER = 10**18

OWNER = "0x00000000000000000000000000000000000000a1"
USER1 = "0x00000000000000000000000000000000000000b1"
USER2 = "0x00000000000000000000000000000000000000b2"
CUSTODY = "stakemint-custody"

HOUR = 3600
DAY = 24 * HOUR


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def usdt():
    token = TokenLedger("USDT", 6, CUSTODY)
    token.mint(USER1, 10_000 * USDT)
    token.mint(USER2, 10_000 * USDT)
    return token


@pytest.fixture
def gbc():
    return TokenLedger("GBC", 18, CUSTODY)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "stakemint.db")


@pytest.fixture
def engine(db_path, usdt, gbc, clock, bus):
    e = StakeMint(db_path, usdt, gbc, owner=OWNER, clock=clock,
                  config=NETWORKS["devnet"], bus=bus)
    yield e
    e.close()


def stake(engine, token, user, amount):
    """Approve then stake, like the ERC-20 flow."""
    token.approve(user, amount)
    return engine.stake(user, amount)
