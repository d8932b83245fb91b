from enum import Enum


class Operation(str, Enum):
    REGISTER = "REGISTER"
    STAKE = "STAKE"
    UNSTAKE = "UNSTAKE"
    WITHDRAW_REWARDS = "WITHDRAW_REWARDS"
    CHECKPOINT = "CHECKPOINT"

    # Owner-only
    MANUAL_CHECKPOINT = "MANUAL_CHECKPOINT"
    EMERGENCY_WITHDRAW = "EMERGENCY_WITHDRAW"
    TRANSFER_OWNERSHIP = "TRANSFER_OWNERSHIP"


class ProtocolError(Exception):
    """Base class for every failure an engine operation can report."""
    pass

class AlreadyRegistered(ProtocolError):
    pass

class NotRegistered(ProtocolError):
    pass

class InvalidAmount(ProtocolError):
    """Zero amount, amount not a multiple of the stake unit, or overdrawn unstake."""
    pass

class TooSoon(ProtocolError):
    """Claim cooldown or checkpoint interval has not elapsed."""
    pass

class TransferFailed(ProtocolError):
    pass

class Unauthorized(ProtocolError):
    pass

class NonMonotonicTime(ProtocolError):
    pass

class InvalidOwner(ProtocolError):
    pass
