from pydantic import BaseModel


class Participant(BaseModel):
    address: str
    registered: bool = False
    staked_amount: int = 0      # Smallest stake-asset unit, multiple of stake_unit
    registered_at: int = 0      # Unix seconds
    last_claim_at: int = 0      # Starts at registered_at, moves on reward withdrawal
