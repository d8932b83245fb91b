from fastapi import FastAPI, HTTPException, Header, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from typing import Optional
import logging

from ...protocol.types.common import (
    ProtocolError, AlreadyRegistered, NotRegistered, InvalidAmount, TooSoon,
    TransferFailed, Unauthorized, NonMonotonicTime, InvalidOwner,
)
from ..core.engine import StakeMint
from ..snapshot.types import Snapshot

logger = logging.getLogger(__name__)

app = FastAPI(title="StakeMint Node RPC")

engine: Optional[StakeMint] = None

ERROR_STATUS = {
    AlreadyRegistered: 409,
    NotRegistered: 404,
    InvalidAmount: 400,
    TooSoon: 425,
    TransferFailed: 502,
    Unauthorized: 403,
    NonMonotonicTime: 409,
    InvalidOwner: 400,
}

class AmountRequest(BaseModel):
    amount: int

class EmergencyWithdrawRequest(BaseModel):
    asset: str
    amount: int

class TransferOwnershipRequest(BaseModel):
    new_owner: str

@app.exception_handler(ProtocolError)
async def protocol_error_handler(request: Request, exc: ProtocolError):
    status = ERROR_STATUS.get(type(exc), 400)
    return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})

def get_engine() -> StakeMint:
    if not engine:
        raise HTTPException(status_code=503, detail="Node not initialized")
    return engine

def snapshot_view(s: Snapshot) -> dict:
    return {
        "index": s.index,
        "timestamp": s.timestamp,
        "total_power": str(s.total_power),
        "total_staked": str(s.total_staked),
        "participant_count": s.participant_count,
    }

# ═══════════════════════════════════════════════════════════════════
# QUERIES
# ═══════════════════════════════════════════════════════════════════

@app.get("/status")
async def get_status():
    e = get_engine()
    return {
        "network": e.config.network_id,
        "owner": e.owner,
        "stake_asset": e.stake_asset.asset_id,
        "reward_asset": e.reward_asset.asset_id,
        "total_registered": e.total_registered_count(),
        "total_staked": str(e.total_staked()),
        "history_length": e.history_length(),
    }

@app.get("/participants/{address}")
async def get_participant(address: str):
    e = get_engine()
    participant = e.get_participant(address)
    if not participant:
        raise HTTPException(status_code=404, detail="Participant not found")
    return {
        "address": participant.address,
        "registered": participant.registered,
        "staked_amount": str(participant.staked_amount),
        "registered_at": participant.registered_at,
        "last_claim_at": participant.last_claim_at,
    }

@app.get("/power/total")
async def get_total_power():
    return {"total_power": str(get_engine().current_total_power())}

@app.get("/power/{address}")
async def get_power(address: str):
    return {"address": address, "power": str(get_engine().power(address))}

@app.get("/rewards/{address}")
async def get_pending_reward(address: str):
    reward, power = get_engine().pending_reward(address)
    return {"address": address, "reward": str(reward), "power": str(power)}

@app.get("/snapshots/latest")
async def get_latest_snapshot():
    return snapshot_view(get_engine().latest_snapshot())

@app.get("/snapshots/recent")
async def get_recent_snapshots(n: int = 10):
    e = get_engine()
    return {
        "history_length": e.history_length(),
        "snapshots": [snapshot_view(s) for s in e.recent_snapshots(n)],
    }

@app.get("/balances/{address}")
async def get_balances(address: str):
    e = get_engine()
    balances = e.balances(address)
    return {
        "address": address,
        "stake_asset": e.stake_asset.asset_id,
        "reward_asset": e.reward_asset.asset_id,
        **{k: (str(v) if v is not None else None) for k, v in balances.items()},
    }

@app.get("/upkeep")
async def check_upkeep():
    upkeep_needed, _ = get_engine().check_upkeep()
    return {"upkeep_needed": upkeep_needed}

# ═══════════════════════════════════════════════════════════════════
# PARTICIPANT ACTIONS
# ═══════════════════════════════════════════════════════════════════

@app.post("/register")
async def register(x_caller: str = Header(...)):
    participant = get_engine().register(x_caller)
    return {"address": participant.address, "registered_at": participant.registered_at}

@app.post("/approve")
async def approve(req: AmountRequest, x_caller: str = Header(...)):
    e = get_engine()
    e.approve(x_caller, req.amount)
    return {"address": x_caller, "allowance": str(req.amount)}

@app.post("/stake")
async def stake(req: AmountRequest, x_caller: str = Header(...)):
    total = get_engine().stake(x_caller, req.amount)
    return {"address": x_caller, "staked_amount": str(total)}

@app.post("/unstake")
async def unstake(req: AmountRequest, x_caller: str = Header(...)):
    total = get_engine().unstake(x_caller, req.amount)
    return {"address": x_caller, "staked_amount": str(total)}

@app.post("/withdraw")
async def withdraw_rewards(x_caller: str = Header(...)):
    reward, power = get_engine().withdraw_rewards(x_caller)
    return {"address": x_caller, "reward": str(reward), "power": str(power)}

@app.post("/upkeep")
async def perform_upkeep():
    return snapshot_view(get_engine().perform_upkeep())

# ═══════════════════════════════════════════════════════════════════
# ADMIN
# ═══════════════════════════════════════════════════════════════════

@app.post("/admin/checkpoint")
async def manual_checkpoint(x_caller: str = Header(...)):
    return snapshot_view(get_engine().manual_checkpoint(x_caller))

@app.post("/admin/emergency-withdraw")
async def emergency_withdraw(req: EmergencyWithdrawRequest, x_caller: str = Header(...)):
    e = get_engine()
    e.emergency_withdraw(x_caller, req.asset, req.amount)
    return {"asset": req.asset, "amount": str(req.amount), "recipient": e.owner}

@app.post("/admin/transfer-ownership")
async def transfer_ownership(req: TransferOwnershipRequest, x_caller: str = Header(...)):
    e = get_engine()
    e.transfer_ownership(x_caller, req.new_owner)
    return {"owner": e.owner}

@app.get("/metrics")
async def get_metrics():
    """Prometheus metrics endpoint."""
    from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
    from ..observability.metrics import metrics_registry, update_metrics

    update_metrics(get_engine())
    return Response(
        content=generate_latest(metrics_registry),
        media_type=CONTENT_TYPE_LATEST
    )

def start_rpc_server(engine_instance: StakeMint, host: str = "0.0.0.0", port: int = 8000):
    global engine
    engine = engine_instance
    import uvicorn
    uvicorn.run(app, host=host, port=port)
