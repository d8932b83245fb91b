# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Metrics:
- Participants, total staked, live total power
- Snapshot history length and latest checkpoint time
- Operations by kind and outcome, rewards paid, checkpoints appended
"""

from prometheus_client import Counter, Gauge, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# STAKE LEDGER METRICS
# ═══════════════════════════════════════════════════════════════════

participants_registered = Gauge(
    'stakemint_participants_registered',
    'Number of registered participants',
    registry=metrics_registry
)

total_staked = Gauge(
    'stakemint_total_staked',
    'Total staked amount in smallest stake-asset units',
    registry=metrics_registry
)

total_power = Gauge(
    'stakemint_total_power',
    'Live aggregate power (18-decimal fixed point)',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# SNAPSHOT METRICS
# ═══════════════════════════════════════════════════════════════════

snapshot_history_length = Gauge(
    'stakemint_snapshot_history_length',
    'Number of snapshots in the history',
    registry=metrics_registry
)

latest_snapshot_timestamp = Gauge(
    'stakemint_latest_snapshot_timestamp',
    'Unix time of the latest snapshot',
    registry=metrics_registry
)

checkpoints_total = Counter(
    'stakemint_checkpoints_total',
    'Snapshots appended',
    ['trigger'],
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# OPERATION METRICS
# ═══════════════════════════════════════════════════════════════════

operations_total = Counter(
    'stakemint_operations_total',
    'Engine operations by kind and outcome',
    ['operation', 'outcome'],
    registry=metrics_registry
)

rewards_paid_total = Counter(
    'stakemint_rewards_paid_total',
    'Reward units paid out',
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def record_operation(operation: str, outcome: str):
    operations_total.labels(operation=operation, outcome=outcome).inc()


def record_checkpoint(trigger: str):
    checkpoints_total.labels(trigger=trigger).inc()


def record_reward(amount: int):
    if amount > 0:
        rewards_paid_total.inc(amount)


def update_metrics(engine):
    """
    Refresh gauges from engine state. Called when metrics are scraped.

    Args:
        engine: StakeMint instance
    """
    participants_registered.set(engine.total_registered_count())
    total_staked.set(engine.total_staked())
    total_power.set(engine.current_total_power())

    latest = engine.latest_snapshot()
    snapshot_history_length.set(engine.history_length())
    latest_snapshot_timestamp.set(latest.timestamp)
