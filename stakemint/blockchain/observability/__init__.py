# MIT License
# Copyright (c) 2025 Hashborn

"""
Observability Module

Prometheus metrics for the StakeMint engine.
"""

from .metrics import metrics_registry, update_metrics

__all__ = ['metrics_registry', 'update_metrics']
