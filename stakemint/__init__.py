# MIT License
# Copyright (c) 2025 Hashborn

"""
StakeMint: stake-weighted mining reward accounting.
"""

__version__ = "1.0.0"
