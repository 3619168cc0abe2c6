# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""Deite wellbeing — data layer behind the wellbeing dashboard."""

from wellbeing.schemas import (
    AnalysisFailure,
    BalanceRecord,
    CacheCorruption,
    MetricRecord,
    TransientFetchFailure,
    WellbeingConfig,
    WellbeingError,
)
from wellbeing.service import DimensionState, WellbeingService, create_service
from wellbeing.windows import BALANCE, EMOTIONAL, METRIC_KINDS, WINDOWS, Dimension

__all__ = [
    "AnalysisFailure",
    "BALANCE",
    "BalanceRecord",
    "CacheCorruption",
    "Dimension",
    "EMOTIONAL",
    "DimensionState",
    "METRIC_KINDS",
    "MetricRecord",
    "TransientFetchFailure",
    "WINDOWS",
    "WellbeingConfig",
    "WellbeingError",
    "WellbeingService",
    "create_service",
]
