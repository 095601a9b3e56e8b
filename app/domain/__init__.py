"""
app/domain package marker.
"""

from app.domain.regulatory_records import (
    DisclosureRow,
    FilingRow,
    HoldingRow,
    RegulatoryRow,
    StatisticRow,
)

__all__ = [
    "DisclosureRow",
    "FilingRow",
    "HoldingRow",
    "RegulatoryRow",
    "StatisticRow",
]
