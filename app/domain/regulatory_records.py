"""
app/domain/regulatory_records.py

Typed rows produced by regulatory source adapters.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, ClassVar


class RegulatoryRow:
    """
    Base for adapter rows. Subclasses are frozen dataclasses.
    """

    row_type: ClassVar[str] = "row"

    def natural_key(self) -> tuple[str, ...]:
        raise NotImplementedError

    def as_payload(self) -> dict[str, Any]:
        payload = asdict(self)  # type: ignore[call-overload]
        for key, value in list(payload.items()):
            if isinstance(value, date):
                payload[key] = value.isoformat()
            elif isinstance(value, tuple):
                payload[key] = [list(item) if isinstance(item, tuple) else item for item in value]
        return payload


@dataclass(frozen=True)
class FilingRow(RegulatoryRow):
    """
    One regulator news item, circular or enforcement filing.
    """

    row_type: ClassVar[str] = "filing"

    reference: str
    title: str
    filing_type: str
    filing_date: date
    url: str | None = None
    summary: str | None = None
    tags: tuple[str, ...] = ()

    def natural_key(self) -> tuple[str, ...]:
        return ("hksfc", self.reference)


@dataclass(frozen=True)
class HoldingRow(RegulatoryRow):
    """
    One participant shareholding line from a depository holdings page.
    """

    row_type: ClassVar[str] = "holding"

    stock_code: str
    participant_id: str
    participant_name: str
    shareholding: int
    data_date: date
    address: str | None = None
    percentage: float | None = None

    def natural_key(self) -> tuple[str, ...]:
        return ("ccass", self.stock_code, self.participant_id, self.data_date.isoformat())


@dataclass(frozen=True)
class StatisticRow(RegulatoryRow):
    """
    One labelled row of a published statistics table.
    """

    row_type: ClassVar[str] = "statistic"

    table_id: str
    report_period: str
    row_label: str
    values: tuple[tuple[str, float], ...] = field(default_factory=tuple)

    def natural_key(self) -> tuple[str, ...]:
        return ("sfc-statistics", self.table_id, self.report_period, self.row_label)


@dataclass(frozen=True)
class DisclosureRow(RegulatoryRow):
    """
    One disclosure-of-interest notice filed by a substantial shareholder.
    """

    row_type: ClassVar[str] = "disclosure"

    di_number: str
    stock_code: str
    substantial_shareholder: str
    number_of_shares: int
    disclosure_date: date
    company_name: str | None = None
    position_type: str | None = None
    percentage: float | None = None
    reason: str | None = None

    def natural_key(self) -> tuple[str, ...]:
        return ("hkex-disclosure", self.di_number)
