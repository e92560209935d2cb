"""Inspection statistics for dashboards and compliance reports."""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from .canonicalization import ensure_utc, format_timestamp
from .content import RESULT_FAIL, RESULT_PASS
from .inspection import Inspection, InspectionStatus, OverallResult


@dataclass
class InspectionStats:
    total_inspections: int = 0
    completed_inspections: int = 0
    in_progress_inspections: int = 0
    passed_inspections: int = 0
    failed_inspections: int = 0
    conditional_pass_inspections: int = 0
    computed_failures: int = 0
    requiring_service: int = 0
    requiring_replacement: int = 0
    pass_rate: Decimal = Decimal("0.00")
    last_inspection_date: Optional[datetime] = None
    inspections_last_30_days: int = 0
    inspections_last_365_days: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["pass_rate"] = str(self.pass_rate)
        data["last_inspection_date"] = (
            format_timestamp(self.last_inspection_date) if self.last_inspection_date else None
        )
        return data


def inspection_stats(inspections: Iterable[Inspection], now: datetime) -> InspectionStats:
    """
    Aggregate counts over non-deleted inspections.

    Declared results (passed/failed/conditional) count what inspectors
    submitted; pass_rate is the share of completed inspections whose
    computed result is Pass, as a percentage with two decimals.
    """
    now = ensure_utc(now)
    stats = InspectionStats()
    computed_passes = 0

    for inspection in inspections:
        if inspection.status == InspectionStatus.DELETED:
            continue
        stats.total_inspections += 1
        if inspection.status == InspectionStatus.IN_PROGRESS:
            stats.in_progress_inspections += 1
            continue

        stats.completed_inspections += 1
        if inspection.overall_result == OverallResult.PASS.value:
            stats.passed_inspections += 1
        elif inspection.overall_result == OverallResult.FAIL.value:
            stats.failed_inspections += 1
        elif inspection.overall_result == OverallResult.CONDITIONAL_PASS.value:
            stats.conditional_pass_inspections += 1

        if inspection.computed_result == RESULT_PASS:
            computed_passes += 1
        elif inspection.computed_result == RESULT_FAIL:
            stats.computed_failures += 1
        if inspection.requires_service:
            stats.requiring_service += 1
        if inspection.requires_replacement:
            stats.requiring_replacement += 1

        performed = inspection.inspection_date
        if not isinstance(performed, datetime):
            performed = inspection.completed_at
        if performed is not None:
            performed = ensure_utc(performed)
            if stats.last_inspection_date is None or performed > stats.last_inspection_date:
                stats.last_inspection_date = performed
            age = now - performed
            if age <= timedelta(days=30):
                stats.inspections_last_30_days += 1
            if age <= timedelta(days=365):
                stats.inspections_last_365_days += 1

    if stats.completed_inspections:
        rate = Decimal(computed_passes * 100) / Decimal(stats.completed_inspections)
        stats.pass_rate = rate.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return stats
