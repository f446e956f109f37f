"""
Allocation Ledger.

This module acts as the 'Memory' of a simulation run.
It listens to the activity tree and tracks:
1. Performed reports (status of every activity and timer per timestep).
2. Shortfall reports (what was missing, where and under which policy).
3. Summary statistics and a shortfall report for the final output.
"""

from datetime import date as date_type
from typing import Any, Dict, List, Optional
from collections import defaultdict
from dataclasses import dataclass, field

from models import ActivityPerformed, ActivityStatus, ShortfallRecord


@dataclass
class ActivityHistory:
    """Status history of one activity (or timer) across timesteps."""
    name: str
    statuses: List[ActivityStatus] = field(default_factory=list)
    dates: List[Optional[date_type]] = field(default_factory=list)


class AllocationLedger:
    """
    Collects performed and shortfall reports from an ActivitiesHolder.
    Register with holder.add_listener(ledger).
    """

    def __init__(self):
        """Initialize an empty ledger."""
        self.performed: List[ActivityPerformed] = []
        self.shortfalls: List[ShortfallRecord] = []

        # Indices
        self.history: Dict[str, ActivityHistory] = {}
        self.status_counts: Dict[ActivityStatus, int] = defaultdict(int)
        self.shortfalls_by_resource: Dict[str, List[ShortfallRecord]] = defaultdict(list)

    # --- Listener interface ---

    def report_performed(self, record: ActivityPerformed) -> None:
        self.performed.append(record)
        self.status_counts[record.status] += 1

        if record.id not in self.history:
            self.history[record.id] = ActivityHistory(name=record.name)
        entry = self.history[record.id]
        entry.statuses.append(record.status)
        entry.dates.append(record.date)

    def report_shortfall(self, record: ShortfallRecord) -> None:
        self.shortfalls.append(record)
        key = record.resource_type_name or record.resource_type or "Untracked"
        self.shortfalls_by_resource[key].append(record)

    # --- Query Methods ---

    def get_records_for_date(self, date: date_type) -> List[ActivityPerformed]:
        return [r for r in self.performed if r.date == date]

    def get_statuses(self, name: str) -> List[ActivityStatus]:
        """All statuses reported under a name (activities sharing a name are merged)."""
        return [r.status for r in self.performed if r.name == name]

    def last_status(self, name: str) -> Optional[ActivityStatus]:
        statuses = self.get_statuses(name)
        return statuses[-1] if statuses else None

    # --- Reporting Methods ---

    def get_statistics(self) -> Dict[str, Any]:
        if not self.performed:
            return {
                "timesteps": 0,
                "reports": 0,
                "shortfall_count": len(self.shortfalls),
                "success_rate": 0.0
            }

        dates = sorted({r.date for r in self.performed if r.date is not None})

        # Timers are reporting-only, leave them out of the activity rates
        activity_reports = [r for r in self.performed if r.status != ActivityStatus.TIMER]
        ran = [r for r in activity_reports if r.status != ActivityStatus.IGNORED]
        succeeded = sum(1 for r in ran if r.status == ActivityStatus.SUCCESS)
        success_rate = (succeeded / len(ran) * 100) if ran else 0.0

        total_deficit = {
            key: round(sum(s.deficit for s in records), 2)
            for key, records in self.shortfalls_by_resource.items()
        }

        return {
            "timesteps": len(dates),
            "date_range": (dates[0], dates[-1]) if dates else None,
            "reports": len(self.performed),
            "activities_run": len(ran),
            "status_breakdown": {s.value: c for s, c in sorted(self.status_counts.items(), key=lambda x: x[0].value)},
            "success_rate": f"{success_rate:.1f}%",
            "shortfall_count": len(self.shortfalls),
            "market_shortfalls": sum(1 for s in self.shortfalls if s.in_market),
            "deficit_by_resource": total_deficit,
        }

    def get_shortfall_report(self) -> List[Dict]:
        """
        One line per resource that ran short, largest total deficit first.
        """
        report = []
        for resource, records in self.shortfalls_by_resource.items():
            by_activity = defaultdict(float)
            for r in records:
                by_activity[r.activity_name] += r.deficit

            report.append({
                "resource": resource,
                "occurrences": len(records),
                "total_deficit": round(sum(r.deficit for r in records), 2),
                "worst_activity": max(by_activity, key=by_activity.get),
                "deficit_by_activity": {k: round(v, 2) for k, v in by_activity.items()},
                "first_date": min((r.date for r in records if r.date), default=None),
            })

        report.sort(key=lambda x: x["total_deficit"], reverse=True)
        return report

    def clear(self) -> None:
        """Reset state (useful for testing or re-running)."""
        self.performed.clear()
        self.shortfalls.clear()
        self.history.clear()
        self.status_counts.clear()
        self.shortfalls_by_resource.clear()
