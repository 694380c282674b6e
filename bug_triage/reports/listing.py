"""Plain report listings.

Functions:
    get_reports(store, team=None)   -> dict  (report)
"""

from datetime import datetime, timezone

from bug_triage.normalize import normalize_team
from bug_triage.store import Store


def get_reports(store: Store, team: str | None = None) -> dict:
    """Every stored report, newest first, optionally for one team only.

    Duplicate-flagged reports are listed too.
    """
    criteria = {"team": normalize_team(team)} if team else None
    reports = list(reversed(store.find(criteria)))
    return {
        "report_type": "reports",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "team": criteria["team"] if criteria else None,
        "summary": {
            "reports": len(reports),
            "duplicates": sum(1 for r in reports if r.duplicate),
        },
        "reports": [r.to_dict() for r in reports],
    }
