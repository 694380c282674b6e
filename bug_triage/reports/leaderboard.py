"""Team leaderboard.

Functions:
    build_leaderboard(reports)   -> list[dict]
    get_leaderboard(store)       -> dict  (report)

Teams are ranked by how many distinct URLs they reported, then by how many
reports they filed. Duplicate-flagged reports never count.
"""

from collections.abc import Iterable
from datetime import datetime, timezone

from bug_triage.models import BugReport
from bug_triage.normalize import normalize_team, normalize_url
from bug_triage.store import Store


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_leaderboard(reports: Iterable[BugReport]) -> list[dict]:
    urls: dict[str, set[str]] = {}
    bugs: dict[str, int] = {}

    for report in reports:
        if report.duplicate:
            continue
        team = normalize_team(report.team)
        urls.setdefault(team, set()).add(normalize_url(report.url))
        bugs[team] = bugs.get(team, 0) + 1

    entries = [
        {"team": team, "url_count": len(urls[team]), "bug_count": bugs[team]}
        for team in urls
    ]
    # Team name as the last key keeps equal scores in a fixed order
    entries.sort(key=lambda e: (-e["url_count"], -e["bug_count"], e["team"]))
    return entries


def get_leaderboard(store: Store) -> dict:
    """Read every non-duplicate report from *store* and rank the teams."""
    reports = store.find({"duplicate": False})
    entries = build_leaderboard(reports)
    return {
        "report_type": "leaderboard",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "summary": {
            "teams": len(entries),
            "reports": sum(e["bug_count"] for e in entries),
        },
        "leaderboard": entries,
    }
