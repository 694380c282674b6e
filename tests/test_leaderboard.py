"""Tests for bug_triage/reports/leaderboard.py"""

from bug_triage.ingest import Ingestor, new_report
from bug_triage.models import BugReport
from bug_triage.reports.leaderboard import build_leaderboard, get_leaderboard
from bug_triage.store import MemoryStore


def _report(team, url, duplicate=False) -> BugReport:
    return BugReport(team=team, email="t@example.com", url=url,
                     description="Something broke", duplicate=duplicate)


# ---------------------------------------------------------------------------
# build_leaderboard
# ---------------------------------------------------------------------------

def test_counts_distinct_urls_and_bugs():
    board = build_leaderboard([
        _report("Alpha", "http://x.com"),
        _report("Alpha", "http://x.com/"),
        _report("Alpha", "http://y.com"),
    ])
    assert board == [{"team": "Alpha", "url_count": 2, "bug_count": 3}]


def test_duplicates_never_count():
    board = build_leaderboard([
        _report("Alpha", "http://x.com"),
        _report("Alpha", "http://x.com", duplicate=True),
        _report("Alpha", "http://y.com", duplicate=True),
    ])
    assert board == [{"team": "Alpha", "url_count": 1, "bug_count": 1}]


def test_team_with_only_duplicates_is_absent():
    board = build_leaderboard([_report("Alpha", "http://x.com", duplicate=True)])
    assert board == []


def test_sorted_by_url_count_then_bug_count():
    board = build_leaderboard([
        _report("Alpha", "http://x.com"),
        _report("Beta", "http://x.com"),
        _report("Beta", "http://x.com/again"),
        _report("Gamma", "http://x.com"),
        _report("Gamma", "http://x.com/"),
    ])
    assert [e["team"] for e in board] == ["Beta", "Gamma", "Alpha"]


def test_full_ties_are_ordered_by_team_name():
    board = build_leaderboard([
        _report("Zulu", "http://x.com"),
        _report("Alpha", "http://x.com"),
        _report("Mike", "http://x.com"),
    ])
    assert [e["team"] for e in board] == ["Alpha", "Mike", "Zulu"]


def test_team_names_are_grouped_canonically():
    board = build_leaderboard([
        _report("alpha  team", "http://x.com"),
        _report("Alpha Team", "http://y.com"),
    ])
    assert board == [{"team": "Alpha Team", "url_count": 2, "bug_count": 2}]


def test_empty_input():
    assert build_leaderboard([]) == []


# ---------------------------------------------------------------------------
# get_leaderboard
# ---------------------------------------------------------------------------

def test_get_leaderboard_ignores_flagged_repeat():
    store = MemoryStore()
    ingestor = Ingestor(store)
    ingestor.submit(new_report("Alpha", "a@x.com", "http://x.com/", "Login button broken"))
    ingestor.submit(new_report("Alpha", "a@x.com", "http://x.com", "login button is broken"))
    ingestor.submit(new_report("Beta", "b@x.com", "http://x.com", "Login button is broken"))

    report = get_leaderboard(store)

    assert report["report_type"] == "leaderboard"
    assert report["summary"] == {"teams": 2, "reports": 2}
    assert report["leaderboard"] == [
        {"team": "Alpha", "url_count": 1, "bug_count": 1},
        {"team": "Beta", "url_count": 1, "bug_count": 1},
    ]
