"""Cross-team issue clusters.

Functions:
    build_clusters(reports)                 -> list[dict]
    match_teams(target, reports)            -> dict
    get_clusters(store)                     -> dict  (report)
    get_team_matches(store, report_id)      -> dict  (report)

Clusters are recomputed from the full report list on every call; nothing
is cached between calls.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from bug_triage.ingest import Scorer
from bug_triage.models import BugReport, Cluster
from bug_triage.normalize import normalize_description, normalize_team, normalize_url
from bug_triage.similarity import score
from bug_triage.store import Store

logger = logging.getLogger(__name__)

CLUSTER_THRESHOLD = 0.5

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_clusters(
    reports: Iterable[BugReport],
    threshold: float = CLUSTER_THRESHOLD,
    scorer: Scorer = score,
) -> list[dict]:
    """Group non-duplicate reports into clusters, oldest report first.

    Each report joins the first existing cluster on the same canonical URL
    whose founding description scores strictly above *threshold*, or
    founds a new one. Later members never replace the founder's text and
    two clusters are never merged. Reports with equal ``created_at`` keep
    the order they arrive in.
    """
    ordered = sorted(
        (r for r in reports if not r.duplicate),
        key=_created_at,
    )

    clusters: list[Cluster] = []
    # Normalized founder text, parallel to ``clusters``
    anchors: list[str] = []

    for report in ordered:
        url = normalize_url(report.url)
        desc = normalize_description(report.description)

        for cluster, anchor in zip(clusters, anchors):
            if cluster.url == url and scorer(anchor, desc) > threshold:
                cluster.add(normalize_team(report.team), _created_at(report))
                break
        else:
            cluster = Cluster(url=url, representative_description=report.description)
            cluster.add(normalize_team(report.team), _created_at(report))
            clusters.append(cluster)
            anchors.append(desc)

    logger.debug("Built %d cluster(s) from %d report(s)", len(clusters), len(ordered))
    return [c.summary() for c in clusters]


def match_teams(
    target: BugReport,
    reports: Iterable[BugReport],
    threshold: float = CLUSTER_THRESHOLD,
    scorer: Scorer = score,
) -> dict:
    """Count the teams whose reports on the target's URL describe the same issue.

    Uses the same strict ``score > threshold`` rule as ``build_clusters``,
    comparing each report to *target* only. The target's own team counts
    when *target* is part of *reports*.
    """
    url = normalize_url(target.url)
    desc = normalize_description(target.description)

    teams: list[str] = []
    for report in reports:
        team = normalize_team(report.team)
        if normalize_url(report.url) != url or team in teams:
            continue
        if scorer(normalize_description(report.description), desc) > threshold:
            teams.append(team)

    return {"team_count": len(teams), "teams": teams}


def get_clusters(store: Store, threshold: float = CLUSTER_THRESHOLD) -> dict:
    """Read every non-duplicate report from *store* and cluster it."""
    reports = store.find({"duplicate": False})
    clusters = build_clusters(reports, threshold)
    return {
        "report_type": "clusters",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "summary": {
            "reports": len(reports),
            "clusters": len(clusters),
            "shared_by_several_teams": sum(1 for c in clusters if c["team_count"] > 1),
        },
        "clusters": clusters,
    }


def get_team_matches(store: Store, report_id: str, threshold: float = CLUSTER_THRESHOLD) -> dict:
    """How many teams hit the same issue as report *report_id*.

    Raises:
        StoreNotFoundError: no report with that id.
    """
    target = store.get(report_id)
    same_url = store.find({"url": normalize_url(target.url)})
    matches = match_teams(target, same_url, threshold)
    return {
        "report_type": "team_matches",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "report_id": report_id,
        "url": target.url,
        **matches,
    }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _created_at(report: BugReport) -> datetime:
    return report.created_at or _EPOCH
