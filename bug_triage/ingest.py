"""Duplicate classification and submission of incoming reports.

Usage:
    report     = new_report(team="alpha", email="a@x.com", url="http://x.com/",
                            description="Login button broken")
    classifier = DuplicateClassifier(store)
    ingestor   = Ingestor(store, classifier)
    saved      = ingestor.submit(report)          # saved.duplicate is set
    result     = ingestor.submit_batch([r1, r2])  # BatchResult

A report is always inserted; ``duplicate`` is metadata, never a rejection.

Concurrency: by default ``submit`` reads the candidates and writes the new
report without any lock. Two similar reports submitted at the same time by
the same team can therefore both be stored with ``duplicate=False``. Pass
``serialize=True`` to hold a per-scope lock across the read and the write
(only effective within one process).
"""

import logging
import threading
import weakref
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

from bug_triage.attachments import validate_attachments
from bug_triage.models import Attachment, BugReport
from bug_triage.normalize import (
    normalize_description,
    normalize_email,
    normalize_team,
    normalize_url,
)
from bug_triage.similarity import score
from bug_triage.store import Store, StoreError, matches

logger = logging.getLogger(__name__)

DUPLICATE_THRESHOLD = 0.5

Scorer = Callable[[str, str], float]

_TEXT_FIELDS = ("team", "email", "url", "description", "testSteps")


class ReportValidationError(ValueError):
    """Raised when a required report field is blank."""


class CandidateScope(str, Enum):
    """Which existing reports can make a new one a duplicate."""

    TEAM_AND_URL = "team_and_url"
    URL_ONLY = "url_only"


# ---------------------------------------------------------------------------
# Report construction
# ---------------------------------------------------------------------------

def new_report(
    team: str,
    email: str,
    url: str,
    description: str,
    test_steps: str = "",
    images: Sequence[Attachment] = (),
) -> BugReport:
    """Build a normalized, unsaved report.

    A blank team falls back to the email address. The description keeps
    its casing and inner spacing; only surrounding whitespace is trimmed.

    Raises:
        ReportValidationError: team (and email), url or description is blank.
        AttachmentError:       the images break the upload limits.
    """
    canonical_team = normalize_team(team or "") or normalize_team(email or "")
    missing = [
        name for name, value in (
            ("team", canonical_team),
            ("url", normalize_url(url or "")),
            ("description", (description or "").strip()),
        )
        if not value
    ]
    if missing:
        raise ReportValidationError(f"Missing required field(s): {', '.join(missing)}")

    validate_attachments(images)
    return BugReport(
        team=canonical_team,
        email=normalize_email(email or ""),
        url=normalize_url(url),
        description=description.strip(),
        test_steps=(test_steps or "").strip(),
        images=tuple(images),
    )


def canonicalize(report: BugReport) -> BugReport:
    """Return *report* with its team, email and URL in canonical form."""
    return replace(
        report,
        team=normalize_team(report.team),
        email=normalize_email(report.email),
        url=normalize_url(report.url),
    )


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

def is_duplicate(
    description: str,
    candidates: Iterable[BugReport],
    threshold: float = DUPLICATE_THRESHOLD,
    scorer: Scorer = score,
) -> bool:
    """True when any candidate scores strictly above *threshold*."""
    norm_desc = normalize_description(description)
    for candidate in candidates:
        s = scorer(normalize_description(candidate.description), norm_desc)
        logger.debug("Candidate %s scored %.4f", candidate.id, s)
        if s > threshold:
            return True
    return False


class DuplicateClassifier:
    """Decides the ``duplicate`` flag of a report before it is stored."""

    def __init__(
        self,
        store: Store,
        threshold: float = DUPLICATE_THRESHOLD,
        scope: CandidateScope = CandidateScope.TEAM_AND_URL,
        scorer: Scorer = score,
    ) -> None:
        self.store = store
        self.threshold = threshold
        self.scope = scope
        self._scorer = scorer

    def scope_key(self, report: BugReport) -> tuple[str, ...]:
        url = normalize_url(report.url)
        if self.scope is CandidateScope.URL_ONLY:
            return (url,)
        return (normalize_team(report.team), url)

    def candidates(self, report: BugReport) -> list[BugReport]:
        """Existing reports in the same scope. Store errors propagate.

        Reports outside the scope are dropped even when the store returns them.
        """
        key = self.scope_key(report)
        if self.scope is CandidateScope.URL_ONLY:
            criteria = {"url": key[0]}
        else:
            criteria = {"team": key[0], "url": key[1]}
        return [r for r in self.store.find(criteria) if matches(r, criteria)]

    def classify(self, report: BugReport) -> bool:
        candidates = self.candidates(report)
        logger.debug(
            "Classifying report from '%s' on %s against %d candidate(s)",
            report.team, report.url, len(candidates),
        )
        duplicate = is_duplicate(
            report.description, candidates, self.threshold, self._scorer
        )
        if duplicate:
            logger.info("Report from '%s' on %s flagged as duplicate", report.team, report.url)
        return duplicate


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

@dataclass
class BatchFailure:
    index: int
    error: str


@dataclass
class BatchResult:
    """Outcome of a best-effort batch: one bad report does not stop the rest."""

    inserted: list[BugReport] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        return {
            "inserted": [r.to_dict() for r in self.inserted],
            "failures": [{"index": f.index, "error": f.error} for f in self.failures],
        }


class Ingestor:
    """Classifies and stores reports."""

    def __init__(
        self,
        store: Store,
        classifier: DuplicateClassifier | None = None,
        serialize: bool = False,
    ) -> None:
        self.store = store
        self.classifier = classifier or DuplicateClassifier(store)
        self.serialize = serialize
        # Entries go away once no submission holds the lock
        self._locks: weakref.WeakValueDictionary[tuple[str, ...], threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    def submit(self, report: BugReport) -> BugReport:
        """Classify *report* and insert it. Store errors propagate unchanged."""
        if not self.serialize:
            return self._classify_and_insert(report)
        with self._lock_for(report):
            return self._classify_and_insert(report)

    def submit_batch(self, reports: Iterable[BugReport | dict]) -> BatchResult:
        """Submit reports in order, recording failures and carrying on.

        Dict items are passed to ``new_report`` first. Each item is
        classified against everything stored before it, earlier items of
        the same batch included.
        """
        result = BatchResult()
        for index, item in enumerate(reports):
            try:
                report = item if isinstance(item, BugReport) else _report_from_dict(item)
                result.inserted.append(self.submit(report))
            except (ValueError, StoreError) as exc:
                logger.warning("Batch item %d rejected: %s", index, exc)
                result.failures.append(BatchFailure(index=index, error=str(exc)))
        return result

    def _classify_and_insert(self, report: BugReport) -> BugReport:
        report = canonicalize(report)
        duplicate = self.classifier.classify(report)
        saved = self.store.insert(report.with_duplicate(duplicate))
        logger.info("Inserted report %s (duplicate=%s)", saved.id, saved.duplicate)
        return saved

    def _lock_for(self, report: BugReport) -> threading.Lock:
        key = self.classifier.scope_key(report)
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())


def _report_from_dict(raw: dict) -> BugReport:
    if not isinstance(raw, dict):
        raise ReportValidationError(f"Expected a report object, got {type(raw).__name__}")
    for key in _TEXT_FIELDS:
        if not isinstance(raw.get(key) or "", str):
            raise ReportValidationError(
                f"Field '{key}' must be a string, got {type(raw[key]).__name__}"
            )
    images = raw.get("images") or []
    if not isinstance(images, list) or not all(_is_attachment(a) for a in images):
        raise ReportValidationError("Field 'images' must be a list of attachment objects")
    return new_report(
        team=raw.get("team") or "",
        email=raw.get("email") or "",
        url=raw.get("url") or "",
        description=raw.get("description") or "",
        test_steps=raw.get("testSteps") or "",
        images=[Attachment.from_dict(a) for a in images],
    )


def _is_attachment(raw: object) -> bool:
    return (
        isinstance(raw, dict)
        and isinstance(raw.get("size", 0), int)
        and all(isinstance(raw.get(k, ""), str) for k in ("path", "originalName", "mimetype"))
    )

