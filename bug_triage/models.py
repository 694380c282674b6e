"""Data models for bug reports.

Contains dataclasses used by the engine and their JSON helpers:
    - Attachment
    - BugReport

The JSON shape follows the bug-reporter API (camelCase keys, ``_id``).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class Attachment:
    path: str
    original_name: str
    size: int
    media_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "originalName": self.original_name,
            "size": self.size,
            "mimetype": self.media_type,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Attachment":
        return cls(
            path=raw.get("path", ""),
            original_name=raw.get("originalName", ""),
            size=int(raw.get("size", 0)),
            media_type=raw.get("mimetype", ""),
        )


@dataclass(frozen=True)
class BugReport:
    """A single report as submitted by a team.

    ``id`` and ``created_at`` are ``None`` until the store assigns them.
    ``duplicate`` is decided once, before insertion, and never revisited.
    """

    team: str
    email: str
    url: str
    description: str
    test_steps: str = ""
    images: tuple[Attachment, ...] = ()
    duplicate: bool = False
    id: str | None = None
    created_at: datetime | None = None

    def with_duplicate(self, duplicate: bool) -> "BugReport":
        return replace(self, duplicate=duplicate)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "team": self.team,
            "email": self.email,
            "url": self.url,
            "description": self.description,
            "testSteps": self.test_steps,
            "images": [a.to_dict() for a in self.images],
            "duplicate": self.duplicate,
        }
        if self.id is not None:
            data["_id"] = self.id
        if self.created_at is not None:
            data["createdAt"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "BugReport":
        created = raw.get("createdAt")
        return cls(
            team=raw.get("team", ""),
            email=raw.get("email", ""),
            url=raw.get("url", ""),
            description=raw.get("description", ""),
            test_steps=raw.get("testSteps") or "",
            images=tuple(Attachment.from_dict(a) for a in raw.get("images") or []),
            duplicate=bool(raw.get("duplicate", False)),
            id=str(raw["_id"]) if raw.get("_id") is not None else None,
            created_at=_parse_timestamp(created) if created else None,
        )


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string; values without an offset are taken as UTC."""
    # Mongo/JS emit a trailing "Z", which fromisoformat only accepts from 3.11
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Cluster:
    """One unique issue: non-duplicate reports on the same URL.

    ``representative_description`` belongs to the founding report and is
    never updated by later members.
    """

    url: str
    representative_description: str
    teams: list[str] = field(default_factory=list)
    first_seen_at: dict[str, datetime] = field(default_factory=dict)

    def add(self, team: str, seen_at: datetime) -> None:
        if team not in self.first_seen_at:
            self.teams.append(team)
            self.first_seen_at[team] = seen_at

    def summary(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "description": self.representative_description,
            "team_count": len(self.teams),
            "teams": list(self.teams),
            "first_seen_at": {t: ts.isoformat() for t, ts in self.first_seen_at.items()},
        }
