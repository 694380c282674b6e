"""Canonical forms for the free-text fields of a bug report.

Functions:
    normalize_team(s)         -> "Team Alpha"
    normalize_email(s)        -> "dev@example.com"
    normalize_url(s)          -> "http://x.com/login"
    normalize_description(s)  -> "login button is broken"

All of them are pure, idempotent and accept the empty string.
"""

import re

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_team(s: str) -> str:
    """Trim, lower-case, then capitalize the first letter of every word."""
    return " ".join(w.capitalize() for w in s.lower().split())


def normalize_email(s: str) -> str:
    return s.strip().lower()


def normalize_url(s: str) -> str:
    """Trim and drop any run of trailing slashes."""
    return s.strip().rstrip("/")


def normalize_description(s: str) -> str:
    """Lower-case and collapse whitespace; used for comparison only, never stored."""
    return _WHITESPACE_RE.sub(" ", s.lower()).strip()
