"""Configuration loading and validation.

Usage:
    config = load("bug-triage.yaml")         # raises ConfigError on bad config
    scope  = config.duplicate_scope          # CandidateScope.TEAM_AND_URL
    generate_template("bug-triage.yaml")     # writes example file to disk
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from bug_triage.ingest import CandidateScope

DEFAULT_THRESHOLD = 0.5


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Config dataclass
# ---------------------------------------------------------------------------

@dataclass
class Config:
    store_url: str
    store_token: str = ""
    store_timeout: int = 30
    duplicate_threshold: float = DEFAULT_THRESHOLD
    cluster_threshold: float = DEFAULT_THRESHOLD
    duplicate_scope: CandidateScope = CandidateScope.TEAM_AND_URL
    serialize_ingestion: bool = False


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str = "bug-triage.yaml") -> Config:
    """Load and validate configuration from a YAML file.

    Environment variables BUG_TRIAGE_STORE_URL and BUG_TRIAGE_STORE_TOKEN
    override file values.

    Raises:
        ConfigError: if the file is missing, malformed, or a field is
                     absent or out of range.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `python -m bug_triage init` to generate a template."
        )

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")

    store = raw.get("store") or {}
    matching = raw.get("matching") or {}
    url = os.environ.get("BUG_TRIAGE_STORE_URL") or store.get("url", "")
    token = os.environ.get("BUG_TRIAGE_STORE_TOKEN") or store.get("token", "")

    errors: list[str] = []
    if not str(url).strip():
        errors.append(
            "  - 'store.url' is missing (or set the BUG_TRIAGE_STORE_URL environment variable)"
        )

    duplicate_threshold = _threshold(matching, "duplicate_threshold", errors)
    cluster_threshold = _threshold(matching, "cluster_threshold", errors)

    scope_name = matching.get("duplicate_scope", CandidateScope.TEAM_AND_URL.value)
    try:
        scope = CandidateScope(scope_name)
    except ValueError:
        allowed = ", ".join(s.value for s in CandidateScope)
        errors.append(f"  - 'matching.duplicate_scope' must be one of: {allowed}")
        scope = CandidateScope.TEAM_AND_URL

    try:
        timeout = int(store.get("timeout", 30))
    except (TypeError, ValueError):
        errors.append("  - 'store.timeout' must be a whole number of seconds")
        timeout = 30

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))

    return Config(
        store_url=str(url).strip(),
        store_token=str(token or "").strip(),
        store_timeout=timeout,
        duplicate_threshold=duplicate_threshold,
        cluster_threshold=cluster_threshold,
        duplicate_scope=scope,
        serialize_ingestion=bool(matching.get("serialize_ingestion", False)),
    )


def _threshold(matching: dict, key: str, errors: list[str]) -> float:
    value = matching.get(key, DEFAULT_THRESHOLD)
    try:
        value = float(value)
    except (TypeError, ValueError):
        errors.append(f"  - 'matching.{key}' must be a number")
        return DEFAULT_THRESHOLD
    if not 0.0 <= value <= 1.0:
        errors.append(f"  - 'matching.{key}' must be between 0 and 1 (got {value})")
    return value


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
store:
  url: "http://localhost:3000"
  token: ""                       # Bearer token, if the store requires one
  timeout: 30

matching:
  # A score strictly above the threshold counts as a match
  duplicate_threshold: 0.5
  cluster_threshold: 0.5
  duplicate_scope: team_and_url   # or: url_only
  serialize_ingestion: false      # true = lock per team+URL while submitting
"""


def generate_template(output_path: str = "bug-triage.yaml") -> None:
    """Write a template bug-triage.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists.
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
