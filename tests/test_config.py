"""Tests for bug_triage/config.py"""

import textwrap
from pathlib import Path

import pytest
import yaml

from bug_triage.config import (
    TEMPLATE,
    ConfigError,
    generate_template,
    load,
)
from bug_triage.ingest import CandidateScope


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def write_config(tmp_path: Path, content: str) -> Path:
    p = tmp_path / "bug-triage.yaml"
    p.write_text(textwrap.dedent(content), encoding="utf-8")
    return p


VALID_YAML = """\
    store:
      url: "http://bugs.example.com"
      token: "tok_abc123"
      timeout: 10
    matching:
      duplicate_threshold: 0.6
      cluster_threshold: 0.55
      duplicate_scope: url_only
      serialize_ingestion: true
    """


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    monkeypatch.delenv("BUG_TRIAGE_STORE_URL", raising=False)
    monkeypatch.delenv("BUG_TRIAGE_STORE_TOKEN", raising=False)


# ---------------------------------------------------------------------------
# load() (happy path)
# ---------------------------------------------------------------------------

def test_load_valid_config(tmp_path):
    config = load(str(write_config(tmp_path, VALID_YAML)))
    assert config.store_url == "http://bugs.example.com"
    assert config.store_token == "tok_abc123"
    assert config.store_timeout == 10
    assert config.duplicate_threshold == 0.6
    assert config.cluster_threshold == 0.55
    assert config.duplicate_scope is CandidateScope.URL_ONLY
    assert config.serialize_ingestion is True


def test_load_defaults(tmp_path):
    p = write_config(tmp_path, """\
        store:
          url: "http://bugs.example.com"
        """)
    config = load(str(p))
    assert config.store_token == ""
    assert config.store_timeout == 30
    assert config.duplicate_threshold == 0.5
    assert config.cluster_threshold == 0.5
    assert config.duplicate_scope is CandidateScope.TEAM_AND_URL
    assert config.serialize_ingestion is False


# ---------------------------------------------------------------------------
# load() (errors)
# ---------------------------------------------------------------------------

def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load(str(tmp_path / "no-such-file.yaml"))


def test_load_missing_url(tmp_path):
    p = write_config(tmp_path, """\
        store:
          token: "tok"
        """)
    with pytest.raises(ConfigError, match="store.url"):
        load(str(p))


def test_load_threshold_out_of_range(tmp_path):
    p = write_config(tmp_path, """\
        store:
          url: "http://bugs.example.com"
        matching:
          duplicate_threshold: 1.5
        """)
    with pytest.raises(ConfigError, match="duplicate_threshold"):
        load(str(p))


def test_load_threshold_not_a_number(tmp_path):
    p = write_config(tmp_path, """\
        store:
          url: "http://bugs.example.com"
        matching:
          cluster_threshold: high
        """)
    with pytest.raises(ConfigError, match="cluster_threshold"):
        load(str(p))


def test_load_unknown_scope(tmp_path):
    p = write_config(tmp_path, """\
        store:
          url: "http://bugs.example.com"
        matching:
          duplicate_scope: team_only
        """)
    with pytest.raises(ConfigError, match="team_and_url, url_only"):
        load(str(p))


def test_load_reports_every_problem_at_once(tmp_path):
    p = write_config(tmp_path, """\
        matching:
          duplicate_threshold: -1
        """)
    with pytest.raises(ConfigError) as exc_info:
        load(str(p))
    assert "store.url" in str(exc_info.value)
    assert "duplicate_threshold" in str(exc_info.value)


def test_load_invalid_yaml(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("store: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError, match="parse"):
        load(str(p))


def test_load_non_mapping_yaml(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- item1\n- item2\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load(str(p))


# ---------------------------------------------------------------------------
# load() (environment variable override)
# ---------------------------------------------------------------------------

def test_env_var_overrides_url(tmp_path, monkeypatch):
    p = write_config(tmp_path, VALID_YAML)
    monkeypatch.setenv("BUG_TRIAGE_STORE_URL", "http://override.example.com")
    assert load(str(p)).store_url == "http://override.example.com"


def test_env_var_overrides_token(tmp_path, monkeypatch):
    p = write_config(tmp_path, VALID_YAML)
    monkeypatch.setenv("BUG_TRIAGE_STORE_TOKEN", "tok_override")
    assert load(str(p)).store_token == "tok_override"


def test_env_var_supplies_missing_url(tmp_path, monkeypatch):
    p = write_config(tmp_path, "matching: {}\n")
    monkeypatch.setenv("BUG_TRIAGE_STORE_URL", "http://env.example.com")
    assert load(str(p)).store_url == "http://env.example.com"


# ---------------------------------------------------------------------------
# generate_template()
# ---------------------------------------------------------------------------

def test_generate_template_creates_file(tmp_path):
    out = tmp_path / "bug-triage.yaml"
    generate_template(str(out))
    assert out.exists()
    assert "duplicate_threshold" in out.read_text(encoding="utf-8")


def test_generate_template_refuses_to_overwrite(tmp_path):
    out = tmp_path / "bug-triage.yaml"
    out.write_text("existing", encoding="utf-8")
    with pytest.raises(ConfigError, match="already exists"):
        generate_template(str(out))


def test_template_is_loadable(tmp_path):
    out = tmp_path / "bug-triage.yaml"
    generate_template(str(out))
    assert yaml.safe_load(TEMPLATE)["store"]["url"] == "http://localhost:3000"
    assert load(str(out)).duplicate_scope is CandidateScope.TEAM_AND_URL
