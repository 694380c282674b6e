"""bug-triage: duplicate detection and cross-team clustering for bug reports."""

__version__ = "0.1.0"
