"""Aggregation store for session state."""

from .store import ApplyResult, SessionStore, SweepCandidate

__all__ = ["ApplyResult", "SessionStore", "SweepCandidate"]
