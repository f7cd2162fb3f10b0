"""Match engine for pairing PDF-origin and email-origin bill records."""

from bill_dedup.matching.engine import MatchDecision, MatchEngine, MatchSignal

__all__ = ["MatchEngine", "MatchDecision", "MatchSignal"]
