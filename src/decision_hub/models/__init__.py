"""Data models and enums for the Decision Hub pipeline."""

from decision_hub.models.candidates import (
    Alternative,
    BulkReviewResult,
    CandidateEdits,
    CandidateNotes,
    CandidateRead,
    CandidateStatus,
    ReviewAction,
    ReviewResult,
)
from decision_hub.models.decisions import DecisionCreate, DecisionRead, DecisionSource
from decision_hub.models.patterns import DiscoveryResult, PatternRead, PatternType
from decision_hub.models.rag import AskResult, AskSource
from decision_hub.models.slack import HistoryPage, SlackMessage, ThreadMessage

__all__ = [
    "Alternative",
    "BulkReviewResult",
    "CandidateEdits",
    "CandidateNotes",
    "CandidateRead",
    "CandidateStatus",
    "ReviewAction",
    "ReviewResult",
    "DecisionCreate",
    "DecisionRead",
    "DecisionSource",
    "DiscoveryResult",
    "PatternRead",
    "PatternType",
    "AskResult",
    "AskSource",
    "HistoryPage",
    "SlackMessage",
    "ThreadMessage",
]
