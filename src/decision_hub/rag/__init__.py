"""Retrieval-augmented answers over the decision store."""

from decision_hub.rag.engine import NO_CONTEXT_ANSWER, ask, search_decisions

__all__ = ["NO_CONTEXT_ANSWER", "ask", "search_decisions"]
