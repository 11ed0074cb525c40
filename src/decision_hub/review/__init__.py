"""Extraction candidate review: state machine and API."""

from decision_hub.review.service import get_candidate, list_candidates, review_bulk, review_one

__all__ = ["get_candidate", "list_candidates", "review_bulk", "review_one"]
