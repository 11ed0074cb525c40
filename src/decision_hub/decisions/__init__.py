"""Canonical decision records: commit from review, direct logging, embedding backfill."""

from decision_hub.decisions.commit import backfill_embeddings, build_decision_text, commit_candidate, log_decision

__all__ = ["backfill_embeddings", "build_decision_text", "commit_candidate", "log_decision"]
