"""Decision classification and extraction.

Public API:
    process(session, organization_id, messages, channel_name, thread_ts=, channel_id=)
        -> ExtractionCandidate | None
"""

from decision_hub.extraction.engine import classify, extract, format_thread_text, process

__all__ = ["classify", "extract", "format_thread_text", "process"]
