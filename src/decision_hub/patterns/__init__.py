"""Pattern mining over confirmed decisions."""

from decision_hub.patterns.mining import discover, list_patterns, pattern_id

__all__ = ["discover", "list_patterns", "pattern_id"]
