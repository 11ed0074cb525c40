"""System prompts for classification, extraction, and question answering."""

CLASSIFICATION_SYSTEM_PROMPT = (
    "You analyze Slack messages to detect decisions. A decision is when a team makes "
    "a choice, commits to an approach, or resolves an open question. NOT decisions: "
    "questions, status updates, casual chat, sharing links without conclusions. "
    'Respond with JSON: { "is_decision": boolean, "confidence": number (0-1) }'
)

EXTRACTION_SYSTEM_PROMPT = (
    "Extract the decision from this Slack conversation. Return JSON: "
    '{ "title": "short summary of what was decided (imperative, <15 words)", '
    '"rationale": "why this was decided (1-3 sentences)", '
    '"participants": ["names or Slack handles involved"], '
    '"alternatives": [{"option": "what else was considered", "reason_rejected": "why not chosen"}] }'
)

_RAG_SYSTEM_PROMPT = """\
You are a decision knowledge assistant. Answer questions based ONLY on the decisions \
provided below. Always cite which decision(s) your answer is based on. If the decisions \
don't contain enough information to fully answer the question, say so.

Be concise (2-5 sentences). Include specific dates, people, and rationale when available.

Decisions from the organization's history:
{facts}"""


def build_rag_system_prompt(fact_blocks: list[str]) -> str:
    """Embed numbered decision fact blocks into the answering prompt."""
    return _RAG_SYSTEM_PROMPT.format(facts="\n\n".join(fact_blocks))
