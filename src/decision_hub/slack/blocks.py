"""Pure functions building Slack Block Kit payloads.

Covers the confirmation DM and its resolved replacement, the edit modal, link
unfurls, the App Home dashboard, and slash-command answers. Handles Slack's
text limits (150 chars for headers, 3000 for section text).
"""

from datetime import datetime

from decision_hub.db.models import ExtractionCandidate
from decision_hub.models.candidates import CandidateStatus
from decision_hub.models.rag import AskResult

CONFIRM_ACTION_ID = "decision_confirm"
EDIT_ACTION_ID = "decision_edit"
IGNORE_ACTION_ID = "decision_ignore"
EDIT_MODAL_CALLBACK_ID = "decision_edit_modal"

AREA_OPTIONS: list[tuple[str, str]] = [
    ("Product", "product"),
    ("Engineering", "engineering"),
    ("Design", "design"),
    ("Operations", "operations"),
    ("Sales", "sales"),
    ("Marketing", "marketing"),
    ("Finance", "finance"),
    ("HR / People", "hr"),
    ("Other", "other"),
]

TYPE_OPTIONS: list[tuple[str, str]] = [
    ("Strategic", "strategic"),
    ("Technical", "technical"),
    ("Process", "process"),
    ("Hiring", "hiring"),
    ("Budget", "budget"),
    ("Policy", "policy"),
    ("Other", "other"),
]

STATUS_EMOJI = {
    CandidateStatus.CONFIRMED: "✅",
    CandidateStatus.EDITED: "✏️",
    CandidateStatus.DISMISSED: "❌",
    CandidateStatus.PENDING: "⏳",
}

STATUS_LABEL = {
    CandidateStatus.CONFIRMED: "Confirmed",
    CandidateStatus.EDITED: "Edited & Confirmed",
    CandidateStatus.DISMISSED: "Dismissed",
}


def _plain_text(text: str, limit: int = 150) -> dict:
    return {"type": "plain_text", "text": text[:limit], "emoji": True}


def _header_block(text: str) -> dict:
    return {"type": "header", "text": _plain_text(text)}


def _section_block(text: str) -> dict:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text[:3000]}}


def _fields_block(fields: list[str]) -> dict:
    # Slack allows at most 10 fields per section
    return {"type": "section", "fields": [{"type": "mrkdwn", "text": f[:2000]} for f in fields[:10]]}


def _context_block(parts: list[str]) -> dict:
    return {"type": "context", "elements": [{"type": "mrkdwn", "text": p} for p in parts]}


def _divider_block() -> dict:
    return {"type": "divider"}


def _button(text: str, action_id: str, value: str, style: str | None = None) -> dict:
    button = {"type": "button", "text": _plain_text(text), "action_id": action_id, "value": value}
    if style:
        button["style"] = style
    return button


def _option(label: str, value: str) -> dict:
    return {"text": _plain_text(label), "value": value}


def _static_select(action_id: str, options: list[tuple[str, str]], initial: str | None, placeholder: str) -> dict:
    element = {
        "type": "static_select",
        "action_id": action_id,
        "placeholder": _plain_text(placeholder),
        "options": [_option(label, value) for label, value in options],
    }
    for label, value in options:
        if value == initial:
            element["initial_option"] = _option(label, value)
    return element


def _input_block(label: str, block_id: str, element: dict, optional: bool = False) -> dict:
    return {
        "type": "input",
        "block_id": block_id,
        "label": _plain_text(label),
        "element": element,
        "optional": optional,
    }


def _format_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


def confirmation_blocks(
    candidate_id: str,
    title: str,
    rationale: str | None,
    confidence: float,
    *,
    area: str | None = None,
    channel_name: str | None = None,
    source_url: str | None = None,
) -> list[dict]:
    """DM asking the author to confirm, edit, or ignore a detected decision."""
    meta = []
    if area:
        meta.append(f"*Area:* {area}")
    meta.append(f"*Confidence:* {round(confidence * 100)}%")
    if channel_name:
        meta.append(f"*Source:* #{channel_name}")
    if source_url:
        meta.append(f"<{source_url}|View in Slack>")

    blocks = [_header_block("Decision Detected"), _section_block(f"*{title}*")]
    if rationale:
        blocks.append(_section_block(f"_{rationale}_"))
    blocks.append(_fields_block(meta))
    blocks.append(_divider_block())
    blocks.append(
        {
            "type": "actions",
            "block_id": f"decision_actions_{candidate_id}",
            "elements": [
                _button("Confirm", CONFIRM_ACTION_ID, candidate_id, "primary"),
                _button("Edit", EDIT_ACTION_ID, candidate_id),
                _button("Ignore", IGNORE_ACTION_ID, candidate_id, "danger"),
            ],
        }
    )
    return blocks


def resolved_blocks(title: str, status: CandidateStatus, actor: str | None = None) -> list[dict]:
    """Replacement for the confirmation DM once the candidate leaves ``pending``."""
    who = f" by {actor}" if actor else ""
    return [
        _section_block(f"{STATUS_EMOJI[status]}  *{title}*"),
        _context_block([f"{STATUS_LABEL[status]}{who}"]),
    ]


def resolved_fallback_text(title: str, status: CandidateStatus) -> str:
    return f"{STATUS_LABEL[status]}: {title}"


def edit_modal(
    candidate_id: str,
    title: str,
    rationale: str | None,
    area: str | None = None,
    decision_type: str | None = None,
) -> dict:
    """Modal view for editing a candidate; the candidate id rides in ``private_metadata``."""
    title_input = {
        "type": "plain_text_input",
        "action_id": "title_input",
        "placeholder": _plain_text("Decision title"),
        "initial_value": title or "",
    }
    rationale_input = {
        "type": "plain_text_input",
        "action_id": "rationale_input",
        "placeholder": _plain_text("Why was this decided?"),
        "initial_value": rationale or "",
        "multiline": True,
    }
    return {
        "type": "modal",
        "callback_id": EDIT_MODAL_CALLBACK_ID,
        "private_metadata": candidate_id,
        "title": _plain_text("Edit Decision"),
        "submit": _plain_text("Save"),
        "close": _plain_text("Cancel"),
        "blocks": [
            _input_block("Title", "title_block", title_input),
            _input_block("Rationale", "rationale_block", rationale_input, optional=True),
            _input_block(
                "Area", "area_block", _static_select("area_input", AREA_OPTIONS, area, "Select area"), optional=True
            ),
            _input_block(
                "Type",
                "type_block",
                _static_select("type_input", TYPE_OPTIONS, decision_type, "Select type"),
                optional=True,
            ),
        ],
    }


def unfurl_blocks(candidate: ExtractionCandidate) -> dict:
    """Unfurl attachment for a shared decision link."""
    blocks = [_section_block(f"*{candidate.title}*")]
    if candidate.rationale:
        blocks.append(_section_block(candidate.rationale))

    fields = [
        f"*Status:* {candidate.status.value}",
        f"*Confidence:* {round(candidate.confidence * 100)}%",
    ]
    if candidate.source_channel:
        fields.append(f"*Source:* #{candidate.source_channel}")
    if candidate.participants:
        fields.append(f"*Participants:* {', '.join(candidate.participants)}")
    blocks.append(_fields_block(fields))
    blocks.append(_divider_block())

    footer = []
    if candidate.extracted_at:
        footer.append(f"Extracted {_format_date(candidate.extracted_at)}")
    footer.append("Powered by Decision Hub")
    blocks.append(_context_block(footer))
    return {"blocks": blocks}


def app_home_view(pending_count: int, recent: list[ExtractionCandidate], app_url: str) -> dict:
    """App Home dashboard: pending callout plus the most recent candidates."""
    blocks = [
        _header_block("Decision Hub"),
        _section_block(
            "Your team's decision memory. Decisions detected from monitored Slack channels appear here."
        ),
        _divider_block(),
    ]

    if pending_count > 0:
        plural = "" if pending_count == 1 else "s"
        blocks.append(
            _section_block(
                f"*{pending_count} pending decision{plural}* awaiting review. "
                "Check your DMs or the dashboard to confirm them."
            )
        )
        blocks.append(_divider_block())

    if recent:
        blocks.append(_header_block("Recent Decisions"))
        for candidate in recent:
            fields = [f"{STATUS_EMOJI[candidate.status]} *{candidate.title}*"]
            if candidate.source_channel:
                fields.append(f"#{candidate.source_channel}")
            if candidate.extracted_at:
                fields.append(_format_date(candidate.extracted_at))
            blocks.append(_fields_block(fields))
    else:
        blocks.append(_section_block("No decisions detected yet. Start by monitoring a channel in your dashboard."))

    blocks.append(_divider_block())
    blocks.append(
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": _plain_text("Open Dashboard"),
                    "action_id": "open_dashboard",
                    "url": app_url,
                    "style": "primary",
                }
            ],
        }
    )
    return {"type": "home", "blocks": blocks}


def answer_blocks(question: str, result: AskResult) -> list[dict]:
    """Slash-command answer with up to three cited sources."""
    if result.sources:
        sources_text = " | ".join(
            f"{i}. {s.action_taken} ({round(s.similarity * 100)}% match)"
            for i, s in enumerate(result.sources[:3], start=1)
        )
    else:
        sources_text = "No sources found"
    return [
        _section_block(f"*Q: {question}*"),
        _section_block(result.answer),
        _divider_block(),
        _context_block([f"Sources: {sources_text}"]),
    ]
