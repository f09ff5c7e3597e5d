"""
Prompt composition for the CampusHelp helpdesk.

Two pieces are produced for every turn:
  1. SYSTEM  - base persona + the routed category's instruction suffix
  2. USER    - the student's text, with a short advisory note appended
               when a real category is active

Both builders are pure.  The base persona can be managed in LangFuse
Prompt Management under ``LANGFUSE_PROMPT_NAMES["agent_system"]``; it is
resolved once when the agent is wired (see ``resolve_persona``) and the
resolved text is handed to the builders.
"""

from typing import Mapping

from agents.categories import AUTO, Category


LANGFUSE_PROMPT_NAMES = {
    "agent_system": "campushelp-agent-system",
}


# 1. SYSTEM - Base persona (fallback)


BASE_PERSONA = """
You are CampusHelp, a polite, concise student-helpdesk agent.
- Answer questions about academics, deadlines, campus services, housing, fees, and student life.
- If unsure, say so and suggest the correct office or typical documentation students should check.
- Follow safety and inclusivity standards; avoid offensive or unsafe content.
- Prefer step-by-step guidance and actionable next steps.
"""

ROUTING_HEADER = "[Intent Routing]"

# 2. USER - advisory note appended to routed turns

USER_NOTE_TEMPLATE = (
    "\n\n(Assistant note: Focus on {label} context; prefer official university "
    "sources; keep steps actionable.)"
)

WEB_RESULTS_HEADER = "[Web Search Results]"

WELCOME_MESSAGE = (
    "Hi! I'm CampusHelp. Attach PDFs or images with /attach, "
    "or just start asking questions."
)


def _lookup(categories: Mapping[str, Category], category_id: str) -> Category:
    """Unknown ids compose like the sentinel."""
    return categories.get(category_id) or categories[AUTO]


def build_system_instruction(
    categories: Mapping[str, Category],
    category_id: str,
    persona: str = BASE_PERSONA,
) -> str:
    """Persona followed by the routed category's instruction suffix."""
    extra = _lookup(categories, category_id).instruction_suffix
    return f"{persona}\n\n{ROUTING_HEADER}\n{extra}"


def augment_user_text(
    categories: Mapping[str, Category],
    category_id: str,
    text: str,
) -> str:
    """Append the advisory note for a keyworded category; otherwise no-op."""
    category = _lookup(categories, category_id)
    if not category.keywords:
        return text
    return text + USER_NOTE_TEMPLATE.format(label=category.label)


def with_web_results(system_instruction: str, web_results: str) -> str:
    """Attach web search context below the routed system instruction."""
    if not web_results:
        return system_instruction
    return f"{system_instruction}\n\n{WEB_RESULTS_HEADER}\n{web_results}"


def resolve_persona() -> str:
    """Base persona from LangFuse if managed there, else the local text."""
    from infrastructure.observability import fetch_prompt

    return fetch_prompt(LANGFUSE_PROMPT_NAMES["agent_system"], fallback=BASE_PERSONA)
