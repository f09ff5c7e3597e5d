"""
Prompt templates - CampusHelp persona, routed system instruction, user note.

The persona can be fetched from LangFuse Prompt Management at start-up.
Local fallbacks are defined in 'agent_prompts.py'.
"""

from .agent_prompts import (
    BASE_PERSONA,
    LANGFUSE_PROMPT_NAMES,
    WELCOME_MESSAGE,
    augment_user_text,
    build_system_instruction,
    resolve_persona,
    with_web_results,
)

__all__ = [
    "BASE_PERSONA",
    "LANGFUSE_PROMPT_NAMES",
    "WELCOME_MESSAGE",
    "augment_user_text",
    "build_system_instruction",
    "resolve_persona",
    "with_web_results",
]
