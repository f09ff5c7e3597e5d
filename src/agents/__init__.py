"""
CampusHelp agent - intent routing and the chat turn pipeline.

Public API:
    build_agent()          → HelpdeskOrchestrator (fully wired, ready to chat)
    HelpdeskOrchestrator   → streaming turn loop + handoff actions
    TurnResult             → per-turn outcome
    IntentRouter           → keyword category classifier
    ClassificationResult   → routing result dataclass
    CategoryTable          → read-only category mapping
"""

from .categories import AUTO, Category, CategoryTable, DEFAULT_CATEGORIES
from .orchestrator import (
    ConversationBusyError,
    HelpdeskOrchestrator,
    TurnResult,
    build_agent,
)
from .router import MANUAL_CONFIDENCE, ClassificationResult, IntentRouter, RoutedTurn

__all__ = [
    "AUTO",
    "Category",
    "CategoryTable",
    "ClassificationResult",
    "ConversationBusyError",
    "DEFAULT_CATEGORIES",
    "HelpdeskOrchestrator",
    "IntentRouter",
    "MANUAL_CONFIDENCE",
    "RoutedTurn",
    "TurnResult",
    "build_agent",
]
