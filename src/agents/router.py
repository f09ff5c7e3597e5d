"""
Intent Router - keyword-based category classification.

Takes the student's message (plus an optional manual category chosen
by the user) and returns the routed category, its confidence, and the
prompt materials the orchestrator sends to the chat model.

Pipeline per turn::

    text, override → detect → resolve → {system_instruction, augmented_text, confidence}

The router is pure and holds no per-turn state, so one instance can be
shared across concurrent conversations.
"""

from dataclasses import dataclass
from typing import Optional

from agents.categories import AUTO, CategoryTable
from agents.prompts.agent_prompts import (
    BASE_PERSONA,
    augment_user_text,
    build_system_instruction,
)

# Confidence reported for a manually selected category. Any value > 0
# suppresses the human-handoff offer.
MANUAL_CONFIDENCE = 2


@dataclass(frozen=True)
class ClassificationResult:
    """
    Category chosen for one user turn.

    Attributes:
        category_id: Manual override if set, else the best automatic match
                     (``auto`` when nothing matched).
        confidence: Count of matched keywords, or ``MANUAL_CONFIDENCE``.
    """

    category_id: str = AUTO
    confidence: int = 0


@dataclass(frozen=True)
class RoutedTurn:
    """Everything the model-invocation step needs for one turn."""

    result: ClassificationResult
    system_instruction: str
    augmented_text: str
    manual: bool = False

    @property
    def category_id(self) -> str:
        return self.result.category_id

    @property
    def confidence(self) -> int:
        return self.result.confidence


class IntentRouter:
    """
    Routes student messages to a helpdesk category.

    Dependencies are passed in explicitly so the router can be built
    from any table (tests, YAML overrides) without global lookup.
    """

    def __init__(
        self,
        categories: Optional[CategoryTable] = None,
        persona: str = BASE_PERSONA,
    ) -> None:
        self.categories = categories if categories is not None else CategoryTable()
        self.persona = persona

    # classification

    def detect(self, text: Optional[str]) -> ClassificationResult:
        """
        Score every category by distinct keyword hits in ``text``.

        The strictly highest score wins; equal scores keep the category
        that comes first in the table.  No hits → ``auto`` with 0.
        """
        normalised = (text or "").lower()
        best = ClassificationResult(AUTO, 0)

        for category in self.categories.routable():
            score = sum(1 for keyword in category.keywords if keyword in normalised)
            if score > best.confidence:
                best = ClassificationResult(category.id, score)

        return best

    def resolve(
        self,
        manual_override: Optional[str],
        auto_result: ClassificationResult,
    ) -> ClassificationResult:
        """
        Apply a manual category selection on top of automatic detection.

        ``None``, ``auto`` and unknown ids fall through to ``auto_result``.
        """
        if self.categories.is_routable(manual_override):
            return ClassificationResult(manual_override, MANUAL_CONFIDENCE)
        return auto_result

    def parse_selection(self, value: Optional[str]) -> str:
        """
        Normalise a user-typed category selection.

        Blank means ``auto``.  Raises ValueError for ids not in the table.
        """
        wanted = (value or AUTO).strip().lower() or AUTO
        if wanted != AUTO and not self.categories.is_routable(wanted):
            raise ValueError(
                f"Unknown category '{wanted}'. Choose from: " + ", ".join(self.categories)
            )
        return wanted

    # prompt materials

    def build_system_instruction(self, category_id: str) -> str:
        return build_system_instruction(self.categories, category_id, self.persona)

    def augment_user_text(self, category_id: str, text: str) -> str:
        return augment_user_text(self.categories, category_id, text)

    # full pipeline

    def route(self, text: str, manual_override: Optional[str] = None) -> RoutedTurn:
        """Classify ``text`` and build the routed prompt materials."""
        result = self.resolve(manual_override, self.detect(text))
        return RoutedTurn(
            result=result,
            system_instruction=self.build_system_instruction(result.category_id),
            augmented_text=self.augment_user_text(result.category_id, text),
            manual=self.categories.is_routable(manual_override),
        )

    def label(self, category_id: str) -> str:
        """Display label for a category id (``Auto`` for unknown ids)."""
        category = self.categories.get(category_id) or self.categories.sentinel
        return category.label
