"""
Category table - the domain specialisations CampusHelp can route to.

Each category carries a display label, an instruction suffix appended to
the base persona, and the lowercase keywords used for detection.  The
sentinel ``auto`` category has no keywords and is what a turn falls back
to when nothing matches.

The table is built once and never mutated; iteration order is part of
its contract because the classifier breaks score ties in favour of the
category listed first.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, Mapping, Tuple, Union

import yaml

AUTO = "auto"


@dataclass(frozen=True)
class Category:
    """
    A named domain specialisation.

    Attributes:
        id: Unique key (``fees``, ``housing``, … or the ``auto`` sentinel).
        label: Human-readable name, also used in the user-turn note.
        instruction_suffix: Text appended to the base system instruction.
        keywords: Lowercase substrings used for detection.
    """

    id: str
    label: str
    instruction_suffix: str
    keywords: Tuple[str, ...] = ()

    @property
    def is_sentinel(self) -> bool:
        return not self.keywords


DEFAULT_CATEGORIES: Tuple[Category, ...] = (
    Category(
        id="fees",
        label="Fees",
        instruction_suffix=(
            "Specialize in tuition/fee schedules, payment deadlines, penalties, late fees, "
            "and bursar processes. Prefer official bursar/registrar sources. Provide next "
            "steps and which office to contact if policy varies."
        ),
        keywords=("tuition", "fee", "bursar", "invoice", "payment", "late fee", "penalty", "refund"),
    ),
    Category(
        id="scholarships",
        label="Scholarships",
        instruction_suffix=(
            "Specialize in scholarships, grants, eligibility, deadlines, required documents, "
            "and how to apply or renew. Prefer financial aid office sources. Provide "
            "step-by-step next actions."
        ),
        keywords=("scholarship", "grant", "aid", "merit", "need-based", "funding", "renewal"),
    ),
    Category(
        id="timetable",
        label="Timetable",
        instruction_suffix=(
            "Specialize in academic calendars, class schedules, exam timetables, and add/drop "
            "windows. Prefer registrar and department announcements. Provide dates and "
            "procedural steps clearly."
        ),
        keywords=("timetable", "schedule", "calendar", "exam", "slot", "add/drop", "registration"),
    ),
    Category(
        id="housing",
        label="Housing",
        instruction_suffix=(
            "Specialize in campus housing, applications, waitlists, room assignments, "
            "move-in/out, and maintenance requests. Prefer residence life sources. Provide "
            "clear steps and contacts."
        ),
        keywords=("housing", "hostel", "residence", "dorm", "move-in", "lease", "maintenance"),
    ),
    Category(
        id=AUTO,
        label="Auto",
        instruction_suffix=(
            "No specialization; respond generally as CampusHelp and ask clarifying "
            "follow-ups if needed."
        ),
    ),
)


class CategoryTable(Mapping[str, Category]):
    """Read-only, ordered mapping of category id → ``Category``."""

    def __init__(self, categories: Iterable[Category] = DEFAULT_CATEGORIES) -> None:
        table: Dict[str, Category] = {}
        for cat in categories:
            if cat.id in table:
                raise ValueError(f"Duplicate category id: {cat.id!r}")
            keywords = tuple(k.lower() for k in cat.keywords if k)
            table[cat.id] = Category(cat.id, cat.label, cat.instruction_suffix, keywords)

        sentinel = table.get(AUTO)
        if sentinel is None:
            raise ValueError(f"Category table must define the {AUTO!r} sentinel")
        if sentinel.keywords:
            raise ValueError(f"The {AUTO!r} sentinel must not have keywords")

        self._table = table

    def __getitem__(self, category_id: str) -> Category:
        return self._table[category_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"CategoryTable({list(self._table)})"

    @property
    def sentinel(self) -> Category:
        return self._table[AUTO]

    def routable(self) -> Tuple[Category, ...]:
        """Categories that can win detection, in table order."""
        return tuple(c for c in self._table.values() if c.id != AUTO)

    def is_routable(self, category_id) -> bool:
        return category_id != AUTO and category_id in self._table

    # loading

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CategoryTable":
        """
        Load a table from YAML.

        Expected shape (order preserved)::

            categories:
              - id: fees
                label: Fees
                instruction_suffix: "..."
                keywords: [tuition, fee]
              - id: auto
                label: Auto
                instruction_suffix: "..."
        """
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}

        entries = data.get("categories") or []
        if not entries:
            raise ValueError(f"No categories defined in {path}")

        return cls(
            Category(
                id=str(entry["id"]),
                label=str(entry.get("label", entry["id"])),
                instruction_suffix=str(entry.get("instruction_suffix", "")),
                keywords=tuple(str(k) for k in entry.get("keywords") or ()),
            )
            for entry in entries
        )
