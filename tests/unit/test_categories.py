"""
Tests for the category table.
"""

import pytest

from agents.categories import AUTO, Category, CategoryTable, DEFAULT_CATEGORIES


class TestDefaultTable:
    """Built-in Fees / Scholarships / Timetable / Housing table"""

    def test_ids_in_fixed_order(self, categories):
        assert list(categories) == ["fees", "scholarships", "timetable", "housing", AUTO]

    def test_sentinel_has_no_keywords(self, categories):
        assert categories.sentinel.id == AUTO
        assert categories.sentinel.label == "Auto"
        assert categories.sentinel.keywords == ()

    def test_routable_excludes_sentinel(self, categories):
        ids = [c.id for c in categories.routable()]
        assert AUTO not in ids
        assert ids == ["fees", "scholarships", "timetable", "housing"]

    def test_is_routable(self, categories):
        assert categories.is_routable("housing")
        assert not categories.is_routable(AUTO)
        assert not categories.is_routable("parking")
        assert not categories.is_routable(None)

    def test_every_real_category_has_lowercase_keywords(self, categories):
        for category in categories.routable():
            assert category.keywords
            assert all(k == k.lower() for k in category.keywords)

    def test_table_is_read_only(self, categories):
        with pytest.raises(TypeError):
            categories["parking"] = categories["fees"]


class TestTableValidation:
    """Construction-time invariants"""

    def test_duplicate_ids_rejected(self):
        dup = list(DEFAULT_CATEGORIES) + [Category("fees", "Fees again", "x", ("fee",))]
        with pytest.raises(ValueError, match="Duplicate"):
            CategoryTable(dup)

    def test_missing_sentinel_rejected(self):
        with pytest.raises(ValueError, match="sentinel"):
            CategoryTable([Category("fees", "Fees", "x", ("fee",))])

    def test_sentinel_with_keywords_rejected(self):
        with pytest.raises(ValueError, match="keywords"):
            CategoryTable([Category(AUTO, "Auto", "x", ("anything",))])

    def test_keywords_are_lowercased(self):
        table = CategoryTable([
            Category("library", "Library", "Books.", ("Loan", "OVERDUE")),
            Category(AUTO, "Auto", "General."),
        ])
        assert table["library"].keywords == ("loan", "overdue")


class TestFromYaml:
    """Loading a custom table from YAML"""

    def test_load_preserves_order(self, tmp_path):
        path = tmp_path / "categories.yaml"
        path.write_text(
            "categories:\n"
            "  - id: library\n"
            "    label: Library\n"
            "    instruction_suffix: Specialize in library loans.\n"
            "    keywords: [loan, overdue, book]\n"
            "  - id: parking\n"
            "    label: Parking\n"
            "    instruction_suffix: Specialize in campus parking.\n"
            "    keywords: [parking, permit]\n"
            "  - id: auto\n"
            "    label: Auto\n"
            "    instruction_suffix: General help.\n",
            encoding="utf-8",
        )

        table = CategoryTable.from_yaml(path)

        assert list(table) == ["library", "parking", AUTO]
        assert table["parking"].keywords == ("parking", "permit")
        assert table["library"].instruction_suffix == "Specialize in library loans."

    def test_empty_file_rejected(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ValueError):
            CategoryTable.from_yaml(path)
