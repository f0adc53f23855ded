"""Unit tests for the section catalog."""

import pytest

from src.modules.assessment.catalog import DEFAULT_SECTIONS, SectionCatalog, get_section_catalog
from src.modules.assessment.interface import AnswerType, Section
from src.shared.exceptions import CatalogError, OutOfRangeError

TEXT = AnswerType.TEXT
MC = AnswerType.MULTIPLE_CHOICE
RANKING = AnswerType.RANKING


class TestDefaultCatalog:
    """Tests for the shipped catalog."""

    def test_section_order(self, catalog):
        """Test that sections come in the fixed order."""
        assert catalog.keys == [
            "introduction",
            "interestExploration",
            "workStyle",
            "technicalAptitude",
            "careerValues",
        ]

    def test_required_counts_sum_to_ten(self, catalog):
        """Test that the section counts add up to the assessment total."""
        assert catalog.total_questions == 10
        assert sum(section.required_count for section in catalog) == 10

    def test_full_sequence(self, catalog):
        """Test the exact type sequence across the whole assessment."""
        assert catalog.full_sequence() == [
            TEXT, MC, MC, MC, RANKING, MC, RANKING, MC, MC, TEXT,
        ]

    def test_first_section(self, catalog):
        """Test that the assessment starts with the introduction."""
        assert catalog.first.key == "introduction"
        assert catalog.first.title == "Introduction"

    def test_get_section(self, catalog):
        """Test lookup by key."""
        section = catalog.get("workStyle")
        assert section.required_count == 2
        assert section.type_sequence == (MC, RANKING)

    def test_get_unknown_section_raises(self, catalog):
        """Test that unknown keys raise KeyError."""
        with pytest.raises(KeyError):
            catalog.get("summary")

    def test_contains_and_len(self, catalog):
        """Test membership and size."""
        assert "careerValues" in catalog
        assert "summary" not in catalog
        assert len(catalog) == 5

    def test_get_section_catalog_is_cached(self):
        """Test that the process-wide catalog is built once."""
        assert get_section_catalog() is get_section_catalog()


class TestRequiredType:
    """Tests for per-position type lookups."""

    @pytest.mark.parametrize(
        "key,index,expected",
        [
            ("introduction", 0, TEXT),
            ("interestExploration", 1, MC),
            ("workStyle", 1, RANKING),
            ("technicalAptitude", 0, MC),
            ("careerValues", 2, TEXT),
        ],
    )
    def test_required_type(self, catalog, key, index, expected):
        """Test the type required at selected positions."""
        assert catalog.required_type(key, index) == expected

    def test_accepts_section_object(self, catalog):
        """Test that a Section can be passed instead of a key."""
        assert catalog.required_type(catalog.get("workStyle"), 0) == MC

    def test_index_past_end_raises(self, catalog):
        """Test that an index equal to the count is out of range."""
        with pytest.raises(OutOfRangeError) as exc_info:
            catalog.required_type("introduction", 1)

        assert exc_info.value.details == {
            "section": "introduction",
            "index": 1,
            "required_count": 1,
        }

    def test_negative_index_raises(self, catalog):
        """Test that negative indexes are out of range."""
        with pytest.raises(OutOfRangeError):
            catalog.required_type("careerValues", -1)

    def test_is_last_index(self, catalog):
        """Test detection of the last position in a section."""
        assert catalog.is_last_index("careerValues", 2)
        assert not catalog.is_last_index("careerValues", 1)

    def test_next_section(self, catalog):
        """Test that sections chain in order and end in summary."""
        assert catalog.next_section("introduction") == "interestExploration"
        assert catalog.next_section("technicalAptitude") == "careerValues"
        assert catalog.next_section("careerValues") == "summary"


class TestCatalogChecks:
    """Tests for the load-time catalog checks."""

    def test_empty_catalog_rejected(self):
        """Test that a catalog needs at least one section."""
        with pytest.raises(CatalogError):
            SectionCatalog(sections=(), total_questions=0)

    def test_total_mismatch_rejected(self):
        """Test that counts must add up to the expected total."""
        with pytest.raises(CatalogError, match="expected 10"):
            SectionCatalog(sections=DEFAULT_SECTIONS[:-1])

    def test_sequence_length_mismatch_rejected(self):
        """Test that each type sequence must match its section's count."""
        sections = (Section("only", "Only", 2, (TEXT,)),)
        with pytest.raises(CatalogError, match="lists 1 types"):
            SectionCatalog(sections=sections, total_questions=2)

    def test_duplicate_keys_rejected(self):
        """Test that section keys must be unique."""
        sections = (
            Section("a", "A", 1, (TEXT,)),
            Section("a", "A again", 1, (MC,)),
        )
        with pytest.raises(CatalogError, match="duplicate"):
            SectionCatalog(sections=sections, total_questions=2)

    def test_summary_key_reserved(self):
        """Test that no section may be called summary."""
        sections = (Section("summary", "Summary", 1, (TEXT,)),)
        with pytest.raises(CatalogError, match="reserved"):
            SectionCatalog(sections=sections, total_questions=1)

    def test_zero_count_rejected(self):
        """Test that every section requires at least one question."""
        sections = (
            Section("a", "A", 1, (TEXT,)),
            Section("b", "B", 0, ()),
        )
        with pytest.raises(CatalogError, match="at least one"):
            SectionCatalog(sections=sections, total_questions=1)

    def test_custom_catalog_accepted(self):
        """Test that a consistent custom catalog loads."""
        sections = (
            Section("a", "A", 1, (TEXT,)),
            Section("b", "B", 2, (RANKING, MC)),
        )
        catalog = SectionCatalog(sections=sections, total_questions=3)
        assert catalog.full_sequence() == [TEXT, RANKING, MC]
        assert catalog.next_section("b") == "summary"
