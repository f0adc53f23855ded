"""Section catalog - the fixed, ordered table of assessment sections.

The catalog is the single source of truth for section order, per-section
question counts and the answer type required at every position. All
progression logic is derived from it.
"""

import logging
from functools import lru_cache

from src.modules.assessment.interface import AnswerType, Section
from src.shared.constants import SUMMARY_SECTION, TOTAL_ASSESSMENT_QUESTIONS
from src.shared.exceptions import CatalogError, OutOfRangeError

logger = logging.getLogger(__name__)

TEXT = AnswerType.TEXT
MULTIPLE_CHOICE = AnswerType.MULTIPLE_CHOICE
RANKING = AnswerType.RANKING


DEFAULT_SECTIONS: tuple[Section, ...] = (
    Section("introduction", "Introduction", 1, (TEXT,)),
    Section("interestExploration", "Interest Exploration", 2, (MULTIPLE_CHOICE, MULTIPLE_CHOICE)),
    Section("workStyle", "Work Style", 2, (MULTIPLE_CHOICE, RANKING)),
    Section("technicalAptitude", "Technical Aptitude", 2, (MULTIPLE_CHOICE, RANKING)),
    Section("careerValues", "Career Values", 3, (MULTIPLE_CHOICE, MULTIPLE_CHOICE, TEXT)),
)


class SectionCatalog:
    """Immutable, ordered collection of sections.

    Checked once at construction: keys are unique, no key collides with the
    terminal ``summary`` marker, every section's type sequence matches its
    count, and the counts add up to the expected total.
    """

    def __init__(
        self,
        sections: tuple[Section, ...] = DEFAULT_SECTIONS,
        total_questions: int = TOTAL_ASSESSMENT_QUESTIONS,
    ) -> None:
        self._sections = tuple(sections)
        self._total_questions = total_questions
        self._check()
        self._by_key = {section.key: section for section in self._sections}
        self._order = {section.key: i for i, section in enumerate(self._sections)}

    def _check(self) -> None:
        if not self._sections:
            raise CatalogError("catalog has no sections")

        seen: set[str] = set()
        for section in self._sections:
            if section.key == SUMMARY_SECTION:
                raise CatalogError(f"'{SUMMARY_SECTION}' is reserved for the terminal state")
            if section.key in seen:
                raise CatalogError(f"duplicate section key '{section.key}'")
            seen.add(section.key)
            if section.required_count < 1:
                raise CatalogError(f"section '{section.key}' must require at least one question")
            if len(section.type_sequence) != section.required_count:
                raise CatalogError(
                    f"section '{section.key}' requires {section.required_count} questions "
                    f"but lists {len(section.type_sequence)} types"
                )

        total = sum(section.required_count for section in self._sections)
        if total != self._total_questions:
            raise CatalogError(f"sections add up to {total} questions, expected {self._total_questions}")

    @property
    def sections(self) -> tuple[Section, ...]:
        return self._sections

    @property
    def keys(self) -> list[str]:
        return [section.key for section in self._sections]

    @property
    def first(self) -> Section:
        return self._sections[0]

    @property
    def total_questions(self) -> int:
        return self._total_questions

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self):
        return iter(self._sections)

    def __len__(self) -> int:
        return len(self._sections)

    def get(self, key: str) -> Section:
        """Look up a section by key.

        Raises:
            KeyError: If the key is not in the catalog
        """
        return self._by_key[key]

    def position(self, key: str) -> int:
        """Zero-based position of a section in catalog order."""
        return self._order[key]

    def _resolve(self, section: Section | str) -> Section:
        return self.get(section) if isinstance(section, str) else section

    def required_type(self, section: Section | str, index: int) -> AnswerType:
        """Answer type required at ``index`` within ``section``.

        Raises:
            OutOfRangeError: If the index is negative or past the section's end
        """
        resolved = self._resolve(section)
        if index < 0 or index >= resolved.required_count:
            raise OutOfRangeError(resolved.key, index, resolved.required_count)
        return resolved.type_sequence[index]

    def is_last_index(self, section: Section | str, index: int) -> bool:
        resolved = self._resolve(section)
        return index == resolved.required_count - 1

    def next_section(self, section: Section | str) -> str:
        """Key of the section that follows, or ``summary`` after the last one."""
        resolved = self._resolve(section)
        position = self._order[resolved.key]
        if position + 1 < len(self._sections):
            return self._sections[position + 1].key
        return SUMMARY_SECTION

    def full_sequence(self) -> list[AnswerType]:
        """Every required answer type across the whole assessment, in order."""
        return [answer_type for section in self._sections for answer_type in section.type_sequence]


@lru_cache
def get_section_catalog() -> SectionCatalog:
    """Get the process-wide catalog, checked on first use."""
    catalog = SectionCatalog()
    logger.debug(f"Section catalog loaded: {len(catalog)} sections, {catalog.total_questions} questions")
    return catalog
