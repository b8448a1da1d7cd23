"""
Disallowed-term lexicon.

Matching is plain case-insensitive substring containment: a term is flagged
wherever it appears, including inside longer words. This over-matches some
compound words and is accepted as such.
"""

from __future__ import annotations

from pathlib import Path
from typing import FrozenSet, Iterable

from modshield.exceptions import ConfigurationError
from modshield.util.logger import get_logger

logger = get_logger("lexicon")


class LexiconMatcher:
    """Immutable set of lower-cased, trimmed, de-duplicated terms."""

    __slots__ = ("_terms",)

    def __init__(self, terms: Iterable[str]) -> None:
        self._terms: FrozenSet[str] = frozenset(
            cleaned for cleaned in (str(term).strip().lower() for term in terms) if cleaned
        )

    @classmethod
    def from_file(cls, path: Path) -> "LexiconMatcher":
        """Load one term per line from a UTF-8 file.

        Raises:
            ConfigurationError: If the file is missing or cannot be decoded.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigurationError(f"Lexicon file {path} not found") from None
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"Failed to read lexicon file {path}: {exc}") from exc

        matcher = cls(text.splitlines())
        logger.info("[LEXICON] Loaded %d disallowed terms from %s", len(matcher), path)
        return matcher

    def __len__(self) -> int:
        return len(self._terms)

    def contains_disallowed_term(self, text: str) -> bool:
        if not text:
            return False
        lowered = text.lower()
        return any(term in lowered for term in self._terms)

    def username_is_disallowed(self, name: str) -> bool:
        return self.contains_disallowed_term(name)
