"""Text cleanup and context-aware correction of OCR-confusable characters.

Normalization runs in two phases:

1. **Cleanup**: uppercase, every dash-like glyph (hyphen, non-breaking
   hyphen, figure dash, en/em dash, minus sign, underscore) becomes ``-``,
   ``|`` becomes ``I``, anything outside ``[A-Z0-9- ]`` becomes a space,
   whitespace is collapsed and trimmed.

2. **Confusable resolution**: characters of the classes
   ``{0,O,Q} {1,I,L} {5,S} {2,Z} {8,B} {6,G}`` take the letter form when
   both immediate neighbors are letters and the digit form when both are
   digits. Mixed context, or a missing or non-alphanumeric neighbor, leaves
   them unchanged.
   Every decision reads the same frozen copy of the cleaned text, so the
   output does not depend on the order substitutions are applied in.

Example:
    >>> normalizer = TextNormalizer(NormalizationConfig())
    >>> normalizer.normalize("neext—gc—ab12cd34—5")
    'NEEXT-GC-AB12CD34-5'
    >>> normalizer.normalize("A5B 1O2")
    'ASB 102'
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .config_loader import NormalizationConfig

DASH_CHARACTERS = "‐‑‒–—―−﹣－_"

_DASH_TABLE = str.maketrans({ch: "-" for ch in DASH_CHARACTERS})
_NOISE = re.compile(r"[^A-Z0-9\- ]")
_WHITESPACE = re.compile(r"\s+")


def clean_text(raw: str) -> str:
    """Phase 1 of normalization: case, dashes, noise and whitespace.

    Args:
        raw: Raw OCR text.

    Returns:
        Uppercase text containing only ``A-Z``, ``0-9``, ``-`` and single spaces.
    """
    text = raw.upper().translate(_DASH_TABLE).replace("|", "I")
    text = _NOISE.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


@dataclass
class NormalizationResult:
    """Result of text normalization.

    Attributes:
        normalized_text: Text after cleanup and confusable resolution.
        cleaned_text: Text after cleanup only.
        corrections: List of (position, old_char, new_char) tuples.
        original_text: Raw input.
    """

    normalized_text: str
    cleaned_text: str
    corrections: List[Tuple[int, str, str]]
    original_text: str

    @property
    def correction_applied(self) -> bool:
        return len(self.corrections) > 0


class TextNormalizer:
    """Cleans raw OCR text and resolves confusable characters from context.

    Args:
        config: Normalization configuration (confusable classes).
    """

    def __init__(self, config: Optional[NormalizationConfig] = None):
        self.config = config or NormalizationConfig()
        # character -> (digit form, preferred letter form)
        self.classes: Dict[str, Tuple[str, str]] = {}
        for digit, letters in self.config.confusables.items():
            preferred = letters[0]
            for ch in (digit,) + tuple(letters):
                self.classes[ch] = (digit, preferred)

    def normalize(self, raw: str) -> str:
        """Normalize raw OCR text. See module docstring for the rules."""
        return self.normalize_with_details(raw).normalized_text

    def normalize_with_details(self, raw: str) -> NormalizationResult:
        """Normalize and report every confusable substitution made."""
        cleaned = clean_text(raw or "")

        if not self.config.enabled:
            return NormalizationResult(
                normalized_text=cleaned,
                cleaned_text=cleaned,
                corrections=[],
                original_text=raw or "",
            )

        resolved, corrections = self.resolve_confusables(cleaned)
        return NormalizationResult(
            normalized_text=resolved,
            cleaned_text=cleaned,
            corrections=corrections,
            original_text=raw or "",
        )

    def resolve_confusables(self, text: str) -> Tuple[str, List[Tuple[int, str, str]]]:
        """
        Resolve confusable characters against a frozen snapshot of ``text``.

        Args:
            text: Cleaned text.

        Returns:
            Tuple of (resolved text, list of (position, old_char, new_char)).
        """
        snapshot = text
        resolved = list(snapshot)
        corrections: List[Tuple[int, str, str]] = []

        for i, ch in enumerate(snapshot):
            forms = self.classes.get(ch)
            if forms is None:
                continue

            context = self._neighbor_context(snapshot, i)
            if context == "alpha":
                target = ch if ch.isalpha() else forms[1]
            elif context == "digit":
                target = forms[0]
            else:
                continue

            if target != ch:
                resolved[i] = target
                corrections.append((i, ch, target))

        return "".join(resolved), corrections

    @staticmethod
    def _neighbor_context(text: str, index: int) -> Optional[str]:
        """Classify the two immediate neighbors of ``text[index]``.

        Returns:
            "alpha" if both neighbors are letters, "digit" if both are digits,
            None otherwise (mixed, separator, or start/end of text).
        """
        if index == 0 or index + 1 >= len(text):
            return None

        left, right = text[index - 1], text[index + 1]
        if left.isalpha() and right.isalpha():
            return "alpha"
        if left.isdigit() and right.isdigit():
            return "digit"
        return None


_default_normalizer = TextNormalizer()


def normalize(raw: str) -> str:
    """Normalize raw OCR text with the default confusable classes."""
    return _default_normalizer.normalize(raw)
