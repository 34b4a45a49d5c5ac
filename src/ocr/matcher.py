"""Grammar matching and canonical reconstruction of redemption codes.

Canonical grammar: ``<PREFIX1>-<PREFIX2>-<BODY>-<CHECK>`` where the prefixes
are fixed tokens, BODY is ``body_min``-``body_max`` alphanumeric characters
and CHECK is a single character from ``check_charset``.

Normalized OCR text is tried against an ordered list of independent
patterns, most specific first:

1. **strict**: literal prefixes, ``-`` separators; BODY may contain single
   spaces where OCR split it
2. **fuzzy**: prefixes with look-alike glyphs, separators may be ``-``,
   ``:``, spaces or missing
3. **collapsed**: all separators removed, anchored on the literal prefixes

The first pattern that matches wins. Only structure is checked here;
authenticity of a code is a backend concern.

Example:
    >>> matcher = CodeMatcher(GrammarConfig())
    >>> matcher.match("NEEXT GC AB12CD34 5")
    'NEEXT-GC-AB12CD34-5'
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .config_loader import GrammarConfig

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class CodeMatch:
    """A successful grammar match.

    Attributes:
        code: Canonical code ``PREFIX1-PREFIX2-BODY-CHECK``.
        pattern: Name of the pattern that matched.
        body: BODY segment with whitespace removed.
        check: CHECK character.
    """

    code: str
    pattern: str
    body: str
    check: str


@dataclass(frozen=True)
class GrammarPattern:
    """One matching rule.

    Attributes:
        name: Pattern name reported on matches.
        regex: Compiled pattern with ``body`` and ``check`` groups.
        prepare: Transformation applied to the text before searching.
    """

    name: str
    regex: re.Pattern
    prepare: Callable[[str], str] = lambda text: text


def strip_separators(text: str) -> str:
    """Remove everything except ``A-Z`` and ``0-9``."""
    return _NON_ALNUM.sub("", text)


def _fuzzy_token(token: str, confusables: dict) -> str:
    """Regex for ``token`` accepting look-alike glyphs per character."""
    parts = []
    for ch in token:
        alternatives = ch + confusables.get(ch, "")
        if len(alternatives) == 1:
            parts.append(re.escape(ch))
        else:
            parts.append("[" + "".join(re.escape(a) for a in alternatives) + "]")
    return "".join(parts)


def build_patterns(config: GrammarConfig) -> List[GrammarPattern]:
    """Build the default strict -> fuzzy -> collapsed pattern list."""
    prefix1 = re.escape(config.prefix1)
    prefix2 = re.escape(config.prefix2)
    check = f"(?P<check>[{config.check_charset}])"
    end = r"(?![A-Z0-9])"
    body_min, body_max = config.body_min, config.body_max

    strict = re.compile(
        rf"{prefix1}\s*-\s*{prefix2}\s*-\s*"
        rf"(?P<body>[A-Z0-9](?: ?[A-Z0-9]){{{body_min - 1},{body_max - 1}}})"
        rf"\s*-\s*{check}{end}"
    )

    separator = r"[\s:\-]*"
    fuzzy = re.compile(
        _fuzzy_token(config.prefix1, config.prefix_confusables)
        + separator
        + _fuzzy_token(config.prefix2, config.prefix_confusables)
        + separator
        + rf"(?P<body>[A-Z0-9]{{{body_min},{body_max}}})"
        + separator
        + check
        + end
    )

    collapsed = re.compile(
        rf"{prefix1}{prefix2}(?P<body>[A-Z0-9]{{{body_min},{body_max}}}){check}"
    )

    return [
        GrammarPattern(name="strict", regex=strict),
        GrammarPattern(name="fuzzy", regex=fuzzy),
        GrammarPattern(name="collapsed", regex=collapsed, prepare=strip_separators),
    ]


class CodeMatcher:
    """Applies ordered grammar patterns and reconstructs canonical codes.

    Args:
        config: Grammar configuration.
        patterns: Optional custom pattern list, evaluated in order. Defaults
            to ``build_patterns(config)``.
    """

    def __init__(
        self,
        config: Optional[GrammarConfig] = None,
        patterns: Optional[Sequence[GrammarPattern]] = None,
    ):
        self.config = config or GrammarConfig()
        self.patterns: List[GrammarPattern] = list(
            patterns if patterns is not None else build_patterns(self.config)
        )
        self._canonical = re.compile(
            rf"{re.escape(self.config.prefix1)}-{re.escape(self.config.prefix2)}-"
            rf"[A-Z0-9]{{{self.config.body_min},{self.config.body_max}}}-"
            rf"[{self.config.check_charset}]"
        )

    def match(self, text: str) -> Optional[str]:
        """Return the canonical code found in ``text``, or None."""
        result = self.match_with_details(text)
        return result.code if result else None

    def match_with_details(self, text: str) -> Optional[CodeMatch]:
        """Return the first pattern match in priority order, or None."""
        if not text:
            return None

        for pattern in self.patterns:
            found = pattern.regex.search(pattern.prepare(text))
            if found is None:
                continue

            body = _WHITESPACE.sub("", found.group("body"))
            check = found.group("check")
            code = self.canonicalize(body, check)
            logger.debug(f"Matched ({pattern.name}): '{text}' -> {code}")
            return CodeMatch(code=code, pattern=pattern.name, body=body, check=check)

        logger.debug(f"No grammar pattern matched '{text}'")
        return None

    def canonicalize(self, body: str, check: str) -> str:
        """Assemble ``PREFIX1-PREFIX2-BODY-CHECK``."""
        return f"{self.config.prefix1}-{self.config.prefix2}-{body}-{check}"

    def is_canonical(self, code: str) -> bool:
        """Check that ``code`` is exactly in canonical form."""
        return bool(code) and self._canonical.fullmatch(code) is not None
