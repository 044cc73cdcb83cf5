"""Clean-up of free-form model output.

Both helpers are heuristics over natural language rather than parsers: they
strip the chatty lead-ins small models like to prepend and nothing more.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .config import PreambleConfig

NO_OPTIONS = "No options found"
MAX_SYNONYMS = 3

_STRIP_CHARS_RE = re.compile(r"[\[\]\"`.*]")
_SPLIT_RE = re.compile(r",|\r?\n")
_LIST_MARKER_RE = re.compile(r"^(?:\d+(?:\)|\s+)|[-)])\s*")


def _leadin_pattern(leadins: Iterable[str]) -> "re.Pattern[str]":
    alternatives = "|".join(f"(?:{leadin})" for leadin in leadins if leadin)
    if not alternatives:
        # Matches nothing.
        return re.compile(r"(?!)")
    # Lead-in, then the shortest run up to and including the first colon.
    return re.compile(rf"^\s*(?:{alternatives})[^:]*:", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class PreambleRules:
    summary: "re.Pattern[str]"
    synonyms: "re.Pattern[str]"

    @classmethod
    def from_config(cls, config: Optional[PreambleConfig] = None) -> "PreambleRules":
        config = config or PreambleConfig()
        return cls(
            summary=_leadin_pattern(config.summary_leadins),
            synonyms=_leadin_pattern(config.synonym_leadins),
        )


DEFAULT_RULES = PreambleRules.from_config()


def normalize_summary(raw_text: str, rules: PreambleRules = DEFAULT_RULES) -> str:
    """Drop a leading "Here is your summary:"-style preamble and trim.

    Lead-ins are only matched at the very start of the text. Stacked lead-ins
    ("Sure: here is the summary:") are removed until none is left, which keeps
    the function idempotent.
    """
    text = (raw_text or "").strip()
    while text and rules.summary.match(text):
        text = rules.summary.sub("", text, count=1).strip()
    return text


def _clean_candidate(candidate: str) -> str:
    candidate = candidate.strip()
    candidate = _LIST_MARKER_RE.sub("", candidate)
    return candidate.strip()


def extract_synonyms(
    raw_text: str,
    word: str,
    rules: PreambleRules = DEFAULT_RULES,
    limit: int = MAX_SYNONYMS,
) -> List[str]:
    text = rules.synonyms.sub("", raw_text or "", count=1)
    text = _STRIP_CHARS_RE.sub("", text)
    query = word.strip().lower()
    results: List[str] = []
    seen = set()
    for piece in _SPLIT_RE.split(text):
        candidate = _clean_candidate(piece)
        folded = candidate.lower()
        if len(candidate) <= 1 or folded == query or folded in seen:
            continue
        seen.add(folded)
        results.append(candidate)
        if len(results) >= limit:
            break
    return results or [NO_OPTIONS]


def is_placeholder(suggestions: Sequence[str]) -> bool:
    return list(suggestions) == [NO_OPTIONS]
