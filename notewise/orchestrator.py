import logging
from typing import Any, Dict, List, Optional, Sequence

from .chain import ChainOutcome, resolve
from .config import AppSettings
from .db import Database
from .providers import ProviderDescriptor
from .schemas import SuggestRequest, SummarizeRequest
from .textproc import DEFAULT_RULES, PreambleRules, extract_synonyms, is_placeholder, normalize_summary


logger = logging.getLogger("uvicorn.error")

OFFLINE_PREFIX = "[Offline] "
OFFLINE_EXCERPT_CHARS = 100
SUGGEST_FALLBACK_TEXT = "choice1, choice2, choice3"


class EmptySummaryError(RuntimeError):
    def __init__(self, outcome: ChainOutcome):
        self.outcome = outcome
        super().__init__(f"Provider {outcome.provider} returned only preamble, nothing to save.")


def offline_summary(text: str) -> str:
    return OFFLINE_PREFIX + text[:OFFLINE_EXCERPT_CHARS] + "..."


def _log_attempts(task: str, outcome: ChainOutcome) -> None:
    if outcome.exhausted:
        logger.warning("%s: all providers exhausted (%s)", task, outcome.describe())
    else:
        logger.info(
            "%s: served by %s after %d call(s) (%s)",
            task,
            outcome.provider,
            outcome.network_attempts,
            outcome.describe(),
        )


async def run_summarize(
    request: SummarizeRequest,
    *,
    settings: AppSettings,
    descriptors: Sequence[ProviderDescriptor],
    db: Database,
    rules: PreambleRules = DEFAULT_RULES,
) -> Dict[str, Any]:
    """Summarize, normalize, then record the pair in history.

    Nothing is written unless a non-empty summary exists. If the caller is
    cancelled while a provider call is in flight the cancellation escapes
    before the write.
    """
    outcome = await resolve(request, descriptors, default_timeout_s=settings.provider_timeout_s)
    _log_attempts("summarize", outcome)
    provider: Optional[str] = outcome.provider
    if outcome.exhausted:
        if not settings.offline_fallback:
            outcome.raise_for_exhausted()
        raw_text = offline_summary(request.text)
        provider = None
    else:
        raw_text = outcome.raw_text or ""
    summary = normalize_summary(raw_text, rules)
    if not summary:
        raise EmptySummaryError(outcome)
    return await db.add_summary(request.text, summary, provider=provider)


async def run_suggest(
    request: SuggestRequest,
    *,
    settings: AppSettings,
    descriptors: Sequence[ProviderDescriptor],
    rules: PreambleRules = DEFAULT_RULES,
) -> List[str]:
    outcome = await resolve(request, descriptors, default_timeout_s=settings.provider_timeout_s)
    _log_attempts("suggest", outcome)
    raw_text = SUGGEST_FALLBACK_TEXT if outcome.exhausted else outcome.raw_text or ""
    suggestions = extract_synonyms(raw_text, request.word, rules)
    if is_placeholder(suggestions):
        logger.info("suggest: no usable synonyms for %r", request.word)
    return suggestions
