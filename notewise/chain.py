import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .providers import (
    SKIP_UNSUPPORTED_TASK,
    ProviderDescriptor,
    ProviderOutcome,
    build_call_params,
)
from .schemas import GenerationRequest

logger = logging.getLogger("uvicorn.error")

DEFAULT_TIMEOUT_S = 10.0


@dataclass
class ChainOutcome:
    attempts: List[ProviderOutcome] = field(default_factory=list)
    raw_text: Optional[str] = None
    provider: Optional[str] = None

    @property
    def exhausted(self) -> bool:
        return self.raw_text is None

    @property
    def network_attempts(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.status != "skipped")

    def describe(self) -> str:
        parts = []
        for attempt in self.attempts:
            label = attempt.kind or attempt.reason or attempt.status
            parts.append(f"{attempt.provider}={label}")
        return ", ".join(parts) or "no providers configured"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "exhausted": self.exhausted,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }

    def raise_for_exhausted(self) -> None:
        if self.exhausted:
            raise AllProvidersExhausted(self)


class AllProvidersExhausted(RuntimeError):
    def __init__(self, outcome: ChainOutcome):
        self.outcome = outcome
        super().__init__(f"All AI providers failed ({outcome.describe()}). Check your API keys.")


def _ordered(descriptors: Sequence[ProviderDescriptor]) -> List[ProviderDescriptor]:
    seen: Dict[int, str] = {}
    for descriptor in descriptors:
        if descriptor.priority in seen:
            raise ValueError(
                f"providers {seen[descriptor.priority]!r} and {descriptor.name!r} share priority {descriptor.priority}"
            )
        seen[descriptor.priority] = descriptor.name
    return sorted(descriptors, key=lambda d: d.priority)


async def _attempt(
    descriptor: ProviderDescriptor,
    request: GenerationRequest,
    timeout_s: float,
) -> ProviderOutcome:
    params = build_call_params(request)
    started = time.monotonic()
    try:
        outcome = await asyncio.wait_for(descriptor.adapter.generate(request, params), timeout=timeout_s)
    except asyncio.TimeoutError:
        outcome = ProviderOutcome.failure(descriptor.name, "timeout", f"no response within {timeout_s:g}s")
    except Exception as exc:
        # CancelledError is a BaseException and still propagates.
        logger.exception("Provider %s raised", descriptor.name)
        outcome = ProviderOutcome.failure(descriptor.name, "unavailable", str(exc) or type(exc).__name__)
    outcome.elapsed_s = time.monotonic() - started
    return outcome


async def resolve(
    request: GenerationRequest,
    descriptors: Sequence[ProviderDescriptor],
    default_timeout_s: float = DEFAULT_TIMEOUT_S,
) -> ChainOutcome:
    """Try each provider in priority order and stop at the first success.

    Skipped descriptors (unsupported task, unmet precondition) never reach
    their adapter. Cancellation of the caller propagates out of the in-flight
    call untouched.
    """
    result = ChainOutcome()
    for descriptor in _ordered(descriptors):
        if not descriptor.supports(request.task):
            result.attempts.append(ProviderOutcome.skipped(descriptor.name, SKIP_UNSUPPORTED_TASK))
            continue
        reason = descriptor.precondition()
        if reason:
            logger.debug("Provider %s skipped: %s", descriptor.name, reason)
            result.attempts.append(ProviderOutcome.skipped(descriptor.name, reason))
            continue
        timeout_s = descriptor.timeout_s or default_timeout_s
        outcome = await _attempt(descriptor, request, timeout_s)
        result.attempts.append(outcome)
        if outcome.ok:
            result.raw_text = outcome.raw_text
            result.provider = descriptor.name
            return result
        logger.info("Provider %s failed (%s), trying next", descriptor.name, outcome.kind)
    return result
