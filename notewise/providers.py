"""Provider descriptors and the outcome types every adapter reports.

Adapters never raise for backend trouble: they return a ``ProviderOutcome``
so the chain can log the attempt and move on to the next descriptor.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Literal, Optional, Protocol

from .config import AppSettings
from .schemas import GenerationRequest, SummarizeRequest, TaskName

OutcomeStatus = Literal["success", "skipped", "failure"]
FailureKind = Literal["unavailable", "timeout", "malformed", "empty"]

SKIP_MISSING_CREDENTIAL = "missing_credential"
SKIP_DISABLED = "disabled"
SKIP_UNSUPPORTED_TASK = "unsupported_task"

SUMMARY_TOKEN_BUDGETS = {"short": 150, "medium": 300, "detailed": 500}
SUMMARY_TEMPERATURE = 0.7
SUGGEST_TOKEN_BUDGET = 25
SUGGEST_TEMPERATURE = 0.1


@dataclass
class ProviderOutcome:
    provider: str
    status: OutcomeStatus
    raw_text: Optional[str] = None
    kind: Optional[FailureKind] = None
    reason: Optional[str] = None
    detail: Optional[str] = None
    elapsed_s: float = 0.0

    @classmethod
    def success(cls, provider: str, raw_text: str) -> "ProviderOutcome":
        return cls(provider=provider, status="success", raw_text=raw_text)

    @classmethod
    def skipped(cls, provider: str, reason: str) -> "ProviderOutcome":
        return cls(provider=provider, status="skipped", reason=reason)

    @classmethod
    def failure(cls, provider: str, kind: FailureKind, detail: Optional[str] = None) -> "ProviderOutcome":
        return cls(provider=provider, status="failure", kind=kind, detail=detail)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"provider": self.provider, "status": self.status}
        if self.kind:
            data["kind"] = self.kind
        if self.reason:
            data["reason"] = self.reason
        if self.detail:
            data["detail"] = self.detail
        if self.status != "skipped":
            data["elapsed_s"] = round(self.elapsed_s, 3)
        return data


def text_outcome(provider: str, text: Any) -> ProviderOutcome:
    """Classify extracted text: non-string is malformed, blank is empty."""
    if not isinstance(text, str):
        return ProviderOutcome.failure(provider, "malformed", "text field missing")
    if not text.strip():
        return ProviderOutcome.failure(provider, "empty")
    return ProviderOutcome.success(provider, text)


@dataclass(frozen=True)
class CallParams:
    max_tokens: int
    temperature: Optional[float] = None
    stop: Optional[List[str]] = None


def build_call_params(request: GenerationRequest) -> CallParams:
    if isinstance(request, SummarizeRequest):
        return CallParams(
            max_tokens=SUMMARY_TOKEN_BUDGETS[request.length],
            temperature=SUMMARY_TEMPERATURE,
        )
    return CallParams(max_tokens=SUGGEST_TOKEN_BUDGET, temperature=SUGGEST_TEMPERATURE, stop=["\n"])


class ProviderAdapter(Protocol):
    name: str

    async def generate(self, request: GenerationRequest, params: CallParams) -> ProviderOutcome:
        ...

    async def close(self) -> None:
        ...


Precondition = Callable[[], Optional[str]]


def _always_ready() -> Optional[str]:
    return None


@dataclass(frozen=True)
class ProviderDescriptor:
    name: str
    priority: int
    adapter: ProviderAdapter
    precondition: Precondition = _always_ready
    timeout_s: Optional[float] = None
    tasks: FrozenSet[str] = field(default_factory=lambda: frozenset({"summarize", "suggest"}))

    def supports(self, task: TaskName) -> bool:
        return task in self.tasks


def requires(value: Any, reason: str = SKIP_MISSING_CREDENTIAL) -> Precondition:
    def check() -> Optional[str]:
        return None if value else reason

    return check


def build_descriptors(settings: AppSettings, adapters: Dict[str, ProviderAdapter]) -> List[ProviderDescriptor]:
    """Turn settings plus live adapters into the ordered descriptor list.

    ``settings.provider_order`` decides priority; names missing from
    ``adapters`` are left out.
    """
    templates = {
        "ollama": dict(
            precondition=requires(settings.ollama.enabled, SKIP_DISABLED),
            timeout_s=settings.ollama.timeout_s,
        ),
        "gemini": dict(
            precondition=requires(settings.gemini.api_key),
            timeout_s=settings.gemini.timeout_s,
        ),
        # bart-large-cnn only summarizes; it cannot follow a synonym prompt.
        "huggingface": dict(
            precondition=requires(settings.huggingface.api_token),
            timeout_s=settings.huggingface.timeout_s,
            tasks=frozenset({"summarize"}),
        ),
    }
    descriptors: List[ProviderDescriptor] = []
    for rank, name in enumerate(settings.provider_order):
        adapter = adapters.get(name)
        if adapter is None:
            continue
        descriptors.append(ProviderDescriptor(name=name, priority=rank, adapter=adapter, **templates.get(name, {})))
    return descriptors
