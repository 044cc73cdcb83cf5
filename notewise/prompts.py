"""Prompt templates for the summarize and suggest tasks."""

from .schemas import GenerationRequest, SummarizeRequest

SUMMARIZE_PROMPT = (
    "Task: Summarize the following text in {length} length. "
    "Return ONLY the summary. No intro filler. Text: {text}"
)

SUGGEST_PROMPT = """Give me 3 synonyms for the word "{word}" in this context: "{context}".
Return ONLY the 3 words separated by commas. No other text."""

SUGGEST_PROMPT_NO_CONTEXT = """Give me 3 synonyms for the word "{word}".
Return ONLY the 3 words separated by commas. No other text."""


def build_prompt(request: GenerationRequest) -> str:
    if isinstance(request, SummarizeRequest):
        return SUMMARIZE_PROMPT.format(length=request.length, text=request.text)
    context = " ".join(request.context.split())
    if not context:
        return SUGGEST_PROMPT_NO_CONTEXT.format(word=request.word)
    return SUGGEST_PROMPT.format(word=request.word, context=context)
