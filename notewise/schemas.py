from typing import Literal, Union

from pydantic import BaseModel, Field, field_validator


LengthTier = Literal["short", "medium", "detailed"]
TaskName = Literal["summarize", "suggest"]


class SummarizeRequest(BaseModel):
    task: Literal["summarize"] = "summarize"
    text: str = Field(min_length=1)
    length: LengthTier = "medium"

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Text is required")
        return value


class SuggestRequest(BaseModel):
    task: Literal["suggest"] = "suggest"
    word: str = Field(min_length=1)
    context: str = ""

    @field_validator("word")
    @classmethod
    def _word_trimmed(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Word is required")
        return cleaned


GenerationRequest = Union[SummarizeRequest, SuggestRequest]
