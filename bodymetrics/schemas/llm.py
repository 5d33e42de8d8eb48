"""Schemas for text-generation provider responses."""

from pydantic import BaseModel, ConfigDict, Field


class LLMUsage(BaseModel):
    """Token accounting reported by the provider."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LLMResponse(BaseModel):
    """Text completion plus the metadata needed for cost accounting."""

    model_config = ConfigDict(protected_namespaces=())

    text: str = ""
    usage: LLMUsage = Field(default_factory=LLMUsage)
    model_id: str = ""
