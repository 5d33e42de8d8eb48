"""Schema-constrained analysis generation with a bounded retry.

Attempt 1 sends the compact-schema instruction with the CSV as the only
variable input. If the reply is not JSON, does not match the schema, or the
call times out, attempt 2 repeats the request with an explicit "ONLY valid
JSON" directive. A second failure is terminal.

Parsing never raises inside the loop: ``parse_document`` returns either a
``ParsedDocument`` or a ``ParseFailure`` and the loop branches on the type.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Union

from pydantic import ValidationError as PydanticValidationError

from bodymetrics.core.exceptions import (
    APIClientError,
    APITimeoutError,
    GenerationError,
    UpstreamServiceError,
    classify_upstream_error,
)
from bodymetrics.core.llm_client import ChatCompletionClient
from bodymetrics.prompts.system_prompts import ANALYSIS_SYSTEM_PROMPT, RETRY_DIRECTIVE
from bodymetrics.schemas.analysis import AbbreviatedAnalysis, GenerationResult, TokenUsage
from bodymetrics.utils.json_parser import strip_code_fences
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ParsedDocument:
    """Reply parsed and validated against the compact schema."""
    document: AbbreviatedAnalysis


@dataclass(frozen=True)
class ParseFailure:
    """Why a reply (or the attempt producing it) was unusable.

    ``kind`` is one of ``empty``, ``invalid_json``, ``schema`` or ``timeout``.
    """
    kind: str
    detail: str = ""


ParseOutcome = Union[ParsedDocument, ParseFailure]


def parse_document(text: str) -> ParseOutcome:
    """Strictly decode a model reply into the abbreviated analysis schema."""
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        return ParseFailure("empty", "model returned no content")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return ParseFailure("invalid_json", str(e))

    if not isinstance(data, dict):
        return ParseFailure("schema", f"expected a JSON object, got {type(data).__name__}")

    try:
        return ParsedDocument(AbbreviatedAnalysis.model_validate(data))
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()[:5]
        )
        return ParseFailure("schema", problems)


def compute_cost(usage: TokenUsage, prompt_cost_per_1k: float, completion_cost_per_1k: float) -> float:
    """Dollar cost of a generation from its token counts."""
    cost = (
        usage.prompt_tokens * prompt_cost_per_1k
        + usage.completion_tokens * completion_cost_per_1k
    ) / 1000
    return round(cost, 6)


class AnalysisGenerator:
    """Calls the text model and returns a validated abbreviated document."""

    def __init__(
        self,
        client: ChatCompletionClient,
        model: str = "gpt-4o",
        max_attempts: int = 2,
        timeout_seconds: float = 60.0,
    ):
        """Initialize the generator.

        Args:
            client: Chat completion client
            model: Model used for analysis
            max_attempts: Total attempts including the first; timeouts count
            timeout_seconds: Hard timeout for each attempt
        """
        self.client = client
        self.model = model
        self.max_attempts = max(1, max_attempts)
        self.timeout_seconds = timeout_seconds

    async def generate(self, csv: str) -> GenerationResult:
        """Generate an analysis for the projected measurement CSV.

        Args:
            csv: Output of the CSV projector

        Returns:
            GenerationResult with the document and token usage summed over
            all attempts

        Raises:
            GenerationError: ``schema_validation_failed`` or ``timeout`` once
                the attempt budget is spent
            UpstreamServiceError: If the provider rejects the request
        """
        usage = TokenUsage()
        model_id = self.model
        failure = ParseFailure("empty")

        for attempt in range(1, self.max_attempts + 1):
            system_prompt = ANALYSIS_SYSTEM_PROMPT
            if attempt > 1:
                system_prompt = ANALYSIS_SYSTEM_PROMPT + RETRY_DIRECTIVE

            try:
                response = await asyncio.wait_for(
                    self.client.generate_text(
                        system_prompt=system_prompt,
                        user_prompt=csv,
                        temperature=0.0,
                        json_mode=True,
                        model=self.model,
                    ),
                    timeout=self.timeout_seconds,
                )
            except (asyncio.TimeoutError, APITimeoutError):
                outcome: ParseOutcome = ParseFailure(
                    "timeout", f"no reply within {self.timeout_seconds:g}s"
                )
            except APIClientError as e:
                kind = classify_upstream_error(e)
                LOGGER.error(
                    f"Analysis generation failed upstream: {kind.value}",
                    exc_info=True,
                    extra={"attempt": attempt, "status_code": e.status_code}
                )
                raise UpstreamServiceError(kind, original_error=e) from e
            else:
                usage.prompt_tokens += response.usage.prompt_tokens
                usage.completion_tokens += response.usage.completion_tokens
                model_id = response.model_id or model_id
                outcome = parse_document(response.text)

            if isinstance(outcome, ParsedDocument):
                LOGGER.info(
                    f"Analysis generated on attempt {attempt}",
                    extra={
                        "model": model_id,
                        "prompt_tokens": usage.prompt_tokens,
                        "completion_tokens": usage.completion_tokens,
                    }
                )
                return GenerationResult(
                    document=outcome.document, usage=usage, model_id=model_id, attempts=attempt
                )

            failure = outcome
            LOGGER.warning(
                f"Analysis attempt {attempt}/{self.max_attempts} unusable: {failure.kind}",
                extra={"detail": failure.detail[:300]}
            )

        reason = (
            GenerationError.TIMEOUT if failure.kind == "timeout"
            else GenerationError.SCHEMA_VALIDATION_FAILED
        )
        LOGGER.error(f"Analysis generation gave up after {self.max_attempts} attempts: {reason}")
        raise GenerationError(reason, attempts=self.max_attempts)
