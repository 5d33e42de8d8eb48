"""Image-to-measurements extraction through a vision model."""

from typing import Any, Dict, List

from bodymetrics.core.exceptions import APIClientError, UpstreamServiceError, classify_upstream_error
from bodymetrics.core.llm_client import ChatCompletionClient
from bodymetrics.prompts.system_prompts import EXTRACTION_PROMPT
from bodymetrics.utils.json_parser import parse_json_safely
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)


def parse_extraction_output(text: str) -> List[Dict[str, Any]]:
    """Turn raw vision output into a list of candidate measurement dicts.

    Accepts a bare JSON array or ``{"measurements": [...]}``, optionally
    wrapped in markdown fences. Anything else yields an empty list; items
    that are not objects are skipped. Field-level checks happen in ingestion.
    """
    parsed = parse_json_safely(text)
    if isinstance(parsed, dict):
        parsed = parsed.get("measurements")
    if not isinstance(parsed, list):
        if text:
            LOGGER.warning(
                "Vision output was not a measurement list",
                extra={"text_preview": text[:200]}
            )
        return []
    return [item for item in parsed if isinstance(item, dict)]


class VisionExtractor:
    """Extracts candidate measurements from a report photo."""

    def __init__(
        self,
        client: ChatCompletionClient,
        model: str = "gpt-4o-mini",
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def extract_from_image(
        self, image_bytes: bytes, content_type: str = "image/png"
    ) -> List[Dict[str, Any]]:
        """Run the vision model over an image.

        Args:
            image_bytes: Raw image content
            content_type: MIME type used in the data URL

        Returns:
            Candidate measurement dicts; empty when the output is unusable

        Raises:
            UpstreamServiceError: If the provider call itself fails
        """
        try:
            response = await self.client.extract_from_image(
                prompt=EXTRACTION_PROMPT,
                image_bytes=image_bytes,
                content_type=content_type,
                temperature=self.temperature,
                model=self.model,
                max_tokens=self.max_tokens,
            )
        except APIClientError as e:
            kind = classify_upstream_error(e)
            LOGGER.error(
                f"Vision extraction failed: {kind.value}",
                exc_info=True,
                extra={"status_code": e.status_code, "error_code": e.error_code}
            )
            raise UpstreamServiceError(kind, original_error=e) from e

        items = parse_extraction_output(response.text)
        LOGGER.info(
            f"Vision extraction returned {len(items)} candidate measurements",
            extra={"model": response.model_id, "bytes": len(image_bytes)}
        )
        return items
