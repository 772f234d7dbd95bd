"""OpenAI Responses API adapter for cookbook and fridge photo extraction."""

import json
import logging
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from cookbook_matcher.domain.errors import TransientIOFailure
from cookbook_matcher.services.vision import VisionClient

_logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def build_image_request(  # noqa: PLR0913
    *,
    model: str,
    reasoning_effort: str | None,
    store: bool,
    image_data_url: str,
    schema: dict[str, object],
    prompt: str,
    schema_name: str,
) -> dict[str, object]:
    """Build a single-image request whose answer must follow ``schema``."""
    message = {
        "role": "user",
        "content": [
            {"type": "input_text", "text": prompt},
            {"type": "input_image", "image_url": image_data_url},
        ],
    }
    output_format = {
        "type": "json_schema",
        "name": schema_name,
        "strict": True,
        "schema": schema,
    }
    request: dict[str, object] = {
        "model": model,
        "input": [message],
        "text": {"format": output_format},
        "store": store,
    }
    if reasoning_effort:
        request["reasoning"] = {"effort": reasoning_effort}
    return request


@dataclass
class OpenAIVisionClient(VisionClient):
    """Reads recipes and fridge items from photos with structured outputs."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIVisionClient":
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
        schema_name: str,
    ) -> dict[str, object]:
        """Send one photo and return the decoded JSON answer."""
        request = build_image_request(
            model=model,
            reasoning_effort=reasoning_effort,
            store=store,
            image_data_url=image_data_url,
            schema=schema,
            prompt=prompt,
            schema_name=schema_name,
        )
        try:
            response = await self.client.responses.create(**request)
        except _TRANSIENT_ERRORS as exc:
            _logger.warning("Vision request failed: schema=%s error=%s", schema_name, exc)
            raise TransientIOFailure(f"Vision request failed: {exc}") from exc
        if not response.output_text:
            raise TransientIOFailure(f"Vision model returned no {schema_name} output")
        return json.loads(response.output_text)

    async def close(self) -> None:
        await self.client.close()
