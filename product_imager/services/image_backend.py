"""
Image backend client built on Google's Gemini image generation model.

The client performs exactly one remote call per prompt and returns the raw
image bytes together with their MIME type. Provider failures are translated
into the `ImageBackendError` hierarchy so that the processing pipeline can
classify them without inspecting SDK internals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from product_imager.errors import (
    ImageGenerationError,
    InvalidAuthorizationError,
    QuotaExceededError,
)

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"
QUOTA_MARKERS = ("RESOURCE_EXHAUSTED",)
INVALID_KEY_MARKERS = ("Requested entity was not found",)


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str


class GeminiImageClient:
    """Generate product photos through the `google-genai` async API."""

    def __init__(self, api_key: Optional[str], model: str, client: Optional[Any] = None) -> None:
        self.api_key = api_key
        self.model = model
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise InvalidAuthorizationError("Image API key is not configured.")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str) -> GeneratedImage:
        """Generate one image for `prompt`.

        Raises:
            QuotaExceededError: the provider reported rate limiting or quota exhaustion.
            InvalidAuthorizationError: the API key is missing or was rejected.
            ImageGenerationError: any other failure, including responses without image data.
        """
        if not prompt or not prompt.strip():
            raise ImageGenerationError("Prompt must not be empty.")

        client = self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
            )
        except genai_errors.APIError as exc:
            raise classify_api_error(exc) from exc

        image = extract_image(response)
        if image is None:
            raise ImageGenerationError("No image was generated.")
        logger.debug("Generated %d bytes (%s) with %s", len(image.data), image.mime_type, self.model)
        return image


def classify_api_error(exc: Exception) -> Exception:
    """Map a provider exception onto the image backend error hierarchy."""
    code = getattr(exc, "code", None)
    status = getattr(exc, "status", None) or ""
    text = f"{status} {exc}"

    if code == 429 or any(marker in text for marker in QUOTA_MARKERS):
        return QuotaExceededError(str(exc))
    if any(marker in text for marker in INVALID_KEY_MARKERS):
        return InvalidAuthorizationError(str(exc))
    return ImageGenerationError(str(exc))


def extract_image(response: Any) -> Optional[GeneratedImage]:
    """Return the first inline image part of a `generate_content` response."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    for part in parts:
        inline_data = getattr(part, "inline_data", None)
        if inline_data is not None and inline_data.data:
            return GeneratedImage(data=inline_data.data, mime_type=inline_data.mime_type or DEFAULT_MIME_TYPE)
    return None
