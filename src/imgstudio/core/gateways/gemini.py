"""
Gemini gateway.

Prompt enhancement and image editing go through the Gemini content API;
image generation goes through the Imagen API. Uses the async client of the
google-genai SDK.
"""

import time
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from imgstudio.core.config import Config
from imgstudio.core.images import GeneratedImage
from imgstudio.core.options import AspectRatio, Quality
from imgstudio.core.prompts_loader import build_generation_prompt, get_enhance_instruction
from imgstudio.logging_config import get_logger, log_prompts
from imgstudio.utils.exceptions import (
    ConfigurationError,
    EditError,
    EnhanceError,
    GenerateError,
    ImageProcessingError,
)

logger = get_logger(__name__)

# Errors raised by the SDK or its transport for a failed call
_SERVICE_ERRORS = (genai_errors.APIError, httpx.HTTPError, ValueError)

_PROMPT_LOG_MAX = 50_000


def _truncate(text: str) -> str:
    return text if len(text) <= _PROMPT_LOG_MAX else text[:_PROMPT_LOG_MAX] + "..."


def _status_code(error: Exception) -> int:
    code = getattr(error, "code", 0)
    return code if isinstance(code, int) else 0


def _first_inline_image(response: Any) -> GeneratedImage | None:
    """Return the first inline image part of a content response, or None."""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            blob = getattr(part, "inline_data", None)
            if blob is not None and blob.data:
                # The model may answer with a different MIME type than it was given
                return GeneratedImage(data=blob.data, mime_type=blob.mime_type or "image/png")
    return None


class GeminiGateway:
    """Gateway backed by the Gemini / Imagen APIs."""

    def __init__(self, config: Config, client: Any | None = None) -> None:
        self._config = config
        self._client = client

    @property
    def client(self) -> Any:
        """The google-genai client, created on first use."""
        if self._client is None:
            if not self._config.gemini_api_key:
                raise ConfigurationError(
                    "Gemini API key is required. Set GEMINI_API_KEY environment variable."
                )
            self._client = genai.Client(api_key=self._config.gemini_api_key)
        return self._client

    async def enhance(self, prompt: str) -> str:
        model = self._config.enhance_model
        logger.info("Enhancing prompt model=%s", model)
        if log_prompts():
            logger.info("Prompt (original): %s", _truncate(prompt))
        start = time.time()
        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=get_enhance_instruction(),
                ),
            )
        except _SERVICE_ERRORS as e:
            raise EnhanceError(
                "Failed to enhance prompt. Please try again.",
                status_code=_status_code(e),
                original_error=e,
            ) from e
        text = (response.text or "").strip()
        if not text:
            raise EnhanceError("Enhancement returned an empty response.", response=str(response))
        logger.info("Enhanced in %.1fs model=%s", time.time() - start, model)
        if log_prompts():
            logger.info("Prompt (enhanced): %s", _truncate(text))
        return text

    async def generate(
        self,
        prompt: str,
        aspect_ratio: AspectRatio,
        quality: Quality,
    ) -> list[GeneratedImage]:
        model = self._config.image_model
        final_prompt = build_generation_prompt(prompt, quality)
        logger.info(
            "Generating images model=%s count=%s aspect_ratio=%s quality=%s",
            model,
            self._config.number_of_images,
            aspect_ratio.value,
            quality.value,
        )
        if log_prompts():
            logger.info("Prompt (used): %s", _truncate(final_prompt))
        start = time.time()
        try:
            response = await self.client.aio.models.generate_images(
                model=model,
                prompt=final_prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=self._config.number_of_images,
                    output_mime_type=self._config.output_mime_type,
                    aspect_ratio=aspect_ratio.value,
                ),
            )
        except _SERVICE_ERRORS as e:
            raise GenerateError(
                "Failed to generate images. Please check the API key and prompt.",
                status_code=_status_code(e),
                original_error=e,
            ) from e

        images: list[GeneratedImage] = []
        for generated in response.generated_images or []:
            image = getattr(generated, "image", None)
            if image is None or not image.image_bytes:
                logger.debug("Skipping generated entry without image bytes")
                continue
            try:
                images.append(
                    GeneratedImage(
                        data=image.image_bytes,
                        mime_type=image.mime_type or self._config.output_mime_type,
                    )
                )
            except ImageProcessingError as e:
                raise GenerateError(str(e), original_error=e) from e
        logger.info(
            "Generated %d image(s) in %.1fs model=%s", len(images), time.time() - start, model
        )
        return images

    async def edit(self, image: GeneratedImage, instruction: str) -> GeneratedImage:
        model = self._config.edit_model
        logger.info("Editing image model=%s mime=%s", model, image.mime_type)
        if log_prompts():
            logger.info("Edit instruction: %s", _truncate(instruction))
        start = time.time()
        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=[
                    types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
                    types.Part.from_text(text=instruction),
                ],
                config=types.GenerateContentConfig(
                    response_modalities=[types.Modality.IMAGE],
                ),
            )
        except _SERVICE_ERRORS as e:
            raise EditError(
                "Failed to edit image. Please try again.",
                status_code=_status_code(e),
                original_error=e,
            ) from e
        edited = _first_inline_image(response)
        if edited is None:
            raise EditError("No image found in the edit response.", response=str(response))
        logger.info("Edited in %.1fs model=%s", time.time() - start, model)
        return edited
