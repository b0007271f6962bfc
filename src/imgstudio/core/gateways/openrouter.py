"""
OpenRouter gateway.

Handles HTTP communication with the OpenRouter chat/completions API for prompt
enhancement, image generation and image editing. requests is blocking, so each
call runs in a worker thread and the event loop only awaits the result.
"""

import asyncio
import json
import time
from typing import Any

import requests

from imgstudio.core.config import Config
from imgstudio.core.images import GeneratedImage, parse_data_url
from imgstudio.core.options import AspectRatio, Quality
from imgstudio.core.prompts_loader import build_generation_prompt, get_enhance_instruction
from imgstudio.logging_config import get_logger, log_prompts
from imgstudio.utils.exceptions import (
    ConfigurationError,
    EditError,
    EnhanceError,
    GatewayError,
    GenerateError,
    ImageProcessingError,
)

logger = get_logger(__name__)

_PROMPT_LOG_MAX = 50_000
_DEBUG_TRUNCATE_THRESHOLD = 200
_DEBUG_NEVER_TRUNCATE_KEYS = frozenset({"text", "message", "raw"})


def _truncate_image_data_for_log(obj: Any, parent_key: str | None = None) -> Any:
    """Recursively replace long base64/data URL strings with placeholders for safe logging."""
    if isinstance(obj, dict):
        return {k: _truncate_image_data_for_log(v, k) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_truncate_image_data_for_log(v, None) for v in obj]
    if isinstance(obj, str) and len(obj) >= _DEBUG_TRUNCATE_THRESHOLD:
        if parent_key in _DEBUG_NEVER_TRUNCATE_KEYS:
            return obj
        if obj.startswith("data:"):
            return f"<data URL, {len(obj)} chars>"
        return f"<string, {len(obj)} chars>"
    return obj


def _images_from_message(message: dict[str, Any]) -> list[GeneratedImage]:
    """Decode every image attached to a chat completion message."""
    images: list[GeneratedImage] = []
    for entry in message.get("images") or []:
        url = (entry.get("image_url") or {}).get("url", "")
        if not url:
            continue
        data, mime = parse_data_url(url)
        images.append(GeneratedImage(data=data, mime_type=mime))
    return images


class OpenRouterGateway:
    """Gateway backed by the OpenRouter API."""

    def __init__(self, config: Config) -> None:
        self._config = config

    def _headers(self) -> dict[str, str]:
        api_key = self._config.openrouter_api_key
        if not api_key:
            raise ConfigurationError(
                "OpenRouter API key is required. Set OPENROUTER_API_KEY environment variable."
            )
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, payload: dict[str, Any], error_cls: type[GatewayError]) -> dict[str, Any]:
        """POST to chat/completions and return the first choice's message.

        Maps status codes and transport failures to error_cls.
        """
        url = f"{self._config.openrouter_base_url}/chat/completions"
        timeout = self._config.request_timeout
        model = payload.get("model", "")
        logger.debug("API request url=%s model=%s timeout=%s", url, model, timeout)
        if self._config.debug_api:
            logger.info(
                "API request payload (image data truncated): %s",
                json.dumps(_truncate_image_data_for_log(payload), indent=2, default=str),
            )
        start_time = time.time()
        try:
            response = requests.post(url, headers=self._headers(), json=payload, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise error_cls(
                f"Request timed out after {timeout} seconds.", original_error=e
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise error_cls(
                "Failed to connect to OpenRouter API. Please check your internet connection.",
                original_error=e,
            ) from e
        except requests.exceptions.RequestException as e:
            raise error_cls(
                f"Network error during API request: {str(e)}", original_error=e
            ) from e
        logger.debug(
            "API response status=%s time=%.2fs", response.status_code, time.time() - start_time
        )

        if response.status_code == 401:
            raise error_cls(
                "Authentication failed. Please check your OpenRouter API key.",
                status_code=401,
                response=response.text,
            )
        if response.status_code == 404:
            raise error_cls(
                f"Model not found or endpoint unavailable: {model}",
                status_code=404,
                response=response.text,
            )
        if response.status_code == 429:
            raise error_cls(
                "Rate limit exceeded. Please wait before making more requests.",
                status_code=429,
                response=response.text,
            )
        if response.status_code >= 500:
            raise error_cls(
                f"OpenRouter service error: {response.status_code}",
                status_code=response.status_code,
                response=response.text,
            )
        if response.status_code != 200:
            raise error_cls(
                f"API request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                response=response.text,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise error_cls(
                f"Failed to parse API response as JSON: {str(e)}",
                response=response.text,
            ) from e
        if self._config.debug_api:
            logger.info(
                "API response (image data truncated): %s",
                json.dumps(_truncate_image_data_for_log(result), indent=2, default=str),
            )
        try:
            return result["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise error_cls(
                f"Unexpected API response shape: {str(e)}", response=str(result)
            ) from e

    def _enhance_sync(self, prompt: str) -> str:
        payload = {
            "model": self._config.openrouter_text_model,
            "messages": [
                {"role": "system", "content": get_enhance_instruction()},
                {"role": "user", "content": prompt},
            ],
        }
        message = self._post(payload, EnhanceError)
        text = (message.get("content") or "").strip()
        if not text:
            raise EnhanceError("Enhancement returned an empty response.", response=str(message))
        return text

    def _generate_sync(self, prompt: str, aspect_ratio: AspectRatio) -> list[GeneratedImage]:
        payload = {
            "model": self._config.openrouter_image_model,
            "modalities": ["image", "text"],
            "messages": [{"role": "user", "content": prompt}],
            "image_config": {"aspect_ratio": aspect_ratio.value},
        }
        images: list[GeneratedImage] = []
        # One image per request; the image models here do not batch.
        for _ in range(self._config.number_of_images):
            message = self._post(payload, GenerateError)
            try:
                images.extend(_images_from_message(message)[:1])
            except ImageProcessingError as e:
                raise GenerateError(str(e), response=str(message), original_error=e) from e
        return images

    def _edit_sync(self, image: GeneratedImage, instruction: str) -> GeneratedImage:
        payload = {
            "model": self._config.openrouter_image_model,
            "modalities": ["image", "text"],
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": image.to_data_url()}},
                        {"type": "text", "text": instruction},
                    ],
                }
            ],
        }
        message = self._post(payload, EditError)
        try:
            images = _images_from_message(message)
        except ImageProcessingError as e:
            raise EditError(str(e), response=str(message), original_error=e) from e
        if not images:
            raise EditError("No image found in the edit response.", response=str(message))
        return images[0]

    async def enhance(self, prompt: str) -> str:
        logger.info("Enhancing prompt model=%s", self._config.openrouter_text_model)
        if log_prompts():
            logger.info("Prompt (original): %s", prompt[:_PROMPT_LOG_MAX])
        return await asyncio.to_thread(self._enhance_sync, prompt)

    async def generate(
        self,
        prompt: str,
        aspect_ratio: AspectRatio,
        quality: Quality,
    ) -> list[GeneratedImage]:
        final_prompt = build_generation_prompt(prompt, quality)
        logger.info(
            "Generating images model=%s count=%s aspect_ratio=%s quality=%s",
            self._config.openrouter_image_model,
            self._config.number_of_images,
            aspect_ratio.value,
            quality.value,
        )
        if log_prompts():
            logger.info("Prompt (used): %s", final_prompt[:_PROMPT_LOG_MAX])
        start = time.time()
        images = await asyncio.to_thread(self._generate_sync, final_prompt, aspect_ratio)
        logger.info("Generated %d image(s) in %.1fs", len(images), time.time() - start)
        return images

    async def edit(self, image: GeneratedImage, instruction: str) -> GeneratedImage:
        logger.info("Editing image model=%s", self._config.openrouter_image_model)
        if log_prompts():
            logger.info("Edit instruction: %s", instruction[:_PROMPT_LOG_MAX])
        return await asyncio.to_thread(self._edit_sync, image, instruction)
