"""Unit tests for the Gemini gateway with a mocked google-genai client."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from imgstudio.core.config import Config
from imgstudio.core.gateways.gemini import GeminiGateway
from imgstudio.core.images import GeneratedImage
from imgstudio.core.options import AspectRatio, Quality
from imgstudio.utils.exceptions import (
    ConfigurationError,
    EditError,
    EnhanceError,
    GenerateError,
)


def _client() -> MagicMock:
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock()
    client.aio.models.generate_images = AsyncMock()
    return client


def _generated(data: bytes, mime_type: str | None = "image/jpeg") -> SimpleNamespace:
    return SimpleNamespace(image=SimpleNamespace(image_bytes=data, mime_type=mime_type))


def _content_response(*parts: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


@pytest.mark.unit
class TestGeminiClient:
    def test_missing_key_raises_on_first_use(self):
        gateway = GeminiGateway(Config(gemini_api_key=""))
        with pytest.raises(ConfigurationError):
            _ = gateway.client

    def test_client_created_once_with_key(self):
        with patch("imgstudio.core.gateways.gemini.genai.Client") as client_cls:
            gateway = GeminiGateway(Config(gemini_api_key="g-key"))
            assert gateway.client is gateway.client
        client_cls.assert_called_once_with(api_key="g-key")


@pytest.mark.unit
class TestGeminiEnhance:
    def test_returns_stripped_text(self, test_config):
        client = _client()
        client.aio.models.generate_content.return_value = SimpleNamespace(text="  a lush forest  \n")
        gateway = GeminiGateway(test_config, client=client)

        assert asyncio.run(gateway.enhance("forest")) == "a lush forest"
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == test_config.enhance_model
        assert kwargs["contents"] == "forest"
        assert kwargs["config"].system_instruction

    def test_empty_text_raises(self, test_config):
        client = _client()
        client.aio.models.generate_content.return_value = SimpleNamespace(text=None)
        gateway = GeminiGateway(test_config, client=client)
        with pytest.raises(EnhanceError):
            asyncio.run(gateway.enhance("forest"))

    def test_transport_error_wrapped(self, test_config):
        client = _client()
        inner = httpx.ConnectError("refused")
        client.aio.models.generate_content.side_effect = inner
        gateway = GeminiGateway(test_config, client=client)
        with pytest.raises(EnhanceError) as exc_info:
            asyncio.run(gateway.enhance("forest"))
        assert exc_info.value.original_error is inner


@pytest.mark.unit
class TestGeminiGenerate:
    def test_request_and_result_order(self, test_config, png_bytes):
        client = _client()
        client.aio.models.generate_images.return_value = SimpleNamespace(
            generated_images=[_generated(b"first"), _generated(png_bytes, "image/png")]
        )
        gateway = GeminiGateway(test_config, client=client)

        images = asyncio.run(gateway.generate("a fox", AspectRatio.LANDSCAPE, Quality.LOW))

        assert images == [
            GeneratedImage(data=b"first", mime_type="image/jpeg"),
            GeneratedImage(data=png_bytes, mime_type="image/png"),
        ]
        kwargs = client.aio.models.generate_images.call_args.kwargs
        assert kwargs["model"] == test_config.image_model
        assert kwargs["prompt"] == "Create a simple sketch with few details of: a fox"
        assert kwargs["config"].number_of_images == 4
        assert kwargs["config"].aspect_ratio == "16:9"
        assert kwargs["config"].output_mime_type == "image/jpeg"

    def test_high_quality_red_fox_keeps_four_images_in_order(self, test_config):
        payloads = [f"image-{i}".encode() for i in range(4)]
        client = _client()
        client.aio.models.generate_images.return_value = SimpleNamespace(
            generated_images=[_generated(data) for data in payloads]
        )
        gateway = GeminiGateway(test_config, client=client)

        images = asyncio.run(gateway.generate("a red fox", AspectRatio.SQUARE, Quality.HIGH))

        assert [image.data for image in images] == payloads
        prompt = client.aio.models.generate_images.call_args.kwargs["prompt"]
        assert prompt == "Create a high-quality, photographically detailed image: a red fox"
        assert prompt.endswith("a red fox")

    def test_missing_mime_uses_configured_output(self, test_config):
        client = _client()
        client.aio.models.generate_images.return_value = SimpleNamespace(
            generated_images=[_generated(b"data", None)]
        )
        gateway = GeminiGateway(test_config, client=client)
        images = asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH))
        assert images[0].mime_type == test_config.output_mime_type

    def test_no_images_returns_empty_list(self, test_config):
        client = _client()
        client.aio.models.generate_images.return_value = SimpleNamespace(generated_images=None)
        gateway = GeminiGateway(test_config, client=client)
        assert asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH)) == []

    def test_entries_without_bytes_skipped(self, test_config):
        client = _client()
        client.aio.models.generate_images.return_value = SimpleNamespace(
            generated_images=[SimpleNamespace(image=None), _generated(b"ok")]
        )
        gateway = GeminiGateway(test_config, client=client)
        images = asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH))
        assert [i.data for i in images] == [b"ok"]

    def test_service_error_wrapped(self, test_config):
        client = _client()
        client.aio.models.generate_images.side_effect = ValueError("blocked")
        gateway = GeminiGateway(test_config, client=client)
        with pytest.raises(GenerateError):
            asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH))


@pytest.mark.unit
class TestGeminiEdit:
    def test_returns_first_inline_image_with_its_mime(self, test_config, make_image):
        client = _client()
        client.aio.models.generate_content.return_value = _content_response(
            SimpleNamespace(inline_data=None, text="here you go"),
            SimpleNamespace(inline_data=SimpleNamespace(data=b"edited", mime_type="image/webp")),
        )
        gateway = GeminiGateway(test_config, client=client)

        edited = asyncio.run(gateway.edit(make_image(1), "add a hat"))

        assert edited == GeneratedImage(data=b"edited", mime_type="image/webp")
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == test_config.edit_model
        assert len(kwargs["contents"]) == 2

    def test_no_image_raises(self, test_config, make_image):
        client = _client()
        client.aio.models.generate_content.return_value = _content_response(
            SimpleNamespace(inline_data=None, text="I can't do that")
        )
        gateway = GeminiGateway(test_config, client=client)
        with pytest.raises(EditError):
            asyncio.run(gateway.edit(make_image(1), "add a hat"))

    def test_no_candidates_raises(self, test_config, make_image):
        client = _client()
        client.aio.models.generate_content.return_value = SimpleNamespace(candidates=None)
        gateway = GeminiGateway(test_config, client=client)
        with pytest.raises(EditError):
            asyncio.run(gateway.edit(make_image(1), "add a hat"))
