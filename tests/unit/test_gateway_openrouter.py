"""Unit tests for the OpenRouter gateway with mocked requests.post."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest
import requests

from imgstudio.core.config import Config
from imgstudio.core.gateways.openrouter import (
    OpenRouterGateway,
    _truncate_image_data_for_log,
)
from imgstudio.core.images import GeneratedImage
from imgstudio.core.options import AspectRatio, Quality
from imgstudio.utils.exceptions import (
    ConfigurationError,
    EditError,
    EnhanceError,
    GenerateError,
)

POST = "imgstudio.core.gateways.openrouter.requests.post"


def _config(**kwargs) -> Config:
    kwargs.setdefault("openrouter_api_key", "sk-ok")
    return Config(default_gateway="openrouter", **kwargs)


def _response(message: dict, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = ""
    response.json.return_value = {"choices": [{"message": message}]}
    return response


def _image_message(image: GeneratedImage) -> dict:
    return {"content": "", "images": [{"image_url": {"url": image.to_data_url()}}]}


@pytest.mark.unit
class TestOpenRouterEnhance:
    def test_success(self):
        gateway = OpenRouterGateway(_config())
        with patch(POST, return_value=_response({"content": " richer prompt "})) as m:
            assert asyncio.run(gateway.enhance("cat")) == "richer prompt"
        payload = m.call_args[1]["json"]
        assert payload["model"] == gateway._config.openrouter_text_model
        assert payload["messages"][0]["role"] == "system"
        assert payload["messages"][1] == {"role": "user", "content": "cat"}
        assert m.call_args[1]["headers"]["Authorization"] == "Bearer sk-ok"

    def test_empty_content_raises(self):
        gateway = OpenRouterGateway(_config())
        with patch(POST, return_value=_response({"content": None})):
            with pytest.raises(EnhanceError):
                asyncio.run(gateway.enhance("cat"))

    def test_missing_key_raises_configuration_error(self):
        gateway = OpenRouterGateway(_config(openrouter_api_key=""))
        with patch(POST) as m:
            with pytest.raises(ConfigurationError):
                asyncio.run(gateway.enhance("cat"))
        m.assert_not_called()


@pytest.mark.unit
class TestOpenRouterGenerate:
    def test_one_request_per_image(self, make_image):
        gateway = OpenRouterGateway(_config(number_of_images=3))
        responses = [_response(_image_message(make_image(i))) for i in range(3)]
        with patch(POST, side_effect=responses) as m:
            images = asyncio.run(gateway.generate("a fox", AspectRatio.PORTRAIT, Quality.MEDIUM))
        assert images == [make_image(0), make_image(1), make_image(2)]
        assert m.call_count == 3
        payload = m.call_args[1]["json"]
        assert payload["image_config"] == {"aspect_ratio": "9:16"}
        assert payload["messages"][0]["content"] == "Create a good-quality image: a fox"

    def test_base_url_from_config(self, make_image):
        gateway = OpenRouterGateway(
            _config(number_of_images=1, openrouter_base_url="https://custom.example/v1")
        )
        with patch(POST, return_value=_response(_image_message(make_image()))) as m:
            asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH))
        assert m.call_args[0][0] == "https://custom.example/v1/chat/completions"

    def test_message_without_images_yields_empty_set(self):
        gateway = OpenRouterGateway(_config(number_of_images=2))
        with patch(POST, return_value=_response({"content": "no image"})):
            assert asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH)) == []

    def test_bad_data_url_raises(self):
        gateway = OpenRouterGateway(_config(number_of_images=1))
        message = {"images": [{"image_url": {"url": "not-a-data-url"}}]}
        with patch(POST, return_value=_response(message)):
            with pytest.raises(GenerateError):
                asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH))

    @pytest.mark.parametrize("status", [401, 404, 429, 500, 418])
    def test_http_errors_raise_with_status(self, status):
        gateway = OpenRouterGateway(_config(number_of_images=1))
        with patch(POST, return_value=_response({}, status_code=status)):
            with pytest.raises(GenerateError) as exc_info:
                asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH))
        assert exc_info.value.status_code == status

    def test_json_parse_error_raises(self):
        gateway = OpenRouterGateway(_config(number_of_images=1))
        response = _response({})
        response.json.side_effect = ValueError("no json")
        with patch(POST, return_value=response):
            with pytest.raises(GenerateError) as exc_info:
                asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH))
        assert "JSON" in str(exc_info.value)

    def test_unexpected_shape_raises(self):
        gateway = OpenRouterGateway(_config(number_of_images=1))
        response = _response({})
        response.json.return_value = {"choices": []}
        with patch(POST, return_value=response):
            with pytest.raises(GenerateError):
                asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH))

    @pytest.mark.parametrize(
        "exc",
        [
            requests.exceptions.Timeout("slow"),
            requests.exceptions.ConnectionError("refused"),
            requests.exceptions.RequestException("other"),
        ],
    )
    def test_transport_errors_wrapped(self, exc):
        gateway = OpenRouterGateway(_config(number_of_images=1))
        with patch(POST, side_effect=exc):
            with pytest.raises(GenerateError) as exc_info:
                asyncio.run(gateway.generate("x", AspectRatio.SQUARE, Quality.HIGH))
        assert exc_info.value.original_error is exc


@pytest.mark.unit
class TestOpenRouterEdit:
    def test_sends_image_and_instruction(self, make_image):
        gateway = OpenRouterGateway(_config())
        source, edited = make_image(1), make_image(2)
        with patch(POST, return_value=_response(_image_message(edited))) as m:
            result = asyncio.run(gateway.edit(source, "add a hat"))
        assert result == edited
        content = m.call_args[1]["json"]["messages"][0]["content"]
        assert content[0] == {"type": "image_url", "image_url": {"url": source.to_data_url()}}
        assert content[1] == {"type": "text", "text": "add a hat"}

    def test_no_image_raises(self, make_image):
        gateway = OpenRouterGateway(_config())
        with patch(POST, return_value=_response({"content": "sorry"})):
            with pytest.raises(EditError):
                asyncio.run(gateway.edit(make_image(), "add a hat"))


@pytest.mark.unit
class TestTruncateForLog:
    def test_data_url_replaced(self):
        url = "data:image/png;base64," + "A" * 300
        out = _truncate_image_data_for_log({"image_url": {"url": url}})
        assert out["image_url"]["url"].startswith("<data URL")

    def test_text_kept(self):
        text = "x" * 300
        assert _truncate_image_data_for_log({"text": text}) == {"text": text}

    def test_short_values_unchanged(self):
        assert _truncate_image_data_for_log(["a", 1, None]) == ["a", 1, None]
