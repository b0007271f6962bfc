"""Unit tests for config."""

import os
from unittest.mock import patch

import pytest

from imgstudio.core.config import (
    DEFAULT_BOOKS_BASE_URL,
    DEFAULT_GATEWAY,
    DEFAULT_NOTIFICATION_SECONDS,
    DEFAULT_NUMBER_OF_IMAGES,
    KNOWN_GATEWAYS,
    Config,
    get_config,
    set_config,
)
from imgstudio.utils.exceptions import ConfigurationError


@pytest.mark.unit
class TestConfig:
    def test_validate_raises_when_no_gemini_key(self):
        c = Config(gemini_api_key="", default_gateway="gemini")
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "API key" in str(exc_info.value)

    def test_validate_raises_when_no_openrouter_key(self):
        c = Config(gemini_api_key="g-key", default_gateway="openrouter")
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "OpenRouter" in str(exc_info.value)

    def test_validate_raises_when_openrouter_key_bad_prefix(self):
        c = Config(openrouter_api_key="invalid", default_gateway="openrouter")
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "sk-" in str(exc_info.value)

    def test_validate_sets_validated(self):
        c = Config(gemini_api_key="g-key")
        assert c.is_valid() is False
        c.validate()
        assert c.is_valid() is True

    def test_validate_books_key_optional(self):
        c = Config(gemini_api_key="g-key", books_api_key="")
        c.validate()
        assert c.is_valid() is True

    def test_validate_unknown_gateway_raises(self):
        c = Config(gemini_api_key="g-key", default_gateway="unknown")
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "Unknown default_gateway" in str(exc_info.value)

    @pytest.mark.parametrize("count", [0, 5])
    def test_validate_number_of_images_out_of_range(self, count):
        c = Config(gemini_api_key="g-key", number_of_images=count)
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "number_of_images" in str(exc_info.value)

    def test_validate_notification_seconds_positive(self):
        c = Config(gemini_api_key="g-key", notification_seconds=0)
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "notification_seconds" in str(exc_info.value)

    def test_validate_output_mime_type(self):
        c = Config(gemini_api_key="g-key", output_mime_type="image/bmp")
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "output_mime_type" in str(exc_info.value)

    def test_repr_does_not_contain_api_keys(self):
        c = Config(gemini_api_key="g-secret", openrouter_api_key="sk-secret", books_api_key="b-secret")
        r = repr(c)
        assert "g-secret" not in r
        assert "sk-secret" not in r
        assert "b-secret" not in r

    def test_defaults(self):
        c = Config()
        assert c.default_gateway == DEFAULT_GATEWAY == "gemini"
        assert c.number_of_images == DEFAULT_NUMBER_OF_IMAGES == 4
        assert c.notification_seconds == DEFAULT_NOTIFICATION_SECONDS == 3.0
        assert c.books_base_url == DEFAULT_BOOKS_BASE_URL
        assert c.books_default_max_results == 20
        assert c.debug_api is False

    def test_known_gateways_constant(self):
        assert "gemini" in KNOWN_GATEWAYS
        assert "openrouter" in KNOWN_GATEWAYS


@pytest.mark.unit
class TestConfigFromEnv:
    def test_from_env_uses_env_vars(self):
        with patch.dict(
            os.environ,
            {
                "GEMINI_API_KEY": "g-from-env",
                "OPENROUTER_API_KEY": "sk-from-env",
                "GOOGLE_BOOKS_KEY": "books-key",
                "IMGSTUDIO_GATEWAY": "openrouter",
                "IMGSTUDIO_IMAGE_MODEL": "custom-imagen",
                "IMGSTUDIO_NUMBER_OF_IMAGES": "2",
                "IMGSTUDIO_NOTIFICATION_SECONDS": "1.5",
                "IMGSTUDIO_BOOKS_MAX_RESULTS": "7",
            },
            clear=True,
        ):
            c = Config.from_env()
        assert c.gemini_api_key == "g-from-env"
        assert c.openrouter_api_key == "sk-from-env"
        assert c.books_api_key == "books-key"
        assert c.default_gateway == "openrouter"
        assert c.image_model == "custom-imagen"
        assert c.number_of_images == 2
        assert c.notification_seconds == 1.5
        assert c.books_default_max_results == 7

    def test_from_env_api_key_fallback(self):
        with patch.dict(os.environ, {"API_KEY": "legacy-key"}, clear=True):
            c = Config.from_env()
        assert c.gemini_api_key == "legacy-key"

    def test_from_env_defaults_when_env_empty(self):
        with patch.dict(os.environ, {}, clear=True):
            c = Config.from_env()
        assert c.gemini_api_key == ""
        assert c.books_api_key == ""
        assert c.default_gateway == DEFAULT_GATEWAY
        assert c.number_of_images == DEFAULT_NUMBER_OF_IMAGES
        assert c.debug_api is False

    def test_from_env_debug_api_true(self):
        with patch.dict(os.environ, {"IMGSTUDIO_DEBUG_API": "yes"}, clear=True):
            c = Config.from_env()
        assert c.debug_api is True

    def test_from_env_non_numeric_raises(self):
        with patch.dict(os.environ, {"IMGSTUDIO_NUMBER_OF_IMAGES": "many"}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                Config.from_env()
        assert "IMGSTUDIO_NUMBER_OF_IMAGES" in str(exc_info.value)


@pytest.mark.unit
class TestConfigSetters:
    def test_set_api_key_empty_raises(self):
        c = Config(gemini_api_key="g-ok")
        with pytest.raises(ConfigurationError):
            c.set_api_key("")
        assert c.gemini_api_key == "g-ok"

    def test_set_api_key_targets_default_gateway(self):
        c = Config(default_gateway="openrouter")
        c.set_api_key("sk-new")
        assert c.openrouter_api_key == "sk-new"
        assert c.gemini_api_key == ""

        c2 = Config()
        c2.set_api_key("g-new")
        assert c2.gemini_api_key == "g-new"

    def test_set_api_key_success_clears_validated(self):
        c = Config(gemini_api_key="g-old")
        c.validate()
        c.set_api_key("g-new")
        assert c.is_valid() is False

    def test_set_gateway(self):
        c = Config(gemini_api_key="g-ok")
        c.validate()
        c.set_gateway("openrouter")
        assert c.default_gateway == "openrouter"
        assert c.is_valid() is False

    def test_set_gateway_empty_raises(self):
        c = Config()
        with pytest.raises(ConfigurationError):
            c.set_gateway("")


@pytest.mark.unit
class TestConfigGlobals:
    def test_set_config_then_get_config_returns_set(self):
        from imgstudio.core import config as config_mod

        c = Config(gemini_api_key="g-set")
        orig = config_mod._global_config
        set_config(c)
        try:
            cfg = get_config()
            assert cfg is c
            assert cfg.gemini_api_key == "g-set"
        finally:
            config_mod._global_config = orig

    def test_get_config_calls_from_env_when_global_none(self):
        from imgstudio.core import config as config_mod

        with patch.object(Config, "from_env") as from_env:
            from_env.return_value = Config(gemini_api_key="g-stub")
            orig = config_mod._global_config
            config_mod._global_config = None
            try:
                cfg = get_config()
                assert cfg.gemini_api_key == "g-stub"
                from_env.assert_called_once()
            finally:
                config_mod._global_config = orig
