"""
Load prompt text from the bundled prompts.yaml file.

Prompts are defined in src/imgstudio/prompts.yaml and loaded once per process.
Add new prompt keys there and access them via get_prompt() or specific getters.
"""

import importlib.resources
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from imgstudio.utils.exceptions import ConfigurationError

# Module-level cache for parsed prompts
_prompts_data: dict[str, Any] | None = None

DEFAULT_QUALITY_KEY = "default"


class EnhancePrompt(BaseModel):
    """Schema for the enhance section."""

    system_instruction: str = Field(
        ..., min_length=1, description="System instruction for prompt enhancement"
    )


class GenerationPrompts(BaseModel):
    """Schema for the generation section."""

    quality_prefixes: dict[str, str]

    @field_validator("quality_prefixes")
    @classmethod
    def _require_default(cls, value: dict[str, str]) -> dict[str, str]:
        if DEFAULT_QUALITY_KEY not in value:
            raise ValueError("quality_prefixes must define a 'default' prefix")
        return value


class PromptsSchema(BaseModel):
    """Schema for prompts.yaml configuration file."""

    model_config = {"extra": "allow"}  # Allow additional keys for future expansion

    enhance: EnhancePrompt
    generation: GenerationPrompts


def _load_prompts() -> dict[str, Any]:
    """Load and parse prompts.yaml from the package. Cached after first call.

    Returns:
        Dictionary of prompt data.

    Raises:
        ConfigurationError: If YAML is missing, malformed, or fails validation.
    """
    global _prompts_data
    if _prompts_data is not None:
        return _prompts_data

    try:
        with (
            importlib.resources.files("imgstudio")
            .joinpath("prompts.yaml")
            .open(encoding="utf-8") as f
        ):
            raw = f.read()
    except FileNotFoundError as e:
        raise ConfigurationError(
            "prompts.yaml not found. This file is required and should be bundled with the package."
        ) from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse prompts.yaml: {e}. Check YAML syntax and formatting."
        ) from e

    if data is None:
        raise ConfigurationError(
            "prompts.yaml is empty. Expected 'enhance' and 'generation' sections."
        )

    try:
        PromptsSchema(**data)
    except ValidationError as e:
        errors = "\n".join(
            [f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        )
        raise ConfigurationError(
            f"Invalid prompts.yaml structure:\n{errors}\n"
            "Expected 'enhance.system_instruction' and 'generation.quality_prefixes'."
        ) from e

    _prompts_data = data
    return _prompts_data


def get_prompt(key: str, subkey: str | None = None) -> str | None:
    """
    Get a prompt string from prompts.yaml.

    Args:
        key: Top-level key (e.g. "enhance").
        subkey: Optional subkey (e.g. "system_instruction") for nested value.

    Returns:
        The prompt string, or None if not found.
    """
    data = _load_prompts()
    value = data.get(key)
    if value is None:
        return None
    if subkey is not None:
        value = value.get(subkey) if isinstance(value, dict) else None
    return value if isinstance(value, str) else None


def get_enhance_instruction() -> str:
    """Return the system instruction used when enhancing a prompt."""
    instruction = get_prompt("enhance", "system_instruction")
    if not instruction:
        raise ConfigurationError(
            "enhance.system_instruction not found in prompts.yaml. This key is required."
        )
    return instruction.strip()


def get_quality_prefix(quality: str) -> str:
    """
    Return the text prefix for a quality tier.

    Unknown tiers fall back to the 'default' prefix.
    """
    prefixes = _load_prompts()["generation"]["quality_prefixes"]
    key = getattr(quality, "value", quality)
    return prefixes.get(key, prefixes[DEFAULT_QUALITY_KEY])


def build_generation_prompt(prompt: str, quality: str) -> str:
    """Prefix the user's prompt with the quality tier text sent to the image model."""
    return f"{get_quality_prefix(quality)}{prompt}"
