"""
Generation options: aspect ratio and quality tier.
"""

from enum import Enum

from imgstudio.utils.exceptions import ValidationError


class AspectRatio(str, Enum):
    """Aspect ratios accepted by the image model. Values are passed through verbatim."""

    SQUARE = "1:1"
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"

    @property
    def label(self) -> str:
        return f"{self.name.capitalize()} ({self.value})"

    @classmethod
    def parse(cls, value: "str | AspectRatio") -> "AspectRatio":
        """Accept a member, its name ('square') or its ratio ('1:1')."""
        if isinstance(value, cls):
            return value
        raw = str(value).strip()
        for member in cls:
            if raw.lower() == member.name.lower() or raw == member.value:
                return member
        raise ValidationError(
            f"Unknown aspect ratio: {value!r}. "
            f"Must be one of: {', '.join(m.name.lower() for m in cls)}.",
            field="aspect_ratio",
        )


class Quality(str, Enum):
    """Quality tiers; each maps to a prompt prefix in prompts.yaml."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: "str | Quality") -> "Quality":
        if isinstance(value, cls):
            return value
        raw = str(value).strip().lower()
        for member in cls:
            if raw == member.value:
                return member
        raise ValidationError(
            f"Unknown quality: {value!r}. Must be one of: {', '.join(m.value for m in cls)}.",
            field="quality",
        )


DEFAULT_ASPECT_RATIO = AspectRatio.SQUARE
DEFAULT_QUALITY = Quality.HIGH
