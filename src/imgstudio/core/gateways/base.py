"""
Gateway protocol for the remote generation service.

Defines the interface that all gateway implementations must provide.
"""

from __future__ import annotations

from typing import Protocol

from imgstudio.core.images import GeneratedImage
from imgstudio.core.options import AspectRatio, Quality


class Gateway(Protocol):
    """Protocol for remote generation services.

    All three operations are coroutines: the caller suspends only while
    awaiting the service. There is no local timeout beyond the transport's.
    """

    async def enhance(self, prompt: str) -> str:
        """Rewrite a short prompt into a richer one. May raise EnhanceError."""
        ...

    async def generate(
        self,
        prompt: str,
        aspect_ratio: AspectRatio,
        quality: Quality,
    ) -> list[GeneratedImage]:
        """Generate an ordered set of images; empty when the service returns none.

        May raise GenerateError.
        """
        ...

    async def edit(self, image: GeneratedImage, instruction: str) -> GeneratedImage:
        """Apply an edit instruction to one image. May raise EditError."""
        ...
