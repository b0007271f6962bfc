"""
Image payloads exchanged with the generation gateway.

A GeneratedImage is an encoded image (bytes plus MIME type). It is serialized
as a data URL (data:<mime>;base64,<bytes>) for transport and display.
"""

import base64
import binascii
import io
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image

from imgstudio.utils.exceptions import ImageProcessingError

DEFAULT_MIME_TYPE = "image/jpeg"

_EXTENSIONS = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def _infer_mime_from_magic(data: bytes) -> str | None:
    """Infer the MIME type from magic bytes. Returns None when unknown."""
    if len(data) < 12:
        return None
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:2] == b"\xff\xd8":
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return None


def parse_data_url(data_url: str) -> tuple[bytes, str]:
    """
    Parse a data URL (data:image/xxx;base64,yyy) into raw bytes and its MIME type.

    Raises:
        ImageProcessingError: If the string is not a base64 data URL.
    """
    data_url = data_url.strip()
    if not data_url.startswith("data:"):
        raise ImageProcessingError("Invalid base64 image data string.")
    idx = data_url.find(";base64,")
    if idx == -1:
        raise ImageProcessingError("Data URL missing ;base64, part.")
    mime = data_url[5:idx].strip().lower()
    if not mime:
        raise ImageProcessingError("Data URL has no MIME type.")
    try:
        payload = base64.b64decode(data_url[idx + 8 :], validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageProcessingError(f"Invalid base64 in data URL: {e}") from e
    return payload, mime


def create_data_url(data: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Build a data URL from raw image bytes."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


@dataclass(frozen=True)
class GeneratedImage:
    """An encoded image. Slots in an image set hold these; they are never mutated."""

    data: bytes = field(repr=False)
    mime_type: str = DEFAULT_MIME_TYPE

    def __post_init__(self) -> None:
        if not self.data:
            raise ImageProcessingError("Image data is empty.")

    @classmethod
    def from_data_url(cls, data_url: str) -> "GeneratedImage":
        data, mime = parse_data_url(data_url)
        return cls(data=data, mime_type=mime)

    @classmethod
    def from_file(cls, path: str | Path) -> "GeneratedImage":
        """Load image bytes from disk; the MIME type comes from the file's magic bytes."""
        data = Path(path).read_bytes()
        mime = _infer_mime_from_magic(data)
        if mime is None:
            raise ImageProcessingError(f"Unsupported or unrecognized image file: {path}")
        return cls(data=data, mime_type=mime)

    @property
    def extension(self) -> str:
        """File extension for this payload (e.g. 'jpeg', 'png')."""
        if self.mime_type in _EXTENSIONS:
            return _EXTENSIONS[self.mime_type]
        subtype = self.mime_type.split("/", 1)[-1].split("+")[0].strip()
        return subtype or "png"

    def file_name(self, index: int) -> str:
        """Download/share file name for the image at position index."""
        return f"generated-image-{index + 1}.{self.extension}"

    def to_data_url(self) -> str:
        return create_data_url(self.data, self.mime_type)

    def to_pil(self) -> Image.Image:
        """Decode the payload with Pillow (for display)."""
        try:
            image = Image.open(io.BytesIO(self.data))
            image.load()
        except (OSError, ValueError) as e:
            raise ImageProcessingError(f"Failed to decode image: {e}") from e
        return image

    def verify(self) -> None:
        """
        Check that the payload decodes.

        Raises:
            ImageProcessingError: If Pillow cannot decode the bytes.
        """
        self.to_pil().close()
