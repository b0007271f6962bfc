"""
Sharing images: the native share facility and the clipboard fallback.

Both are small protocols so the controller can be driven from the web UI, the
CLI, or tests. SystemClipboard copies through the desktop clipboard tools
(wl-copy on Wayland, xclip on X11).
"""

import asyncio
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Protocol

from imgstudio.core.images import GeneratedImage
from imgstudio.logging_config import get_logger
from imgstudio.utils.exceptions import ShareError

logger = get_logger(__name__)

_CLIPBOARD_TIMEOUT = 10


@dataclass(frozen=True)
class ShareFile:
    """A file handed to the share facility or the clipboard."""

    name: str
    data: bytes = field(repr=False)
    mime_type: str

    @classmethod
    def from_image(cls, image: GeneratedImage, index: int) -> "ShareFile":
        return cls(name=image.file_name(index), data=image.data, mime_type=image.mime_type)


class NativeShare(Protocol):
    def can_share(self, file: ShareFile) -> bool:
        """True when the facility can share this file type."""
        ...

    async def share(self, file: ShareFile, title: str, text: str) -> None:
        """Share the file. Raises CancellationError if dismissed, ShareError on failure."""
        ...


class Clipboard(Protocol):
    async def write_image(self, file: ShareFile) -> None:
        """Put the image on the clipboard. Raises ShareError on failure."""
        ...


def _clipboard_command(mime_type: str) -> list[str] | None:
    if shutil.which("wl-copy"):
        return ["wl-copy", "--type", mime_type]
    if shutil.which("xclip"):
        return ["xclip", "-selection", "clipboard", "-t", mime_type, "-i"]
    return None


class SystemClipboard:
    """Clipboard backed by wl-copy or xclip."""

    def _write(self, file: ShareFile) -> None:
        cmd = _clipboard_command(file.mime_type)
        if cmd is None:
            raise ShareError("No clipboard tool found (install wl-clipboard or xclip).")
        logger.debug("Copying %s (%d bytes) with %s", file.name, len(file.data), cmd[0])
        try:
            subprocess.run(
                cmd,
                input=file.data,
                check=True,
                capture_output=True,
                timeout=_CLIPBOARD_TIMEOUT,
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            raise ShareError(f"{cmd[0]} failed: {stderr or e.returncode}") from e
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ShareError(f"{cmd[0]} failed: {e}") from e

    async def write_image(self, file: ShareFile) -> None:
        await asyncio.to_thread(self._write, file)
