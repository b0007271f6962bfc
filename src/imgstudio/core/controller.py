"""
Generation controller: sequences user operations against the gateway and folds
results and errors into the session store.

One controller drives one session. All methods run on the session's event loop;
gateway calls are the only suspension points.
"""

import time
from collections.abc import Hashable
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from imgstudio.core.config import Config, get_config
from imgstudio.core.gateways.base import Gateway
from imgstudio.core.options import AspectRatio, Quality
from imgstudio.core.share import Clipboard, NativeShare, ShareFile, SystemClipboard
from imgstudio.core.state import (
    FLAG_EDITING,
    FLAG_ENHANCING,
    FLAG_GENERATING,
    EditClosed,
    EditOpened,
    EditTextChanged,
    SessionState,
    SessionStore,
)
from imgstudio.core.viewer import KeyEventSource, ViewerNavigator
from imgstudio.logging_config import get_logger
from imgstudio.utils.exceptions import (
    CancellationError,
    GatewayError,
    ImageProcessingError,
    ShareError,
)

logger = get_logger(__name__)

# User-facing messages
PROMPT_REQUIRED_FOR_ENHANCE = "Please enter a description first to enhance it."
PROMPT_REQUIRED_FOR_GENERATE = "Please enter a description to generate images."
EDIT_TEXT_REQUIRED = "Please describe the edit."
ENHANCE_FAILED = "Something went wrong while enhancing the description. Please try again."
GENERATE_FAILED = "Something went wrong while generating the images. Please try again."
EDIT_FAILED = "Something went wrong while editing the image. Please try again."
SHARE_PREPARE_FAILED = "Could not prepare the image for sharing."
SHARE_UNSUPPORTED = "Sharing is not supported here, and copying to the clipboard failed."
COPIED_TO_CLIPBOARD = "Image copied to clipboard!"

SHARE_TITLE = "AI generated image"
SHARE_TEXT = "Look at this image I created with imgstudio!"

SLOT_PROMPT = "prompt"
SLOT_EDIT = "edit"

TARGET_IMAGES = "images"


class OperationLock:
    """One busy token per slot. Acquire and release never await."""

    def __init__(self) -> None:
        self._busy: set[str] = set()

    def is_busy(self, slot: str) -> bool:
        return slot in self._busy

    def try_acquire(self, slot: str) -> bool:
        if slot in self._busy:
            return False
        self._busy.add(slot)
        return True

    def release(self, slot: str) -> None:
        self._busy.discard(slot)


class RequestSequencer:
    """Issues increasing tokens per target; only the newest token is current."""

    def __init__(self) -> None:
        self._counter = 0
        self._latest: dict[Hashable, int] = {}

    def issue(self, target: Hashable) -> int:
        self._counter += 1
        self._latest[target] = self._counter
        return self._counter

    def is_current(self, target: Hashable, token: int) -> bool:
        return self._latest.get(target) == token


def _slot_target(index: int) -> tuple[str, int]:
    return ("slot", index)


class GenerationController:
    """Drives one session: enhance, generate, edit, share, and the viewer."""

    def __init__(
        self,
        gateway: Gateway,
        config: Config | None = None,
        store: SessionStore | None = None,
        native_share: NativeShare | None = None,
        clipboard: Clipboard | None = None,
        keys: KeyEventSource | None = None,
    ) -> None:
        self._config = config or get_config()
        self._gateway = gateway
        self._store = store or SessionStore(self._config.notification_seconds)
        self._native_share = native_share
        self._clipboard = clipboard if clipboard is not None else SystemClipboard()
        self._lock = OperationLock()
        self._sequencer = RequestSequencer()
        self._viewer = ViewerNavigator(self._store, keys)

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def state(self) -> SessionState:
        return self._store.state

    @property
    def viewer(self) -> ViewerNavigator:
        return self._viewer

    @property
    def keys(self) -> KeyEventSource:
        return self._viewer.keys

    @contextmanager
    def _operation(self, flag: str) -> Iterator[None]:
        self._store.set_flag(flag, True)
        try:
            yield
        finally:
            self._store.set_flag(flag, False)

    def set_prompt(self, text: str) -> None:
        self._store.set_prompt(text)

    def set_options(
        self,
        aspect_ratio: AspectRatio | str | None = None,
        quality: Quality | str | None = None,
    ) -> None:
        """
        Change the generation options; None keeps the current value.

        Raises:
            ValidationError: If a value is not a known aspect ratio or quality.
        """
        state = self._store.state
        ratio = AspectRatio.parse(aspect_ratio) if aspect_ratio is not None else state.aspect_ratio
        tier = Quality.parse(quality) if quality is not None else state.quality
        self._store.set_options(ratio, tier)

    async def enhance(self) -> None:
        prompt = self._store.state.prompt
        if not prompt.strip():
            self._store.set_error(PROMPT_REQUIRED_FOR_ENHANCE)
            return
        if not self._lock.try_acquire(SLOT_PROMPT):
            logger.debug("enhance ignored: prompt operation already running")
            return
        try:
            with self._operation(FLAG_ENHANCING):
                self._store.clear_error()
                try:
                    enhanced = await self._gateway.enhance(prompt)
                except GatewayError as e:
                    logger.error("Enhance failed: %s", e, exc_info=e.original_error is not None)
                    self._store.set_error(ENHANCE_FAILED)
                    return
                self._store.set_prompt(enhanced)
        finally:
            self._lock.release(SLOT_PROMPT)

    async def generate(self) -> None:
        state = self._store.state
        if not state.prompt.strip():
            self._store.set_error(PROMPT_REQUIRED_FOR_GENERATE)
            return
        if not self._lock.try_acquire(SLOT_PROMPT):
            logger.debug("generate ignored: prompt operation already running")
            return
        try:
            with self._operation(FLAG_GENERATING):
                self._store.clear_error()
                self._store.replace_image_set(())
                token = self._sequencer.issue(TARGET_IMAGES)
                start = time.time()
                try:
                    images = await self._gateway.generate(
                        state.prompt, state.aspect_ratio, state.quality
                    )
                    for image in images:
                        image.verify()
                except GatewayError as e:
                    logger.error("Generate failed: %s", e, exc_info=e.original_error is not None)
                    self._store.set_error(GENERATE_FAILED)
                    return
                except ImageProcessingError as e:
                    logger.error("Generate returned an undecodable image: %s", e)
                    self._store.set_error(GENERATE_FAILED)
                    return
                if not self._sequencer.is_current(TARGET_IMAGES, token):
                    logger.info("Discarding stale generate result (%d image(s))", len(images))
                    return
                self._store.replace_image_set(images)
                logger.info(
                    "Image set replaced: %d image(s) in %.1fs", len(images), time.time() - start
                )
        finally:
            self._lock.release(SLOT_PROMPT)

    def open_edit(self, index: int) -> None:
        """
        Open a fresh edit session for the image at index, replacing any open one.

        Raises:
            IndexError: If index is out of range.
        """
        if self._lock.is_busy(SLOT_EDIT):
            logger.debug("open_edit ignored: edit in progress")
            return
        self._store.dispatch(EditOpened(index))

    def set_edit_text(self, text: str) -> None:
        self._store.dispatch(EditTextChanged(text))

    def cancel_edit(self) -> None:
        if self._store.state.edit is not None:
            self._store.dispatch(EditClosed())

    async def edit_submit(self, index: int) -> None:
        """
        Send the open edit session's draft for the image at index.

        Raises:
            IndexError: If no edit session is open at index.
        """
        state = self._store.state
        session = state.edit
        if session is None or session.index != index:
            raise IndexError(f"no edit session open for image {index}")
        instruction = session.draft
        if not instruction.strip():
            self._store.set_error(EDIT_TEXT_REQUIRED)
            return
        if not self._lock.try_acquire(SLOT_EDIT):
            logger.debug("edit_submit ignored: edit already running")
            return
        try:
            with self._operation(FLAG_EDITING):
                self._store.clear_error()
                image = self._store.image_at(index)
                version = state.image_set_version
                token = self._sequencer.issue(_slot_target(index))
                try:
                    edited = await self._gateway.edit(image, instruction)
                    edited.verify()
                except GatewayError as e:
                    logger.error("Edit failed: %s", e, exc_info=e.original_error is not None)
                    if self._store.state.image_set_version == version:
                        self._store.set_error(EDIT_FAILED)
                    return
                except ImageProcessingError as e:
                    logger.error("Edit returned an undecodable image: %s", e)
                    if self._store.state.image_set_version == version:
                        self._store.set_error(EDIT_FAILED)
                    return
                if (
                    self._store.state.image_set_version != version
                    or not self._sequencer.is_current(_slot_target(index), token)
                ):
                    logger.info("Discarding stale edit result for image %d", index)
                    return
                self._store.replace_image_at(index, edited)
                current = self._store.state.edit
                if current is not None and current.index == index:
                    self._store.dispatch(EditClosed())
                logger.info("Image %d replaced by edit", index)
        finally:
            self._lock.release(SLOT_EDIT)

    async def share(
        self,
        index: int,
        native_share: NativeShare | None = None,
        clipboard: Clipboard | None = None,
    ) -> None:
        """
        Share the image at index, falling back to the clipboard.

        native_share and clipboard override the session defaults for this call
        (the web UI passes in what the browser reported).

        Raises:
            IndexError: If index is out of range.
        """
        image = self._store.image_at(index)
        try:
            file = ShareFile.from_image(image, index)
        except (ImageProcessingError, ValueError) as e:
            logger.error("Could not prepare image %d for sharing: %s", index, e)
            self._store.set_error(SHARE_PREPARE_FAILED)
            return

        native = native_share or self._native_share
        if native is not None and native.can_share(file):
            try:
                await native.share(file, SHARE_TITLE, SHARE_TEXT)
                logger.info("Shared %s", file.name)
                return
            except CancellationError:
                logger.debug("Share dismissed by user")
                return
            except ShareError as e:
                logger.warning("Native share failed, falling back to clipboard: %s", e)

        try:
            await (clipboard or self._clipboard).write_image(file)
        except ShareError as e:
            logger.error("Failed to copy image to clipboard: %s", e)
            self._store.set_error(SHARE_UNSUPPORTED)
            return
        self._store.set_notification(COPIED_TO_CLIPBOARD)

    def export_image(self, index: int, directory: str | Path) -> Path:
        """
        Write the image at index to directory as generated-image-<n>.<ext>.

        Raises:
            IndexError: If index is out of range.
        """
        image = self._store.image_at(index)
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / image.file_name(index)
        path.write_bytes(image.data)
        logger.debug("Exported image %d to %s", index, path)
        return path

    def open_viewer(self, index: int) -> None:
        self._viewer.open(index)

    def close_viewer(self) -> None:
        self._viewer.close()

    def next_image(self) -> None:
        self._viewer.next()

    def previous_image(self) -> None:
        self._viewer.previous()

    def close(self) -> None:
        """Release the session: pending timers and subscribers."""
        self._viewer.close()
        self._store.close()
