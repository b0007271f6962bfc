"""
Session state: immutable snapshots, events, and the store that applies them.

All mutations go through reduce(state, event), a pure function. SessionStore
holds the current snapshot, notifies subscribers after every change, and owns
the one-shot timer that clears notifications.
"""

import asyncio
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any, Protocol

from imgstudio.core.config import DEFAULT_NOTIFICATION_SECONDS
from imgstudio.core.images import GeneratedImage
from imgstudio.core.options import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_QUALITY,
    AspectRatio,
    Quality,
)
from imgstudio.logging_config import get_logger

logger = get_logger(__name__)

ImageSet = tuple[GeneratedImage, ...]

FLAG_GENERATING = "generating"
FLAG_ENHANCING = "enhancing"
FLAG_EDITING = "editing"


@dataclass(frozen=True)
class EditSession:
    index: int
    draft: str = ""
    in_progress: bool = False


@dataclass(frozen=True)
class ViewerSession:
    index: int


@dataclass(frozen=True)
class OperationFlags:
    generating: bool = False
    enhancing: bool = False
    editing: bool = False

    @property
    def prompt_busy(self) -> bool:
        """True while the prompt bar must stay disabled."""
        return self.generating or self.enhancing


@dataclass(frozen=True)
class SessionState:
    """One snapshot of a user session."""

    prompt: str = ""
    images: ImageSet = ()
    edit: EditSession | None = None
    viewer: ViewerSession | None = None
    flags: OperationFlags = OperationFlags()
    error: str | None = None
    notification: str | None = None
    aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
    quality: Quality = DEFAULT_QUALITY
    image_set_version: int = 0


# Events


@dataclass(frozen=True)
class PromptChanged:
    text: str


@dataclass(frozen=True)
class OptionsChanged:
    aspect_ratio: AspectRatio
    quality: Quality


@dataclass(frozen=True)
class ImageSetReplaced:
    images: ImageSet


@dataclass(frozen=True)
class ImageReplaced:
    index: int
    image: GeneratedImage


@dataclass(frozen=True)
class FlagChanged:
    name: str
    value: bool


@dataclass(frozen=True)
class ErrorSet:
    message: str


@dataclass(frozen=True)
class ErrorCleared:
    pass


@dataclass(frozen=True)
class NotificationSet:
    message: str


@dataclass(frozen=True)
class NotificationCleared:
    pass


@dataclass(frozen=True)
class EditOpened:
    index: int


@dataclass(frozen=True)
class EditTextChanged:
    text: str


@dataclass(frozen=True)
class EditClosed:
    pass


@dataclass(frozen=True)
class ViewerOpened:
    index: int


@dataclass(frozen=True)
class ViewerStepped:
    index: int


@dataclass(frozen=True)
class ViewerClosed:
    pass


Event = (
    PromptChanged
    | OptionsChanged
    | ImageSetReplaced
    | ImageReplaced
    | FlagChanged
    | ErrorSet
    | ErrorCleared
    | NotificationSet
    | NotificationCleared
    | EditOpened
    | EditTextChanged
    | EditClosed
    | ViewerOpened
    | ViewerStepped
    | ViewerClosed
)


def _check_index(state: SessionState, index: int) -> None:
    if not 0 <= index < len(state.images):
        raise IndexError(f"image index {index} out of range for {len(state.images)} image(s)")


def reduce(state: SessionState, event: Event) -> SessionState:
    """
    Return the state that results from applying event to state.

    Raises:
        IndexError: For index-bearing events outside the current image set.
        ValueError: For an unknown event or flag name.
    """
    if isinstance(event, PromptChanged):
        return replace(state, prompt=event.text)

    if isinstance(event, OptionsChanged):
        return replace(state, aspect_ratio=event.aspect_ratio, quality=event.quality)

    if isinstance(event, ImageSetReplaced):
        # Old indices mean nothing for the new set
        return replace(
            state,
            images=tuple(event.images),
            edit=None,
            viewer=None,
            error=None,
            image_set_version=state.image_set_version + 1,
        )

    if isinstance(event, ImageReplaced):
        _check_index(state, event.index)
        images = list(state.images)
        images[event.index] = event.image
        return replace(state, images=tuple(images))

    if isinstance(event, FlagChanged):
        if event.name not in (FLAG_GENERATING, FLAG_ENHANCING, FLAG_EDITING):
            raise ValueError(f"Unknown operation flag: {event.name!r}")
        flags = replace(state.flags, **{event.name: event.value})
        edit = state.edit
        if event.name == FLAG_EDITING and edit is not None:
            edit = replace(edit, in_progress=event.value)
        return replace(state, flags=flags, edit=edit)

    if isinstance(event, ErrorSet):
        return replace(state, error=event.message)

    if isinstance(event, ErrorCleared):
        return replace(state, error=None)

    if isinstance(event, NotificationSet):
        return replace(state, notification=event.message)

    if isinstance(event, NotificationCleared):
        return replace(state, notification=None)

    if isinstance(event, EditOpened):
        _check_index(state, event.index)
        return replace(state, edit=EditSession(index=event.index))

    if isinstance(event, EditTextChanged):
        if state.edit is None:
            return state
        return replace(state, edit=replace(state.edit, draft=event.text))

    if isinstance(event, EditClosed):
        return replace(state, edit=None)

    if isinstance(event, (ViewerOpened, ViewerStepped)):
        _check_index(state, event.index)
        return replace(state, viewer=ViewerSession(index=event.index))

    if isinstance(event, ViewerClosed):
        return replace(state, viewer=None)

    raise ValueError(f"Unknown event: {event!r}")


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]
Listener = Callable[[SessionState], None]


def default_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Schedule callback after delay seconds on the running loop, or on a daemon thread."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, callback)


class SessionStore:
    """Holds the session snapshot and notifies subscribers after every mutation."""

    def __init__(
        self,
        notification_seconds: float = DEFAULT_NOTIFICATION_SECONDS,
        scheduler: Scheduler | None = None,
        initial: SessionState | None = None,
    ) -> None:
        self._state = initial or SessionState()
        self._notification_seconds = notification_seconds
        self._scheduler = scheduler or default_scheduler
        self._listeners: list[Listener] = []
        self._timer: TimerHandle | None = None
        self._timer_generation = 0
        self._lock = threading.RLock()

    @property
    def state(self) -> SessionState:
        return self._state

    def dispatch(self, event: Event) -> SessionState:
        """Apply event and notify subscribers. Returns the new snapshot."""
        with self._lock:
            new_state = reduce(self._state, event)
            if new_state is self._state:
                return new_state
            self._state = new_state
            listeners = list(self._listeners)
        for listener in listeners:
            listener(new_state)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_prompt(self, text: str) -> None:
        self.dispatch(PromptChanged(text))

    def set_options(self, aspect_ratio: AspectRatio, quality: Quality) -> None:
        self.dispatch(OptionsChanged(aspect_ratio, quality))

    def replace_image_set(self, images: list[GeneratedImage] | ImageSet) -> None:
        """Replace the whole image set. Closes edit and viewer sessions and clears the error."""
        self.dispatch(ImageSetReplaced(tuple(images)))

    def replace_image_at(self, index: int, image: GeneratedImage) -> None:
        """Replace one slot. Raises IndexError when index is out of range."""
        self.dispatch(ImageReplaced(index, image))

    def image_at(self, index: int) -> GeneratedImage:
        images = self._state.images
        if not 0 <= index < len(images):
            raise IndexError(f"image index {index} out of range for {len(images)} image(s)")
        return images[index]

    def set_flag(self, name: str, value: bool) -> None:
        self.dispatch(FlagChanged(name, value))

    def set_error(self, message: str) -> None:
        self.dispatch(ErrorSet(message))

    def clear_error(self) -> None:
        if self._state.error is not None:
            self.dispatch(ErrorCleared())

    def set_notification(self, message: str) -> None:
        """Show message and clear it after notification_seconds; restarts any pending timer."""
        with self._lock:
            self._cancel_timer()
            self._timer_generation += 1
            generation = self._timer_generation
            self._timer = self._scheduler(
                self._notification_seconds, lambda: self._expire_notification(generation)
            )
        self.dispatch(NotificationSet(message))

    def _expire_notification(self, generation: int) -> None:
        with self._lock:
            # A timer that fired after being superseded must not clear the newer message
            if generation != self._timer_generation:
                return
            self._timer = None
        self.dispatch(NotificationCleared())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self) -> None:
        """Cancel the pending notification timer and drop all subscribers."""
        with self._lock:
            self._cancel_timer()
            self._timer_generation += 1
        self._listeners.clear()
