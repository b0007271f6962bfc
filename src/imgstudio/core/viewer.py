"""
Full-screen viewer navigation with wraparound and keyboard bindings.
"""

from collections.abc import Callable

from imgstudio.core.state import SessionState, SessionStore, ViewerClosed, ViewerOpened, ViewerStepped
from imgstudio.logging_config import get_logger

logger = get_logger(__name__)

KEY_ESCAPE = "Escape"
KEY_LEFT = "ArrowLeft"
KEY_RIGHT = "ArrowRight"

ACTION_CLOSE = "close"
ACTION_PREVIOUS = "previous"
ACTION_NEXT = "next"

KEY_BINDINGS = {
    KEY_ESCAPE: ACTION_CLOSE,
    KEY_LEFT: ACTION_PREVIOUS,
    KEY_RIGHT: ACTION_NEXT,
}

KeyListener = Callable[[str], None]


def next_index(index: int, count: int) -> int:
    """Index after index, wrapping to 0 past the end."""
    if count <= 0:
        raise ValueError("count must be positive")
    return (index + 1) % count


def previous_index(index: int, count: int) -> int:
    """Index before index, wrapping to the last image before 0."""
    if count <= 0:
        raise ValueError("count must be positive")
    return (index - 1 + count) % count


class KeyEventSource:
    """Per-session key event fan-out (the page-level keydown handler feeds it)."""

    def __init__(self) -> None:
        self._listeners: list[KeyListener] = []

    def add_listener(self, listener: KeyListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: KeyListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, key: str) -> None:
        for listener in list(self._listeners):
            listener(key)


class ViewerNavigator:
    """
    Opens, steps and closes the viewer session held in the store.

    A key listener is attached while the viewer is open and detached when it
    closes, including when the store closes it (e.g. a new image set arrived).
    """

    def __init__(self, store: SessionStore, keys: KeyEventSource | None = None) -> None:
        self._store = store
        self._keys = keys or KeyEventSource()
        self._attached = False
        self._store.subscribe(self._on_state)

    @property
    def keys(self) -> KeyEventSource:
        return self._keys

    @property
    def is_open(self) -> bool:
        return self._store.state.viewer is not None

    def open(self, index: int) -> None:
        """
        Show the image at index.

        Raises:
            IndexError: If the image set is empty or index is out of range.
        """
        self._store.dispatch(ViewerOpened(index))
        self._attach()
        logger.debug("Viewer opened index=%d", index)

    def close(self) -> None:
        if self._store.state.viewer is not None:
            self._store.dispatch(ViewerClosed())
        self._detach()

    def next(self) -> None:
        self._step(next_index)

    def previous(self) -> None:
        self._step(previous_index)

    def _step(self, move: Callable[[int, int], int]) -> None:
        state = self._store.state
        if state.viewer is None or not state.images:
            return
        self._store.dispatch(ViewerStepped(move(state.viewer.index, len(state.images))))

    def handle_key(self, key: str) -> None:
        """Apply the action bound to key; unbound keys are ignored."""
        action = KEY_BINDINGS.get(key)
        if action == ACTION_CLOSE:
            self.close()
        elif action == ACTION_PREVIOUS:
            self.previous()
        elif action == ACTION_NEXT:
            self.next()

    def _attach(self) -> None:
        if not self._attached:
            self._keys.add_listener(self.handle_key)
            self._attached = True

    def _detach(self) -> None:
        if self._attached:
            self._keys.remove_listener(self.handle_key)
            self._attached = False

    def _on_state(self, state: SessionState) -> None:
        if state.viewer is None and self._attached:
            self._detach()
