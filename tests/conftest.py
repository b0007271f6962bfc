"""
Pytest configuration: default runs most tests; use --run-slow to include slow tests.
"""

import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (live Gemini / OpenRouter calls). Default: skip them.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-slow", False):
        return
    skip_slow = pytest.mark.skip(reason="Slow test; run with --run-slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def _png_bytes(color: tuple[int, int, int] = (255, 0, 0), size: tuple[int, int] = (4, 4)) -> bytes:
    import io

    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A tiny valid PNG payload."""
    return _png_bytes()


@pytest.fixture
def make_image():
    """Factory for distinct GeneratedImage payloads (distinct colors)."""
    from imgstudio.core.images import GeneratedImage

    def factory(seed: int = 0, mime_type: str = "image/png") -> GeneratedImage:
        return GeneratedImage(data=_png_bytes(color=(seed % 256, 40, 80)), mime_type=mime_type)

    return factory


@pytest.fixture
def test_config():
    """A valid gemini Config that never reads the environment."""
    from imgstudio.core.config import Config

    return Config(gemini_api_key="test-gemini-key", notification_seconds=3.0)


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


class FakeScheduler:
    """Records scheduled callbacks; tests fire them explicitly."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()
