"""
Gradio web UI for imgstudio.

Single-page studio: prompt bar (enhance, generate, quality, aspect ratio),
results gallery, full-screen viewer with keyboard navigation, share and
download, and an edit panel for one image at a time. Every browser session
gets its own GenerationController; each handler applies one user intent to it
and re-renders from the session snapshot.
"""

import asyncio
import atexit
import contextlib
import json
import shutil
import tempfile
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import gradio as gr

from imgstudio import __version__
from imgstudio.core.config import Config
from imgstudio.core.controller import SHARE_TEXT, SHARE_TITLE, GenerationController
from imgstudio.core.gateways import create_gateway
from imgstudio.core.images import GeneratedImage
from imgstudio.core.options import AspectRatio, Quality
from imgstudio.core.share import ShareFile
from imgstudio.core.state import SessionState
from imgstudio.core.viewer import KEY_ESCAPE, KEY_LEFT, KEY_RIGHT
from imgstudio.logging_config import get_logger
from imgstudio.utils.exceptions import (
    CancellationError,
    ConfigurationError,
    GatewayError,
    ImageProcessingError,
    ShareError,
    StudioError,
    ValidationError,
)

logger = get_logger(__name__)

BASE_PAGE_TITLE = "imgstudio - AI image studio"

GENERATE_LABEL = "Generate"
GENERATING_LABEL = "Generating..."
ENHANCE_LABEL = "Enhance"
ENHANCING_LABEL = "Enhancing..."
APPLY_LABEL = "Apply"
APPLYING_LABEL = "Applying..."

LOADER_TEXT = "Creating your images, this may take a moment..."
EMPTY_TEXT = "Your generated images will appear here."

# Seconds between notification refreshes (the toast clears itself in the store)
NOTIFICATION_REFRESH_SECONDS = 1.0

_UI_CONCURRENCY_ID = "imgstudio_ui"

# Temp paths we create (per-session download directories); removed on process exit
_temp_paths: set[str] = set()


def _register_temp_path(path: str) -> None:
    _temp_paths.add(path)


def _cleanup_temp_paths() -> None:
    for path in _temp_paths:
        p = Path(path)
        if p.is_dir():
            shutil.rmtree(p, ignore_errors=True)
        else:
            with contextlib.suppress(OSError):
                p.unlink(missing_ok=True)


atexit.register(_cleanup_temp_paths)


@dataclass
class UISession:
    """State kept per browser session."""

    controller: GenerationController
    download_dir: Path = field(default_factory=lambda: Path(tempfile.mkdtemp(prefix="imgstudio_")))
    # (index, image) last written for the viewer download, and its path
    download_key: tuple[int, GeneratedImage] | None = None
    download_path: str | None = None

    def __post_init__(self) -> None:
        _register_temp_path(str(self.download_dir))


def _new_session(config: Config | None = None) -> UISession:
    config = config or Config.from_env()
    gateway = create_gateway(config)
    return UISession(controller=GenerationController(gateway, config))


def _exception_to_message(exc: BaseException) -> str:
    """Map library and known exceptions to a short user-facing message (same as CLI)."""
    if isinstance(exc, ValidationError):
        msg = exc.args[0] if exc.args else "Validation failed."
        if getattr(exc, "field", None):
            msg = f"{msg} (field: {exc.field})"
        return msg
    if isinstance(exc, ConfigurationError):
        return exc.args[0] if exc.args else "Invalid configuration."
    if isinstance(exc, ImageProcessingError):
        return exc.args[0] if exc.args else "Image processing failed."
    if isinstance(exc, CancellationError):
        return "Cancelled."
    if isinstance(exc, (GatewayError, ShareError)):
        return exc.args[0] if exc.args else "Service error."
    if isinstance(exc, StudioError):
        return exc.args[0] if exc.args else "An error occurred."
    return str(exc) if exc.args else "An unexpected error occurred."


def _format_status(message: str, status_type: str = "info") -> str:
    """
    Format a status message with color and icon.

    Args:
        message: The status message text.
        status_type: One of "info", "success", "error", "warning", "idle".

    Returns:
        HTML-formatted status string ("" for idle or an empty message).
    """
    if not message:
        return ""
    if status_type == "success":
        icon = "✅"
        color = "#10b981"  # green-500
        bg_color = "#d1fae5"  # green-100
    elif status_type == "error":
        icon = "❌"
        color = "#ef4444"  # red-500
        bg_color = "#fee2e2"  # red-100
    elif status_type == "warning":
        icon = "⚠️"
        color = "#f59e0b"  # amber-500
        bg_color = "#fef3c7"  # amber-100
    elif status_type == "info":
        icon = "ℹ️"
        color = "#3b82f6"  # blue-500
        bg_color = "#dbeafe"  # blue-100
    else:  # idle
        return ""

    return f"""<div style="padding: 12px 16px; border-radius: 8px; background-color: {bg_color}; border-left: 4px solid {color}; margin: 8px 0;">
    <span style="font-size: 16px; margin-right: 8px;">{icon}</span>
    <span style="color: {color}; font-weight: 500;">{message}</span>
</div>"""


def _download_path(session: UISession, index: int) -> str:
    """Export the viewed image for download; rewritten only when the viewed image changes."""
    key = (index, session.controller.state.images[index])
    if session.download_key != key or session.download_path is None:
        session.download_path = str(session.controller.export_image(index, session.download_dir))
        session.download_key = key
    return session.download_path


def _render(session: UISession) -> tuple[Any, ...]:
    """Updates for every session-bound component, in the order of the outputs list."""
    state: SessionState = session.controller.state
    flags = state.flags
    busy = flags.prompt_busy
    has_images = bool(state.images)

    viewer_caption = ""
    download = None
    share_name = ""
    if state.viewer is not None:
        index = state.viewer.index
        viewer_caption = f"Image {index + 1} of {len(state.images)}"
        download = _download_path(session, index)
        share_name = state.images[index].file_name(index)

    edit = state.edit
    edit_title = f"**Edit image {edit.index + 1}**" if edit is not None else ""
    draft = edit.draft if edit is not None else ""
    can_apply = edit is not None and bool(draft.strip()) and not flags.editing

    return (
        gr.update(value=state.prompt, interactive=not busy),
        gr.update(
            value=ENHANCING_LABEL if flags.enhancing else ENHANCE_LABEL,
            interactive=not busy and bool(state.prompt.strip()),
        ),
        gr.update(
            value=GENERATING_LABEL if flags.generating else GENERATE_LABEL,
            interactive=not busy and bool(state.prompt.strip()),
        ),
        gr.update(value=state.quality.value, interactive=not busy),
        gr.update(value=state.aspect_ratio.value, interactive=not busy),
        _format_status(state.error or "", "error"),
        _format_status(state.notification or "", "success"),
        gr.update(visible=flags.generating),
        gr.update(
            value=[(image.to_pil(), image.file_name(i)) for i, image in enumerate(state.images)],
            visible=has_images,
        ),
        gr.update(visible=not has_images and not flags.generating),
        gr.update(visible=state.viewer is not None),
        download,
        viewer_caption,
        gr.update(value=download, interactive=download is not None),
        gr.update(visible=edit is not None),
        edit_title,
        gr.update(value=draft, interactive=not flags.editing),
        gr.update(value=APPLYING_LABEL if flags.editing else APPLY_LABEL, interactive=can_apply),
        json.dumps({"name": share_name}),
    )


def _load_handler(config: Config | None = None) -> tuple[Any, ...]:
    """Page load: create this browser session's controller."""
    session = _new_session(config)
    logger.debug("UI session created")
    return (session, *_render(session))


def _prompt_input_handler(session: UISession, text: str) -> tuple[Any, Any]:
    """Prompt typed: store it; Enhance and Generate need a non-blank prompt."""
    session.controller.set_prompt(text or "")
    busy = session.controller.state.flags.prompt_busy
    enabled = bool(text and text.strip()) and not busy
    return gr.update(interactive=enabled), gr.update(interactive=enabled)


def _options_input_handler(session: UISession, quality: str, aspect_ratio: str) -> str:
    try:
        session.controller.set_options(aspect_ratio=aspect_ratio, quality=quality)
    except ValidationError as e:
        return _format_status(_exception_to_message(e), "error")
    return ""


async def _drive(
    session: UISession, operation: Any
) -> AsyncGenerator[tuple[Any, ...], None]:
    """Run one controller coroutine, rendering once it is in flight and again when done."""
    task = asyncio.ensure_future(operation)
    # Let the operation raise its flag before the first render
    await asyncio.sleep(0)
    if not task.done():
        yield _render(session)
    try:
        await task
    except StudioError as e:
        session.controller.store.set_error(_exception_to_message(e))
    yield _render(session)


async def _enhance_click_handler(
    session: UISession, prompt: str
) -> AsyncGenerator[tuple[Any, ...], None]:
    logger.debug("Enhance clicked")
    session.controller.set_prompt(prompt or "")
    async for update in _drive(session, session.controller.enhance()):
        yield update


async def _generate_click_handler(
    session: UISession, prompt: str, quality: str, aspect_ratio: str
) -> AsyncGenerator[tuple[Any, ...], None]:
    logger.debug("Generate clicked")
    controller = session.controller
    controller.set_prompt(prompt or "")
    try:
        controller.set_options(aspect_ratio=aspect_ratio, quality=quality)
    except ValidationError as e:
        controller.store.set_error(_exception_to_message(e))
        yield _render(session)
        return
    async for update in _drive(session, controller.generate()):
        yield update


def _gallery_select_handler(session: UISession, evt: gr.SelectData) -> tuple[Any, ...]:
    index = evt.index if isinstance(evt.index, int) else evt.index[0]
    session.controller.open_viewer(index)
    return _render(session)


def _make_key_handler(key: str) -> Any:
    """Viewer buttons route through the session's key events, like the keyboard does."""

    def handler(session: UISession) -> tuple[Any, ...]:
        session.controller.keys.emit(key)
        return _render(session)

    return handler


def _open_edit_handler(session: UISession) -> tuple[Any, ...]:
    controller = session.controller
    viewer = controller.state.viewer
    if viewer is not None:
        controller.open_edit(viewer.index)
        controller.close_viewer()
    return _render(session)


def _edit_input_handler(session: UISession, text: str) -> Any:
    controller = session.controller
    controller.set_edit_text(text or "")
    can_apply = bool(text and text.strip()) and not controller.state.flags.editing
    return gr.update(interactive=can_apply)


async def _apply_edit_handler(
    session: UISession, text: str
) -> AsyncGenerator[tuple[Any, ...], None]:
    controller = session.controller
    edit = controller.state.edit
    if edit is None:
        yield _render(session)
        return
    controller.set_edit_text(text or "")
    async for update in _drive(session, controller.edit_submit(edit.index)):
        yield update


def _cancel_edit_handler(session: UISession) -> tuple[Any, ...]:
    session.controller.cancel_edit()
    return _render(session)


class _BrowserShareReport:
    """
    Native share and clipboard as reported by the page script.

    The browser attempts sharing first; this replays its outcome through the
    controller so the session state follows the same rules as everywhere else.
    """

    def __init__(self, report: dict[str, Any]) -> None:
        self._native = str(report.get("native", "unavailable"))
        self._clipboard = str(report.get("clipboard", "failed"))

    def can_share(self, file: ShareFile) -> bool:
        return self._native != "unavailable"

    async def share(self, file: ShareFile, title: str, text: str) -> None:
        if self._native == "cancelled":
            raise CancellationError("Share dismissed.")
        if self._native != "shared":
            raise ShareError("Browser share failed.")

    async def write_image(self, file: ShareFile) -> None:
        if self._clipboard != "copied":
            raise ShareError("Browser clipboard write failed.")


def _parse_share_report(raw: str | None) -> dict[str, Any]:
    try:
        report = json.loads(raw or "{}")
    except ValueError:
        return {}
    return report if isinstance(report, dict) else {}


async def _share_click_handler(session: UISession, report_json: str) -> tuple[Any, ...]:
    controller = session.controller
    viewer = controller.state.viewer
    if viewer is None:
        return _render(session)
    browser = _BrowserShareReport(_parse_share_report(report_json))
    await controller.share(viewer.index, native_share=browser, clipboard=browser)
    return _render(session)


def _tick_handler(session: UISession | None) -> str:
    """Timer tick: reflect notification auto-clear."""
    if session is None:
        return ""
    return _format_status(session.controller.state.notification or "", "success")


# Page-level keyboard: Escape/ArrowLeft/ArrowRight click the viewer buttons while it is visible
_JS_VIEWER_KEYS = f"""
() => {{
  if (window.__imgstudioViewerKeys) return;
  window.__imgstudioViewerKeys = true;
  const buttons = {{
    "{KEY_ESCAPE}": "imgstudio-viewer-close",
    "{KEY_LEFT}": "imgstudio-viewer-prev",
    "{KEY_RIGHT}": "imgstudio-viewer-next",
  }};
  document.addEventListener("keydown", (event) => {{
    const viewer = document.getElementById("imgstudio-viewer");
    if (!viewer || viewer.offsetParent === null) return;
    const id = buttons[event.key];
    const button = id ? document.getElementById(id) : null;
    if (button) {{
      event.preventDefault();
      button.click();
    }}
  }});
}}
"""

# Shares the viewed file under the name rendered into the report box, native share
# sheet before clipboard; reports both outcomes as JSON
_JS_SHARE = f"""
async (session, report) => {{
  let name = "generated-image.png";
  try {{
    name = JSON.parse(report || "{{}}").name || name;
  }} catch (e) {{}}
  const result = {{ name, native: "unavailable", clipboard: "failed" }};
  const img = document.querySelector("#imgstudio-viewer-image img");
  if (!img) return [session, JSON.stringify(result)];
  let blob;
  try {{
    blob = await (await fetch(img.src)).blob();
  }} catch (e) {{
    return [session, JSON.stringify(result)];
  }}
  const file = new File([blob], name, {{ type: blob.type }});
  if (navigator.share && navigator.canShare && navigator.canShare({{ files: [file] }})) {{
    try {{
      await navigator.share({{ files: [file], title: {json.dumps(SHARE_TITLE)}, text: {json.dumps(SHARE_TEXT)} }});
      result.native = "shared";
    }} catch (e) {{
      result.native = e.name === "AbortError" ? "cancelled" : "failed";
    }}
    if (result.native !== "failed") return [session, JSON.stringify(result)];
  }}
  try {{
    await navigator.clipboard.write([new ClipboardItem({{ [blob.type]: blob }})]);
    result.clipboard = "copied";
  }} catch (e) {{
    result.clipboard = "failed";
  }}
  return [session, JSON.stringify(result)];
}}
"""


def build_blocks(config: Config | None = None) -> gr.Blocks:
    """
    Build the Gradio Blocks UI. Sessions use config (default: from the environment).

    Raises:
        ConfigurationError: If the configuration is invalid.
    """
    config = config or Config.from_env()
    config.validate()
    header_html = """
<div style="margin: 16px 0 24px 0;">
    <h1 style="
        font-size: 2.5em;
        font-weight: 700;
        margin: 0;
        background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
        -webkit-background-clip: text;
        -webkit-text-fill-color: transparent;
        background-clip: text;
        letter-spacing: -0.02em;
    ">imgstudio</h1>
    <p style="font-size: 1.1em; color: #6b7280; margin: 4px 0 0 0;">Describe an image, enhance the description, generate, then edit, share or download.</p>
</div>
"""

    with gr.Blocks(title=BASE_PAGE_TITLE) as app:
        session = gr.State(None)
        gr.HTML(header_html)

        with gr.Row():
            prompt_tb = gr.Textbox(
                label="Description",
                placeholder="Describe the image you want to create...",
                lines=3,
                max_lines=10,
                scale=4,
            )
            with gr.Column(scale=1, min_width=160):
                generate_btn = gr.Button(GENERATE_LABEL, variant="primary", interactive=False)
                enhance_btn = gr.Button(ENHANCE_LABEL, variant="secondary", interactive=False)
        with gr.Row():
            quality_dd = gr.Dropdown(
                label="Quality",
                choices=[(q.label, q.value) for q in Quality],
                value=Quality.HIGH.value,
            )
            aspect_dd = gr.Dropdown(
                label="Aspect ratio",
                choices=[(a.label, a.value) for a in AspectRatio],
                value=AspectRatio.SQUARE.value,
            )

        error_html = gr.HTML(value="")
        notification_html = gr.HTML(value="")
        loader_html = gr.HTML(value=_format_status(LOADER_TEXT, "info"), visible=False)
        empty_html = gr.HTML(
            value=f'<p style="text-align: center; color: #9ca3af; margin: 48px 0;">{EMPTY_TEXT}</p>'
        )
        gallery = gr.Gallery(
            label="Results",
            columns=4,
            allow_preview=False,
            visible=False,
            elem_id="imgstudio-gallery",
        )

        with gr.Column(visible=False, elem_id="imgstudio-viewer") as viewer_col:
            viewer_image = gr.Image(
                label="Viewer",
                type="filepath",
                interactive=False,
                elem_id="imgstudio-viewer-image",
            )
            viewer_caption = gr.Markdown("")
            with gr.Row():
                prev_btn = gr.Button("‹ Previous", elem_id="imgstudio-viewer-prev")
                next_btn = gr.Button("Next ›", elem_id="imgstudio-viewer-next")
                close_btn = gr.Button("Close", elem_id="imgstudio-viewer-close")
            with gr.Row():
                edit_btn = gr.Button("Edit image")
                share_btn = gr.Button("Share")
                download_btn = gr.DownloadButton("Download", interactive=False)
            share_report = gr.Textbox(value="", visible=False)

        with gr.Column(visible=False) as edit_col:
            edit_title = gr.Markdown("")
            edit_tb = gr.Textbox(
                label="Edit instruction",
                placeholder="e.g. add a hat",
                lines=2,
            )
            with gr.Row():
                apply_btn = gr.Button(APPLY_LABEL, variant="primary", interactive=False)
                cancel_btn = gr.Button("Cancel")

        outputs = [
            prompt_tb,
            enhance_btn,
            generate_btn,
            quality_dd,
            aspect_dd,
            error_html,
            notification_html,
            loader_html,
            gallery,
            empty_html,
            viewer_col,
            viewer_image,
            viewer_caption,
            download_btn,
            edit_col,
            edit_title,
            edit_tb,
            apply_btn,
            share_report,
        ]

        app.load(fn=lambda: _load_handler(config), inputs=None, outputs=[session, *outputs])
        app.load(fn=None, inputs=None, outputs=None, js=_JS_VIEWER_KEYS)

        prompt_tb.input(
            fn=_prompt_input_handler,
            inputs=[session, prompt_tb],
            outputs=[enhance_btn, generate_btn],
        )
        for dd in (quality_dd, aspect_dd):
            dd.input(
                fn=_options_input_handler,
                inputs=[session, quality_dd, aspect_dd],
                outputs=[error_html],
            )

        enhance_btn.click(
            fn=_enhance_click_handler,
            inputs=[session, prompt_tb],
            outputs=outputs,
            concurrency_id=_UI_CONCURRENCY_ID,
        )
        generate_btn.click(
            fn=_generate_click_handler,
            inputs=[session, prompt_tb, quality_dd, aspect_dd],
            outputs=outputs,
            concurrency_id=_UI_CONCURRENCY_ID,
        )
        gallery.select(fn=_gallery_select_handler, inputs=[session], outputs=outputs)

        prev_btn.click(fn=_make_key_handler(KEY_LEFT), inputs=[session], outputs=outputs)
        next_btn.click(fn=_make_key_handler(KEY_RIGHT), inputs=[session], outputs=outputs)
        close_btn.click(fn=_make_key_handler(KEY_ESCAPE), inputs=[session], outputs=outputs)

        edit_btn.click(fn=_open_edit_handler, inputs=[session], outputs=outputs)
        edit_tb.input(fn=_edit_input_handler, inputs=[session, edit_tb], outputs=[apply_btn])
        apply_btn.click(
            fn=_apply_edit_handler,
            inputs=[session, edit_tb],
            outputs=outputs,
        )
        cancel_btn.click(fn=_cancel_edit_handler, inputs=[session], outputs=outputs)
        share_btn.click(
            fn=_share_click_handler,
            inputs=[session, share_report],
            outputs=outputs,
            js=_JS_SHARE,
        )

        timer = gr.Timer(NOTIFICATION_REFRESH_SECONDS)
        timer.tick(fn=_tick_handler, inputs=[session], outputs=[notification_html])

        gr.HTML(f"""
<div style="text-align: center; margin: 40px 0 20px 0; padding-top: 20px; border-top: 1px solid #e5e7eb;">
    <p style="font-size: 0.9em; color: #9ca3af; margin: 0;">imgstudio v{__version__}</p>
</div>
""")

    return cast(gr.Blocks, app)
