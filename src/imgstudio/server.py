"""
HTTP server: the book-search proxy, a health route, and the web UI.

The FastAPI app serves /books and /health and mounts the Gradio UI at /.
"""

import argparse
import os

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from imgstudio import __version__
from imgstudio.core.config import Config
from imgstudio.logging_config import get_logger
from imgstudio.proxy import router as books_router
from imgstudio.utils.exceptions import ConfigurationError

logger = get_logger(__name__)

# Default server address; overridable via IMGSTUDIO_UI_HOST / IMGSTUDIO_UI_PORT
DEFAULT_UI_PORT = 7860
DEFAULT_UI_HOST = "127.0.0.1"

HEALTH_TEXT = "Google Books proxy is running"


def create_app(config: Config | None = None, with_ui: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Configuration for the proxy and UI sessions (default: from the environment).
        with_ui: Mount the Gradio UI at / (tests of the proxy leave it out).

    Raises:
        ConfigurationError: If with_ui is set and the gateway configuration is invalid.
    """
    config = config or Config.from_env()
    if with_ui:
        # Every UI session builds a gateway from this config
        config.validate()
    app = FastAPI(title="imgstudio", version=__version__)
    app.state.config = config
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(books_router)

    @app.get("/health", response_class=PlainTextResponse)
    def health() -> str:
        return HEALTH_TEXT

    if with_ui:
        import gradio as gr

        from imgstudio.ui.gradio_app import build_blocks

        app = gr.mount_gradio_app(app, build_blocks(config), path="/")
    return app


def _resolve_address(host: str | None, port: int | None) -> tuple[str, int]:
    host = host or os.getenv("IMGSTUDIO_UI_HOST", DEFAULT_UI_HOST)
    if port is None:
        try:
            port = int(os.getenv("IMGSTUDIO_UI_PORT", str(DEFAULT_UI_PORT)))
        except ValueError:
            port = DEFAULT_UI_PORT
    return host, port


def launch(server_name: str | None = None, server_port: int | None = None) -> None:
    """
    Build the app and serve it with uvicorn.

    Args:
        server_name: Host to bind (default: IMGSTUDIO_UI_HOST or 127.0.0.1).
        server_port: Port (default: IMGSTUDIO_UI_PORT or 7860).
    """
    host, port = _resolve_address(server_name, server_port)
    print(f"imgstudio is starting (v{__version__}) on http://{host}:{port}...")
    uvicorn.run(create_app(), host=host, port=port)


def main() -> None:
    """Entry point for the imgstudio-ui console script. Parses --port and --host."""
    parser = argparse.ArgumentParser(
        description="Launch the imgstudio web UI and book-search proxy.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        metavar="PORT",
        help=f"Port to bind (default: IMGSTUDIO_UI_PORT or {DEFAULT_UI_PORT}).",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        metavar="HOST",
        help=f"Host to bind (default: IMGSTUDIO_UI_HOST or {DEFAULT_UI_HOST}). Use 0.0.0.0 for LAN.",
    )
    args = parser.parse_args()
    try:
        launch(server_name=args.host, server_port=args.port)
    except ConfigurationError as e:
        parser.exit(2, f"Error: {e}\n")
