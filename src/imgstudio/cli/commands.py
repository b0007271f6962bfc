"""
Click command definitions for the imgstudio CLI.

Each command drives a headless session through the same GenerationController
the web UI uses, then reports the session outcome.
"""

import asyncio
import os
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import click

from imgstudio import __version__
from imgstudio.cli import progress
from imgstudio.cli.handlers import run_with_error_handling
from imgstudio.cli.utils import default_edit_output_path, default_output_dir
from imgstudio.core.config import Config
from imgstudio.core.controller import GenerationController
from imgstudio.core.gateways import GATEWAY_OPENROUTER, KNOWN_GATEWAYS, create_gateway
from imgstudio.core.images import GeneratedImage
from imgstudio.core.options import DEFAULT_ASPECT_RATIO, DEFAULT_QUALITY, AspectRatio, Quality
from imgstudio.logging_config import configure_logging, get_verbosity_from_env
from imgstudio.utils.exceptions import (
    EditError,
    EnhanceError,
    GatewayError,
    GenerateError,
    ValidationError,
)


@click.group(
    help=f"""AI image studio: enhance a description, generate a set of images, edit them.

\b
Version: {__version__}
"""
)
@click.version_option(version=__version__, package_name="imgstudio")
@click.pass_context
def cli(ctx: click.Context) -> None:
    ctx.color = True


def _gateway_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by the commands that call the generation service."""
    fn = click.option(
        "--debug-api",
        is_flag=True,
        help="Log raw API request payload and response (image data truncated) for debugging.",
    )(fn)
    fn = click.option(
        "--verbose",
        "-v",
        "verbose_count",
        count=True,
        help="Increase verbosity: -v also show prompts, -vv show API detail.",
    )(fn)
    fn = click.option(
        "--quiet",
        "-q",
        is_flag=True,
        help="Minimize progress messages; only print results or errors.",
    )(fn)
    fn = click.option(
        "--api-key",
        help="API key for the selected gateway (overrides the environment).",
    )(fn)
    fn = click.option(
        "--gateway",
        type=click.Choice(list(KNOWN_GATEWAYS), case_sensitive=False),
        default=None,
        help="Generation service (default from config: IMGSTUDIO_GATEWAY or gemini).",
    )(fn)
    return fn


def _apply_verbosity(verbose_count: int, quiet: bool) -> None:
    # CLI flags override IMGSTUDIO_VERBOSITY
    verbose_level = min(verbose_count, 2) if verbose_count > 0 else get_verbosity_from_env()
    configure_logging(verbose_level=verbose_level, quiet=quiet)


def _load_config(gateway: str | None, api_key: str | None, debug_api: bool) -> Config:
    config = Config.from_env()
    if gateway is not None:
        config.set_gateway(gateway.lower())
    if api_key is not None:
        config.set_api_key(api_key)
    if debug_api:
        config.debug_api = True
    config.validate()
    return config


def _headless_controller(config: Config) -> GenerationController:
    return GenerationController(create_gateway(config), config)


def _model_for(config: Config, operation: str) -> str:
    if config.default_gateway == GATEWAY_OPENROUTER:
        if operation == "enhance":
            return config.openrouter_text_model
        return config.openrouter_image_model
    return {
        "enhance": config.enhance_model,
        "generate": config.image_model,
        "edit": config.edit_model,
    }[operation]


def _require_text(value: str, field: str, message: str) -> None:
    if not value or not value.strip():
        raise ValidationError(message, field=field)


def _raise_on_session_error(controller: GenerationController, error_cls: type[GatewayError]) -> None:
    """The controller folds failures into the session; surface them as exit codes."""
    message = controller.state.error
    if message:
        raise error_cls(message)


async def _run_step(
    operation: Callable[[], Awaitable[None]],
    quiet: bool,
    description: str,
    model: str,
    color: str = "cyan",
) -> None:
    if quiet:
        await operation()
        return
    with progress.operation_progress(description, model=model, color=color):
        await operation()


async def _enhance_session(controller: GenerationController, config: Config, quiet: bool) -> str:
    await _run_step(controller.enhance, quiet, "Enhancing prompt", _model_for(config, "enhance"))
    _raise_on_session_error(controller, EnhanceError)
    return controller.state.prompt


@cli.command()
@click.option("--prompt", "-p", required=True, help="Description to enhance.")
@_gateway_options
def enhance(
    prompt: str,
    gateway: str | None,
    api_key: str | None,
    quiet: bool,
    verbose_count: int,
    debug_api: bool,
) -> None:
    """Rewrite a short description into a richer one and print it."""
    _apply_verbosity(verbose_count, quiet)

    def do_enhance() -> None:
        config = _load_config(gateway, api_key, debug_api)
        _require_text(prompt, "prompt", "Prompt cannot be empty.")
        controller = _headless_controller(config)
        controller.set_prompt(prompt)
        enhanced = asyncio.run(_enhance_session(controller, config, quiet))
        click.echo(enhanced)

    run_with_error_handling(do_enhance, quiet=quiet)


@cli.command()
@click.option("--prompt", "-p", required=True, help="Description of the images to generate.")
@click.option(
    "--aspect-ratio",
    "-a",
    type=click.Choice([a.name.lower() for a in AspectRatio] + [a.value for a in AspectRatio]),
    default=DEFAULT_ASPECT_RATIO.name.lower(),
    show_default=True,
    help="Aspect ratio of the images.",
)
@click.option(
    "--quality",
    type=click.Choice([q.value for q in Quality], case_sensitive=False),
    default=DEFAULT_QUALITY.value,
    show_default=True,
    help="Quality tier (changes the prompt prefix sent to the model).",
)
@click.option("--enhance", "enhance_first", is_flag=True, help="Enhance the prompt before generating.")
@click.option(
    "--out-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the images (default: imgstudio_<timestamp> in the current directory).",
)
@_gateway_options
def generate(
    prompt: str,
    aspect_ratio: str,
    quality: str,
    enhance_first: bool,
    out_dir: Path | None,
    gateway: str | None,
    api_key: str | None,
    quiet: bool,
    verbose_count: int,
    debug_api: bool,
) -> None:
    """Generate a set of images from a description."""
    _apply_verbosity(verbose_count, quiet)

    def do_generate() -> None:
        config = _load_config(gateway, api_key, debug_api)
        _require_text(prompt, "prompt", "Prompt cannot be empty.")
        controller = _headless_controller(config)
        controller.set_prompt(prompt)
        controller.set_options(aspect_ratio=aspect_ratio, quality=quality)

        model = _model_for(config, "generate")
        start = time.time()

        # One event loop per command: the service client is bound to it
        async def flow() -> None:
            if enhance_first:
                await _enhance_session(controller, config, quiet)
            await _run_step(controller.generate, quiet, "Generating images", model, color="green")

        asyncio.run(flow())
        _raise_on_session_error(controller, GenerateError)
        state = controller.state
        if not state.images:
            raise GenerateError("The service returned no images.")

        target = out_dir or default_output_dir()
        paths = [controller.export_image(i, target) for i in range(len(state.images))]

        if not quiet:
            progress.print_generation_result(
                paths=paths,
                generation_time=time.time() - start,
                model_used=model,
                prompt_used=state.prompt,
                aspect_ratio=state.aspect_ratio.value,
                quality=state.quality.value,
                original_prompt=prompt if enhance_first else None,
            )
        # Paths on stdout for scriptability
        for path in paths:
            click.echo(str(path))

    run_with_error_handling(do_generate, quiet=quiet)


@cli.command()
@click.option(
    "--image",
    "-i",
    "image_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Image to edit.",
)
@click.option("--instruction", "-t", required=True, help='Edit instruction, e.g. "add a hat".')
@click.option("--out", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output file path.")
@_gateway_options
def edit(
    image_path: Path,
    instruction: str,
    out: Path | None,
    gateway: str | None,
    api_key: str | None,
    quiet: bool,
    verbose_count: int,
    debug_api: bool,
) -> None:
    """Apply an edit instruction to an image."""
    _apply_verbosity(verbose_count, quiet)

    def do_edit() -> None:
        config = _load_config(gateway, api_key, debug_api)
        _require_text(instruction, "instruction", "Edit instruction cannot be empty.")
        source = GeneratedImage.from_file(image_path)

        controller = _headless_controller(config)
        controller.store.replace_image_set([source])
        controller.open_edit(0)
        controller.set_edit_text(instruction)

        model = _model_for(config, "edit")
        start = time.time()
        asyncio.run(_run_step(lambda: controller.edit_submit(0), quiet, "Editing image", model))
        _raise_on_session_error(controller, EditError)

        edited = controller.store.image_at(0)
        out_path = out or default_edit_output_path(image_path, edited.extension)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(edited.data)

        if not quiet:
            progress.print_edit_result(
                output_path=out_path,
                edit_time=time.time() - start,
                model_used=model,
                instruction=instruction,
            )
        click.echo(str(out_path))

    run_with_error_handling(do_edit, quiet=quiet)


@cli.command()
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    envvar="IMGSTUDIO_UI_PORT",
    help="Port for the server (default: 7860 or IMGSTUDIO_UI_PORT).",
)
@click.option(
    "--host",
    "host",
    type=str,
    default=None,
    envvar="IMGSTUDIO_UI_HOST",
    help="Host to bind (default: 127.0.0.1 or IMGSTUDIO_UI_HOST). Use 0.0.0.0 for LAN.",
)
@click.option(
    "--debug-api",
    is_flag=True,
    help="Log raw API request/response (image data truncated) for UI sessions.",
)
def ui(port: int | None, host: str | None, debug_api: bool) -> None:
    """Launch the web UI and the book-search proxy."""
    from imgstudio.server import launch

    # Apply logging verbosity from env so UI logs respect IMGSTUDIO_VERBOSITY
    configure_logging(verbose_level=get_verbosity_from_env(), quiet=False)
    if debug_api:
        os.environ["IMGSTUDIO_DEBUG_API"] = "1"
    run_with_error_handling(lambda: launch(server_name=host, server_port=port))


def main() -> None:
    """Entry point for the imgstudio console script."""
    cli()


__all__ = ["cli", "main", "enhance", "generate", "edit", "ui"]
