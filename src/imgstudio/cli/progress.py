"""
Rich progress displays for CLI operations.

All output goes to stderr to preserve stdout for machine-readable output
(result paths, enhanced prompt).
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

# Console for stderr output (preserves stdout for machine output)
console = Console(stderr=True)


def _model_display(model: str) -> str:
    return model if len(model) <= 40 else f"{model[:37]}..."


@contextmanager
def operation_progress(description: str, model: str | None = None, color: str = "cyan") -> Iterator[None]:
    """
    Display a spinner while an operation is in flight.

    Args:
        description: What is happening (e.g. "Generating images")
        model: The model being called, shown dimmed
        color: Rich color for the description

    Yields:
        None while the operation is in progress
    """
    progress = Progress(
        SpinnerColumn(spinner_name="dots"),
        TextColumn(f"[{color}]{{task.description}}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,  # Disappears when done
    )
    desc_parts = [description]
    if model:
        desc_parts.append(f"[dim]({_model_display(model)})[/dim]")

    with progress:
        task = progress.add_task(" ".join(desc_parts), total=None)
        yield
        progress.update(task, completed=True)


def print_generation_result(
    paths: list[Path],
    generation_time: float,
    model_used: str,
    prompt_used: str,
    aspect_ratio: str,
    quality: str,
    original_prompt: str | None = None,
) -> None:
    """Print a panel describing a generated image set."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right", vertical="top")
    table.add_column(style="white")

    table.add_row("Saved", "\n".join(f"[bold green]{p}[/bold green]" for p in paths))
    table.add_row("Model", model_used)
    table.add_row("Time", f"{generation_time:.1f}s")
    table.add_row("Options", f"{aspect_ratio} • {quality} quality")
    if original_prompt and original_prompt != prompt_used:
        table.add_row("Input", f"[dim]{original_prompt}[/dim]")
        table.add_row("Enhanced", f"[dim]{prompt_used}[/dim]")
    else:
        table.add_row("Prompt", f"[dim]{prompt_used}[/dim]")

    console.print()
    console.print(
        Panel(
            table,
            title=f"[bold green]✓ {len(paths)} Image(s) Generated[/bold green]",
            border_style="green",
            padding=(1, 2),
        )
    )


def print_edit_result(output_path: Path, edit_time: float, model_used: str, instruction: str) -> None:
    """Print a panel describing an edited image."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right", vertical="top")
    table.add_column(style="white")
    table.add_row("Saved to", f"[bold green]{output_path}[/bold green]")
    table.add_row("Model", model_used)
    table.add_row("Time", f"{edit_time:.1f}s")
    table.add_row("Edit", f"[dim]{instruction}[/dim]")

    console.print()
    console.print(
        Panel(
            table,
            title="[bold green]✓ Image Edited[/bold green]",
            border_style="green",
            padding=(1, 2),
        )
    )


def print_warning(message: str) -> None:
    """Print a warning message in yellow."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_error(message: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]✗[/red] {message}")
