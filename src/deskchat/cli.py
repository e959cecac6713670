"""deskchat CLI - exercise the LLM gateway from a terminal."""

import logging
from typing import Annotated, Never

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import settings
from .llm import LLMError, LLMGateway, ProviderConfig
from .utils.async_bridge import run_async_in_sync
from .utils.console import console
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)

CLI_CONFIG_ID = "cli"

app = typer.Typer(
    name="deskchat",
    help="Multi-provider LLM gateway - chat, test connections, discover models",
    no_args_is_help=True,
)

ProviderOption = Annotated[
    str,
    typer.Option("--provider", "-p", help="openai, claude, gemini or any custom name"),
]
ApiKeyOption = Annotated[
    str,
    typer.Option("--api-key", "-k", envvar="DESKCHAT_API_KEY", help="Provider API key"),
]
BaseUrlOption = Annotated[
    str,
    typer.Option("--base-url", "-u", help="Override the provider's default endpoint"),
]


def _build_config(provider: str, model: str, api_key: str, base_url: str) -> ProviderConfig:
    """Build a ProviderConfig from CLI options, exit on validation error."""
    try:
        return ProviderConfig(
            id=CLI_CONFIG_ID,
            name=CLI_CONFIG_ID,
            provider=provider,
            model=model,
            api_key=api_key,
            base_url=base_url,
        )
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        console.print(f"[red]Validation error ({field}): {error['msg']}[/red]")
        raise typer.Exit(code=1)


def _fail(message: str) -> Never:
    console.print(f"[red]✗ {message}[/red]")
    raise typer.Exit(code=1)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]deskchat[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show log output on the console"),
    ] = False,
) -> None:
    """deskchat - one interface, many LLM providers."""
    setup_logging(
        level=settings.log_level,
        console_level="DEBUG" if verbose else "WARNING",
    )


@app.command("models")
def list_models(
    provider: ProviderOption,
    api_key: ApiKeyOption = "",
    base_url: BaseUrlOption = "",
) -> None:
    """List the models available for a provider."""
    # Discovery does not depend on the model, any placeholder passes validation
    config = _build_config(provider, "default", api_key, base_url)
    gateway = LLMGateway()

    try:
        models = run_async_in_sync(gateway.list_available_models(config))
    except LLMError as e:
        _fail(str(e))

    table = Table(title=f"{config.provider} models ({config.kind.value})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Model", style="cyan")
    for index, model in enumerate(models, start=1):
        table.add_row(str(index), model)
    console.print(table)


@app.command("chat")
def chat(
    message: Annotated[str, typer.Argument(help="Message to send")],
    provider: ProviderOption,
    model: Annotated[str, typer.Option("--model", "-m", help="Model identifier")],
    api_key: ApiKeyOption = "",
    base_url: BaseUrlOption = "",
    system: Annotated[
        str | None,
        typer.Option("--system", "-s", help="Optional system prompt"),
    ] = None,
    stream: Annotated[
        bool,
        typer.Option("--stream", help="Print the response as it arrives"),
    ] = False,
) -> None:
    """Send one message and print the response."""
    config = _build_config(provider, model, api_key, base_url)
    gateway = LLMGateway()
    gateway.set_config(config.id, config)

    def on_chunk(text: str) -> None:
        console.print(text, end="", markup=False, highlight=False)

    try:
        if stream:
            run_async_in_sync(gateway.stream_message(message, config.id, system, on_chunk))
            console.print()
        else:
            reply = run_async_in_sync(gateway.send(message, config.id, system))
            console.print(reply, markup=False, highlight=False)
    except Exception as e:
        logger.debug("Chat request failed", exc_info=True)
        _fail(f"Request failed: {e}")


@app.command("test")
def test_connection(
    provider: ProviderOption,
    model: Annotated[str, typer.Option("--model", "-m", help="Model identifier")],
    api_key: ApiKeyOption = "",
    base_url: BaseUrlOption = "",
) -> None:
    """Test the connection to a model with a short probe message."""
    config = _build_config(provider, model, api_key, base_url)
    gateway = LLMGateway()
    gateway.set_config(config.id, config)

    result = run_async_in_sync(gateway.test_model(config.id))
    if not result.success:
        _fail(f"{config.provider}/{config.model}: {result.error}")

    console.print(
        Panel(
            f"[bold]{config.provider}/{config.model}[/bold] responded in "
            f"{result.response_time_ms:.0f}ms",
            style="green",
        )
    )
