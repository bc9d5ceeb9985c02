"""Main CLI application using Typer."""
import asyncio

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from ..config import API_KEY_VARIABLES, Settings, load_settings
from ..engine import ExchangeController, Message, Sender
from ..errors import ConfigError
from ..llm import SUPPORTED_PROVIDERS
from ..log import configure_logging
from .providers import build_controller, get_transport

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="nexuschat",
    help="Interactive chat client for LLM services",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

EXIT_COMMANDS = ("exit", "quit", "q")
RESET_COMMANDS = ("/reset", "/new", "/clear")

ProviderOption = typer.Option(
    None, "--provider", "-p", help="LLM provider: openrouter, openai, deepseek or gemini"
)
ModelOption = typer.Option(None, "--model", "-m", help="Model name (provider default if omitted)")
AttemptsOption = typer.Option(
    None, "--max-attempts", "-a", min=1, help="Attempts per message before giving up"
)
DelayOption = typer.Option(None, "--retry-delay", min=0.0, help="Seconds between attempts")
LogLevelOption = typer.Option(
    None, "--log-level", "-l", help="Log level: debug, info, warning or error"
)


def _load(**overrides) -> Settings:
    try:
        return load_settings(**overrides)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e


def render_message(message: Message) -> None:
    """Print one resolved transcript message."""
    timestamp = message.timestamp.strftime("%H:%M")
    if message.sender is Sender.USER:
        console.print(f"[bold yellow]You[/bold yellow] [dim]{timestamp}[/dim]")
        console.print(message.text, markup=False, highlight=False)
        return

    header = f"[bold green]Assistant[/bold green] [dim]{timestamp}[/dim]"
    if message.is_failed:
        header += " [bold red]Failed to send[/bold red]"
    console.print(header)
    console.print(Markdown(message.text))
    console.print()


async def _converse(controller: ExchangeController) -> None:
    """Read-eval-print loop over the engine."""
    for message in controller.session.transcript.snapshot():
        render_message(message)

    while True:
        try:
            user_input = console.input("[bold yellow]You:[/bold yellow] ")
        except (KeyboardInterrupt, EOFError):
            console.print("\n[dim]Goodbye![/dim]")
            break

        command = user_input.strip().lower()
        if not command:
            continue
        if command in EXIT_COMMANDS:
            console.print("[dim]Goodbye![/dim]")
            break
        if command in RESET_COMMANDS:
            controller.reset()
            console.clear()
            render_message(controller.session.transcript.snapshot()[0])
            continue

        task = controller.send(user_input)
        if task is None:
            continue
        with console.status("[cyan]Thinking...[/cyan]", spinner="dots"):
            reply = await task
        if reply is not None:
            render_message(reply)


@app.command()
def chat(
    provider: str | None = ProviderOption,
    model: str | None = ModelOption,
    max_attempts: int | None = AttemptsOption,
    retry_delay: float | None = DelayOption,
    log_level: str | None = LogLevelOption,
):
    """Interactive chat in the terminal."""
    settings = _load(
        provider=provider,
        model=model,
        max_attempts=max_attempts,
        retry_delay=retry_delay,
        log_level=log_level,
    )
    configure_logging(settings.log_level, console=Console(stderr=True))

    async def _chat():
        transport = get_transport(settings, console)
        controller = build_controller(settings, transport)

        console.print(f"[bold cyan]Nexus AI[/bold cyan] [dim]({settings.provider} | {transport.model})[/dim]")
        console.print(
            f"[dim]Type {', '.join(EXIT_COMMANDS)} to leave, "
            f"{RESET_COMMANDS[0]} to start a new chat[/dim]\n"
        )
        try:
            await _converse(controller)
        finally:
            await controller.close()
            await transport.close()

    asyncio.run(_chat())


@app.command(name="tui")
def tui_command(
    provider: str | None = ProviderOption,
    model: str | None = ModelOption,
    max_attempts: int | None = AttemptsOption,
    retry_delay: float | None = DelayOption,
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Show log panel with level: debug (all), info, warning, or error"
    ),
):
    """Launch the interactive TUI chat interface."""
    settings = _load(
        provider=provider,
        model=model,
        max_attempts=max_attempts,
        retry_delay=retry_delay,
        log_level=log_level,
    )

    async def _tui():
        from ..ui import run_textual_tui

        transport = get_transport(settings, console)
        controller = build_controller(settings, transport)
        try:
            await run_textual_tui(
                controller,
                model_name=f"{settings.provider} | {transport.model}",
                log_level=settings.log_level,
                show_log=log_level is not None,
            )
        finally:
            await controller.close()
            await transport.close()
            console.print("\n[dim]Goodbye![/dim]")

    try:
        asyncio.run(_tui())
    except KeyboardInterrupt:
        pass


@app.command()
def providers():
    """List supported providers and their defaults."""
    table = Table(title="Providers")
    table.add_column("Name", style="cyan")
    table.add_column("Default model")
    table.add_column("Base URL", style="dim")
    table.add_column("API key variable", style="yellow")

    for name, (default_model, base_url) in SUPPORTED_PROVIDERS.items():
        table.add_row(name, default_model, base_url or "(SDK default)", API_KEY_VARIABLES[name])

    console.print(table)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
