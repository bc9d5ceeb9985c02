"""Factory functions for CLI commands.

Centralizes creation of the LLM transport and the engine from Settings.
Hides configuration details from command implementations.
"""

import typer
from rich.console import Console

from ..config import Settings
from ..engine import ExchangeController, RetryPolicy, Session
from ..errors import ConfigError
from ..llm import create_llm_provider
from ..transport import LLMTransport

# Default console for output
_console = Console()


def get_transport(settings: Settings, console: Console | None = None) -> LLMTransport:
    """Create the LLM transport described by settings.

    Args:
        settings: Loaded configuration
        console: Optional Rich console for output

    Returns:
        LLMTransport wrapping the configured provider

    Raises:
        typer.Exit: If the provider is not configured
    """
    con = console or _console
    try:
        provider = create_llm_provider(settings.provider, **settings.provider_config())
    except ConfigError as e:
        con.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e

    return LLMTransport(
        provider,
        system_prompt=settings.system_prompt,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )


def build_controller(settings: Settings, transport: LLMTransport) -> ExchangeController:
    """Create a fresh Session and the controller driving it."""
    session = Session(
        greeting=settings.greeting,
        cleared_greeting=settings.cleared_greeting,
    )
    return ExchangeController(
        session,
        transport,
        retry_policy=RetryPolicy.from_settings(settings),
        fallback_text=settings.fallback_text,
        max_history=settings.max_history,
    )
