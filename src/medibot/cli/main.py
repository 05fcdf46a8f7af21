"""
CLI interface for Medibot.

This module provides the command line application using Typer, with:
- ``serve`` to run the HTTP API under uvicorn
- ``init-db`` to create the database schema
- ``config-template`` to write a YAML configuration file
- ``register`` to add a user
- ``chat`` for an interactive terminal conversation
- ``history`` to list a user's conversations
"""

import asyncio
import functools
from pathlib import Path
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from medibot.clients import create_client
from medibot.clients.base import ProviderError
from medibot.config.settings import AppSettings, config_manager, load_config
from medibot.core.models import CreateUserParams
from medibot.database.base import DuplicateUserError, NotFoundError, StoreError
from medibot.database.store import ConversationStore
from medibot.orchestration.orchestrator import ConversationOrchestrator
from medibot.utils.logging_setup import setup_logging
from medibot.utils.validation import (
    ValidationError,
    parse_optional_identifier,
    validate_email,
)

# Initialize CLI components
app = typer.Typer(
    name="medibot",
    help="Medical chatbot backend powered by Gemini",
    no_args_is_help=True,
)
console = Console()

EXIT_COMMANDS = {"/exit", "exit", "quit", "/quit"}
NEW_COMMANDS = {"/new", "new"}


class CLIError(Exception):
    """User-friendly CLI error."""

    def __init__(self, message: str, exit_code: int = 1):
        self.message = message
        self.exit_code = exit_code
        super().__init__(message)


def handle_cli_error(func):
    """Decorator to handle CLI errors gracefully."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CLIError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(e.exit_code) from None
        except ValidationError as e:
            console.print(f"[red]Invalid input:[/red] {e.message}")
            raise typer.Exit(2) from None
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            raise typer.Exit(130) from None

    return wrapper


def _load_settings(config: Path | None) -> AppSettings:
    settings = load_config(config)
    setup_logging(settings.log_level)
    return settings


def build_orchestrator(settings: AppSettings) -> ConversationOrchestrator:
    """Build an orchestrator with its own store and AI client."""
    try:
        ai_client = create_client(settings)
    except ValueError as e:
        raise CLIError(f"{e}. Set GEMINI_API_KEY in the environment or .env") from e

    return ConversationOrchestrator(
        store=ConversationStore(settings.database.url),
        ai_client=ai_client,
        instruction_text=settings.gemini.generation.instruction_text,
    )


ConfigOption = typer.Option(
    None, "--config", "-c", help="YAML configuration file", exists=True, dir_okay=False
)


@app.command("serve")
@handle_cli_error
def serve_command(
    host: str | None = typer.Option(None, "--host", help="Bind host"),
    port: int | None = typer.Option(None, "--port", help="Bind port"),
    config: Path | None = ConfigOption,
):
    """Run the HTTP API."""
    import uvicorn

    from medibot.api.app import create_app

    settings = _load_settings(config)
    host = host or settings.server.host
    port = port or settings.server.port

    console.print(
        Panel.fit(
            f"[bold]{settings.app_name} API[/bold]\n"
            f"Listening on http://{host}:{port}\n"
            f"Model: {settings.gemini.model}",
            border_style="blue",
        )
    )
    uvicorn.run(create_app(settings=settings), host=host, port=port)


@app.command("init-db")
@handle_cli_error
def init_db_command(config: Path | None = ConfigOption):
    """Create database tables if they don't exist."""
    settings = _load_settings(config)
    store = ConversationStore(settings.database.url)
    asyncio.run(store.close())
    console.print(f"[green]Database ready:[/green] {settings.database.url}")


@app.command("config-template")
@handle_cli_error
def config_template_command(
    output: Path = typer.Argument(
        Path("medibot.yaml"), help="Where to write the YAML template"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write a YAML configuration file with the default settings."""
    if output.exists() and not force:
        raise CLIError(f"{output} already exists (use --force to overwrite)")

    try:
        config_manager.export_config_template(output)
    except OSError as e:
        raise CLIError(f"Could not write {output}: {e}") from e

    console.print(f"[green]Configuration template written:[/green] {output}")
    console.print(f"[dim]Use it with: medibot serve --config {output}[/dim]")


@app.command("register")
@handle_cli_error
def register_command(
    email: str = typer.Argument(..., help="E-mail address of the new user"),
    username: str = typer.Option("", "--username", "-u", help="Display name"),
    role: str = typer.Option("patient", "--role", help="Display role"),
    config: Path | None = ConfigOption,
):
    """Register a user."""
    settings = _load_settings(config)
    params = CreateUserParams(email=validate_email(email), username=username, role=role)

    async def _register():
        store = ConversationStore(settings.database.url)
        try:
            return await store.create_user(params)
        finally:
            await store.close()

    try:
        user = asyncio.run(_register())
    except DuplicateUserError as e:
        raise CLIError(e.message) from e
    except StoreError as e:
        raise CLIError(f"Could not register user: {e.message}") from e

    console.print(f"[green]Registered[/green] {user.email} ([dim]{user.id}[/dim])")


async def run_chat_session(
    orchestrator: ConversationOrchestrator,
    email: str,
    conversation_id: UUID | None = None,
) -> None:
    """Interactive chat loop. Runs on one event loop so connections stay valid."""
    try:
        try:
            user = await orchestrator.store.get_user_by_email(email)
        except NotFoundError:
            raise CLIError(
                f"No user registered with {email}. Run: medibot register {email}"
            ) from None

        console.print("Commands: /new (new conversation), /exit")
        console.print("-" * 50)

        while True:
            try:
                user_message = console.input("\n[bold]You:[/bold] ").strip()
            except EOFError:
                console.print("\nBye!")
                return

            if not user_message:
                continue

            command = user_message.lower()
            if command in EXIT_COMMANDS:
                console.print("Bye!")
                return
            if command in NEW_COMMANDS:
                conversation_id = None
                console.print("[dim]Starting a new conversation[/dim]")
                continue

            try:
                with console.status("[bold blue]Thinking..."):
                    result = await orchestrator.converse(
                        user_id=user.id,
                        conversation_id=conversation_id,
                        sender="user",
                        content=user_message,
                    )
            except ProviderError as e:
                console.print(f"[red]AI unavailable:[/red] {e.message}")
                continue
            except StoreError as e:
                console.print(f"[red]Storage error, try again:[/red] {e.message}")
                continue

            if result.created_conversation:
                console.print(f"[dim]conversation: {result.conversation_id}[/dim]")
            conversation_id = result.conversation_id
            console.print(f"\n[bold green]Medibot:[/bold green] {result.ai_response}")
    finally:
        await orchestrator.ai_client.aclose()
        await orchestrator.store.close()


@app.command("chat")
@handle_cli_error
def chat_command(
    email: str = typer.Option(..., "--email", "-e", help="Registered user's e-mail"),
    conversation: str | None = typer.Option(
        None, "--conversation", help="Continue an existing conversation"
    ),
    config: Path | None = ConfigOption,
):
    """Chat with Medibot in the terminal."""
    settings = _load_settings(config)
    conversation_id = parse_optional_identifier(conversation, "conversation ID")
    orchestrator = build_orchestrator(settings)

    console.print(
        Panel.fit(
            f"[bold]{settings.app_name}[/bold]\nModel: {settings.gemini.model}",
            border_style="blue",
        )
    )
    asyncio.run(run_chat_session(orchestrator, email, conversation_id))


@app.command("history")
@handle_cli_error
def history_command(
    email: str = typer.Option(..., "--email", "-e", help="Registered user's e-mail"),
    config: Path | None = ConfigOption,
):
    """List a user's conversations."""
    from medibot.orchestration.listing import group_conversation_rows

    settings = _load_settings(config)

    async def _history():
        store = ConversationStore(settings.database.url)
        try:
            user = await store.get_user_by_email(email)
            rows = await store.list_full_conversations_by_user_id(user.id)
            return group_conversation_rows(rows)
        finally:
            await store.close()

    try:
        conversations = asyncio.run(_history())
    except NotFoundError:
        raise CLIError(f"No user registered with {email}") from None
    except StoreError as e:
        raise CLIError(f"Could not load conversations: {e.message}") from e

    if not conversations:
        console.print("[dim]No conversations yet[/dim]")
        return

    table = Table(title=f"Conversations for {email}")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Created")

    for conv in conversations:
        title = conv.title if len(conv.title) <= 60 else conv.title[:57] + "..."
        created = conv.created_at.strftime("%Y-%m-%d %H:%M") if conv.created_at else ""
        table.add_row(conv.id, title, str(len(conv.messages)), created)

    console.print(table)


if __name__ == "__main__":
    app()
