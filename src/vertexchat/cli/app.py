"""Main CLI application using Typer."""
import asyncio
import signal
from contextlib import nullcontext
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from ..chat import ConversationController, ConversationSnapshot, Participant
from ..errors import ConfigurationError
from .log_setup import configure_logging
from .providers import get_config, require_client

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="vertexchat",
    help="Chat with Gemini and OpenAI-compatible models from the terminal",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

NEW_CHAT_COMMANDS = ("/new", "/reset")
EXIT_COMMANDS = ("/quit", "/exit", "exit", "quit", "q")


class ReplyPrinter:
    """Observer that prints the model's reply as it grows."""

    def __init__(self, console: Console):
        self._console = console
        self._message_id: str | None = None
        self._printed = 0

    def __call__(self, snapshot: ConversationSnapshot) -> None:
        if not snapshot.messages:
            return
        last = snapshot.messages[-1]
        if last.participant != Participant.SYSTEM or last.pending:
            return

        if last.id != self._message_id:
            self._message_id = last.id
            self._printed = 0
            self._console.print("[bold magenta]Model:[/bold magenta] ", end="")

        new_text = last.text[self._printed:]
        if new_text:
            self._console.print(new_text, end="", markup=False, highlight=False)
            self._printed = len(last.text)

    def finish(self) -> None:
        """End the current reply line."""
        if self._message_id is not None:
            self._console.print()
        self._message_id = None
        self._printed = 0


@app.command()
def chat(
    no_stream: bool = typer.Option(
        False,
        "--no-stream",
        help="Wait for complete replies instead of streaming them"
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="YAML file with model_name and chat_preamble"
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR)"
    ),
):
    """Start an interactive chat.

    Type /new to start over, /quit to leave. Ctrl-C stops a reply in progress.
    """
    configure_logging(log_level)

    async def _send(controller: ConversationController, printer: ReplyPrinter, text: str):
        loop = asyncio.get_running_loop()
        controller.send_message(text, streaming=not no_stream)
        loop.add_signal_handler(signal.SIGINT, controller.stop)
        try:
            with console.status("[dim]Waiting for the model...[/dim]") if no_stream else nullcontext():
                await controller.wait()
        finally:
            loop.remove_signal_handler(signal.SIGINT)
        printer.finish()

        if controller.error is not None:
            console.print(f"[red]Error: {controller.error}[/red]")
            console.print("[dim]Send the message again to retry.[/dim]")

    async def _chat():
        try:
            config = get_config(config_path)
        except ConfigurationError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        client = require_client(console)

        async with ConversationController(client, config) as controller:
            printer = ReplyPrinter(console)
            controller.subscribe(printer)

            console.print(f"[bold cyan]vertexchat[/bold cyan] [dim]({controller.session.model})[/dim]")
            console.print("[dim]Type /new to start a new chat, /quit to leave\n[/dim]")

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                text = user_input.strip()
                if not text:
                    continue
                if text.lower() in EXIT_COMMANDS:
                    console.print("[dim]Goodbye![/dim]")
                    break
                if text.lower() in NEW_CHAT_COMMANDS:
                    controller.start_new_chat()
                    console.print(f"[dim]New chat started ({controller.session.model})[/dim]\n")
                    continue

                await _send(controller, printer, text)

    asyncio.run(_chat())


@app.command(name="config")
def show_config(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="YAML file with model_name and chat_preamble"
    ),
):
    """Show the effective model name and chat preamble."""
    try:
        config = get_config(config_path)
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="Chat Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("model_name", config.current_model_identifier())
    table.add_row("chat_preamble", config.current_preamble() or "(none)")
    console.print(table)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
