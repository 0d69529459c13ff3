import asyncio
import json

import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from zyra.core.config import settings
from zyra.core.exceptions import UpstreamServiceException
from zyra.core.prompts import describe_chat_failure
from zyra.db.database import Database
from zyra.db.repositories.canvas_repository import CanvasRepository
from zyra.models.chat import ChatMessage
from zyra.services.ai_service import AIService, build_chat_prompt
from zyra.services.chat_service import ChatService
from zyra.services.context_service import upstream_source_ids

cli_app = typer.Typer()
console = Console()


@cli_app.command()
def init_db():
    """Creates all tables in the configured database."""
    async def main():
        await Database.create_all()
        await Database.close()

    asyncio.run(main())
    console.print(f"[bold green]Tables created[/bold green] in {settings.DATABASE_URL}")


@cli_app.command()
def show_context(
    canvas_id: str = typer.Option(..., "--canvas-id", "-c", help="The canvas holding the chat node."),
    node_id: str = typer.Option(..., "--node-id", "-n", help="The chat node to assemble context for."),
):
    """
    Prints the context a chat node would send with its next message.
    """
    async def main():
        try:
            async with Database.get_sessionmaker()() as session:
                canvas = await CanvasRepository(session).get_canvas(canvas_id)
                if canvas is None:
                    console.print(f"[bold red]Error:[/bold red] Canvas {canvas_id} not found.")
                    raise typer.Exit(code=1)

                sources = upstream_source_ids(node_id, canvas.edges or [])
                console.print(f"[cyan]{len(sources)} block(s) feed into {node_id}:[/cyan] {', '.join(sources) or '-'}")

                context = await ChatService(session, AIService.from_settings()).build_block_context(canvas, node_id)
        finally:
            await Database.close()

        if not context:
            console.print("[yellow]No context would be sent.[/yellow]")
            return
        console.print(Panel(context, title="CONTEXT", border_style="green"))

    asyncio.run(main())


@cli_app.command()
def ask(
    canvas_id: str = typer.Option(..., "--canvas-id", "-c", help="The canvas holding the chat node."),
    node_id: str = typer.Option(..., "--node-id", "-n", help="The chat node to talk to."),
    message: str = typer.Option(..., "--message", "-m", help="The user message."),
    persist: bool = typer.Option(False, "--persist", help="Store both messages on the canvas."),
):
    """
    Runs one chat turn for a node against the AI service and prints the reply.
    """
    if not settings.GEMINI_API_KEY:
        console.print("[bold red]Error:[/bold red] GEMINI_API_KEY is not set in your .env file.")
        raise typer.Exit(code=1)

    async def main():
        ai_service = AIService.from_settings()
        try:
            async with Database.get_sessionmaker()() as session:
                repo = CanvasRepository(session)
                canvas = await repo.get_canvas(canvas_id)
                if canvas is None:
                    console.print(f"[bold red]Error:[/bold red] Canvas {canvas_id} not found.")
                    raise typer.Exit(code=1)

                chat_service = ChatService(session, ai_service)
                if persist:
                    reply = await chat_service.reply_for_block(canvas_id, node_id, message, canvas.user_id)
                    console.print(f"[cyan]Stored message {reply.id}[/cyan]")
                    console.print(Panel(reply.content, title="ASSISTANT", border_style="green"))
                    return

                context = await chat_service.build_block_context(canvas, node_id)
                history = await repo.list_messages(canvas_id, node_id)
                conversation = [ChatMessage(role=m.role, content=m.content) for m in history]
                conversation.append(ChatMessage(role="user", content=message))

                console.print("[cyan]Prompt sent to the model:[/cyan]")
                console.print(Syntax(build_chat_prompt(conversation, context), "markdown", theme="solarized-dark"))

                try:
                    reply = await ai_service.generate_reply(conversation, context)
                except UpstreamServiceException as exc:
                    console.print(f"[bold red]{describe_chat_failure(exc.status_code or 500)}[/bold red] ({exc.message})")
                    raise typer.Exit(code=1)

                console.print(Panel(reply, title="ASSISTANT", border_style="green"))
                console.print(Syntax(json.dumps({"messages": len(conversation), "contextChars": len(context)}), "json"))
        finally:
            await Database.close()

    asyncio.run(main())


if __name__ == "__main__":
    cli_app()
