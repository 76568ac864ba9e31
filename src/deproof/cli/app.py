"""Main CLI application.

Click commands for deproof: serve (MCP weather server with DeProof
validation) and chat (LLM client whose tool calls are signed).
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

import click

from deproof import __version__
from deproof.config.loader import load_config
from deproof.core.errors import ConfigError, DeProofError

if TYPE_CHECKING:
    from deproof.client.chat import ChatAgent
    from deproof.config.schema import DeProofConfig, LoggingConfig


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> DeProofConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _setup_logging(config: LoggingConfig) -> None:
    """Configure root logging. Always stderr: stdout carries MCP stdio."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    logging.basicConfig(
        level=config.level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


# ── CLI group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="deproof")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """deproof - Signed, replay-protected MCP tool calls.

    Run a weather MCP server that verifies every call, or chat through a
    client that signs them.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── serve ────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Start the weather MCP server on stdio."""
    from deproof.mcp.server import run_server

    config = _load_config(ctx.obj["config_path"])
    _setup_logging(config.logging)
    asyncio.run(run_server(config))


# ── chat ─────────────────────────────────────────────────────────


@cli.command()
@click.argument(
    "server_script", type=click.Path(exists=True, dir_okay=False), required=False
)
@click.pass_context
def chat(ctx: click.Context, server_script: str | None) -> None:
    """Chat with an LLM whose tool calls to SERVER_SCRIPT are signed.

    Without SERVER_SCRIPT the bundled weather server is started.
    """
    config = _load_config(ctx.obj["config_path"])
    _setup_logging(config.logging)
    if not config.client.private_key:
        _error(f"{config.client.private_key_env or 'client.private_key'} is not set")
    if not config.llm.model:
        _error(f"{config.llm.model_env or 'llm.model'} is not set")

    try:
        asyncio.run(_chat_async(config, server_script))
    except (DeProofError, ValueError) as e:
        _error(str(e))


async def _chat_async(config: DeProofConfig, server_script: str | None) -> None:
    import openai

    from deproof.client.chat import ChatAgent
    from deproof.client.session import SecureToolClient
    from deproof.proof.generator import ProofGenerator

    generator = ProofGenerator(config.client.private_key or "")
    llm = openai.AsyncOpenAI(api_key=config.llm.api_key, base_url=config.llm.base_url)

    async with SecureToolClient(
        generator,
        connect_timeout=config.client.connect_timeout,
        call_timeout=config.client.tool_call_timeout,
    ) as client:
        await client.connect(server_script)
        agent = ChatAgent(client, llm, config.llm.model or "")
        names = await agent.refresh_tools()
        click.echo(f"Connected. Available tools: {', '.join(names)}")
        click.echo(f"Signing as {generator.address}")
        await _chat_loop(agent)


async def _chat_loop(agent: ChatAgent) -> None:
    """Prompt until the user types 'quit' or closes stdin."""
    click.echo("Enter your question or type 'quit' to exit")
    while True:
        try:
            message = await asyncio.to_thread(input, "\nQuestion: ")
        except EOFError:
            break
        if message.strip().lower() == "quit":
            break
        if not message.strip():
            continue
        click.echo("\nProcessing...")
        answer = await agent.process_query(message)
        click.echo(f"\nAnswer:\n{answer}")
