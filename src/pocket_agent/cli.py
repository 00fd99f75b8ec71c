"""
Command-line interface for Pocket-Agent.
"""

import argparse
import asyncio
import logging
import sys

import structlog

from .config import Settings, get_settings
from .errors import PocketAgentError

logger = structlog.get_logger()

CLI_CHANNEL = "cli"
CLI_CHAT_ID = "local"
EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit"}


def configure_logging(level: str) -> None:
    """Route structlog through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pocket-agent",
        description="Pocket-Agent - a tool-using AI assistant for your terminal",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    chat_parser = subparsers.add_parser("chat", help="Chat with the agent")
    chat_parser.add_argument("-m", "--message", help="Send one message and exit")
    chat_parser.add_argument("--session", default=CLI_CHAT_ID, help="Chat id of the CLI session")

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--check", action="store_true", help="Check configuration validity")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    settings = get_settings()
    configure_logging(settings.log_level)

    if args.command == "chat":
        try:
            asyncio.run(run_chat(settings, args.message, args.session))
        except PocketAgentError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except KeyboardInterrupt:
            pass
    elif args.command == "config":
        ok = show_config(settings, args.check)
        if not ok:
            sys.exit(1)
    else:
        parser.print_help()


async def run_chat(settings: Settings, message: str | None, chat_id: str = CLI_CHAT_ID) -> None:
    """Send one message, or run an interactive loop over the CLI session."""
    from .agent import Agent
    from .bus import InboundMessage, MessageBus, ToolExecution

    bus = MessageBus()

    def show_tool(event: ToolExecution) -> None:
        status = "ok" if event.success else f"error: {event.error}"
        print(f"  [{event.name}] {status} ({event.duration_ms}ms)")

    bus.subscribe("tool", show_tool)
    agent = await Agent.from_settings(settings, bus=bus)

    async def send(text: str) -> None:
        response = await agent.process_message(InboundMessage(
            channel=CLI_CHANNEL,
            sender_id="user",
            chat_id=chat_id,
            content=text,
        ))
        print(f"\n{response.content}\n")

    try:
        if message:
            await send(message)
            return

        print("Pocket-Agent interactive chat. Type 'exit' to quit.\n")
        while True:
            try:
                text = await asyncio.to_thread(input, "You: ")
            except EOFError:
                break

            text = text.strip()
            if not text:
                continue
            if text.lower() in EXIT_COMMANDS:
                break

            try:
                await send(text)
            except PocketAgentError as e:
                print(f"\nError: {e}\n", file=sys.stderr)
    finally:
        await agent.close()


def mask(value: str) -> str:
    if not value:
        return "(not set)"
    return value[:4] + "..." + value[-4:] if len(value) > 10 else "****"


def show_config(settings: Settings, check: bool = False) -> bool:
    """Print the effective configuration. Returns False if the check fails."""
    print("\n=== Pocket-Agent Configuration ===\n")

    print("LLM Providers:")
    print(f"  Default: {settings.default_provider}")
    print(f"  Model: {settings.get_llm_config().model}")
    print(f"  Anthropic Key: {mask(settings.anthropic_api_key)}")
    print(f"  OpenAI Key: {mask(settings.openai_api_key)}")
    print(f"  OpenRouter Key: {mask(settings.openrouter_api_key)}")

    print("\nAgent:")
    print(f"  Max Iterations: {settings.max_iterations}")
    print(f"  History Window: {settings.history_window}")
    print(f"  Workspace: {settings.workspace_dir}")

    print("\nCompaction:")
    print(f"  Enabled: {settings.enable_compaction}")
    print(f"  Message Threshold: {settings.compaction_message_threshold}")
    print(f"  Token Threshold: {settings.compaction_token_threshold}")
    print(f"  Keep Recent: {settings.compaction_keep_recent}")

    print("\nDatabase:")
    print(f"  URL: {settings.database_url}")

    if not check:
        return True

    print("\n=== Configuration Check ===\n")
    errors = []

    if not settings.get_llm_config().api_key:
        errors.append(f"An API key for the default provider ({settings.default_provider}) is required")

    if errors:
        print("Errors:")
        for e in errors:
            print(f"   - {e}")
        print("\nConfiguration has errors - fix them before chatting")
        return False

    print("Configuration looks good!")
    return True


if __name__ == "__main__":
    main()
