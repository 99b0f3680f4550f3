"""Agent Orchestrator CLI - Command Line Interface

Usage:
    # List registered agents
    python -m cli agents

    # Route a message (or JSON intent payload) through the workflow engine
    python -m cli ask "remember that my dentist appointment is on Friday"

    # Answer with local-only orchestration
    python -m cli local "hello there"
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path if running as module
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from app.core.config import settings
from cli.terminal_ui import TerminalUI
from core.orchestrator import AgentOrchestrator


def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Agent Orchestrator - registry-backed agents and intent routing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  agent-orchestrator agents
  agent-orchestrator ask "what is on my screen?"
  agent-orchestrator ask '{"primaryIntent": "command", "sourceText": "open notes"}'
  agent-orchestrator local "good morning"
        """
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help=f"Registry database URL (default: {settings.database_url})"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print raw JSON results"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="Agent Orchestrator CLI v1.0.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("agents", help="List registered agents")

    ask_parser = subparsers.add_parser("ask", help="Route an intent payload through the workflow engine")
    ask_parser.add_argument("text", nargs="+", help="Message or JSON intent payload")

    local_parser = subparsers.add_parser("local", help="Handle a message with local-only orchestration")
    local_parser.add_argument("text", nargs="+", help="User message")
    local_parser.add_argument("--intent", help="Pre-classified primary intent")

    return parser.parse_args(argv)


async def run(args, ui: TerminalUI) -> int:
    orchestrator = AgentOrchestrator()
    config = {}
    if args.database_url:
        config["database_url"] = args.database_url
    await orchestrator.initialize(config)

    try:
        if args.command == "agents":
            rows = []
            for name in orchestrator.registered_agents():
                definition = orchestrator.get_definition(name)
                if definition is not None:
                    rows.append({**definition.to_dict(include_code=False), "loaded": orchestrator.is_agent_loaded(name)})
            if args.json:
                ui.show_json({"agents": rows})
            else:
                ui.show_agents(rows)
            return 0

        text = " ".join(args.text)
        if args.command == "ask":
            result = await orchestrator.ask(text)
            ui.show_json(result) if args.json else ui.show_ask_result(result)
        else:
            intent = {"primaryIntent": args.intent} if args.intent else None
            result = await orchestrator.handle_local_orchestration(text, intent)
            ui.show_json(result) if args.json else ui.show_local_result(result)
        return 0 if result.get("success") else 1
    finally:
        await orchestrator.shutdown()


def main(argv=None):
    """Main CLI entry point"""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    ui = TerminalUI()
    try:
        return asyncio.run(run(args, ui))
    except KeyboardInterrupt:
        ui.console.print("\n\nExiting Agent Orchestrator CLI...")
        return 0
    except Exception as e:
        ui.show_error(str(e))
        if args.debug:
            ui.console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
