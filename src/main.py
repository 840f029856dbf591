# src/main.py — v2
"""CLI entry point — ask, models, usage, tools commands.

Usage:
    portfolio-ai ask "<question>" [--feature chat] [--portfolio file.json]
    portfolio-ai models [--provider openai]
    portfolio-ai usage
    portfolio-ai tools
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from portfolio_ai.config.settings import ConfigurationError, Settings, load_settings
from portfolio_ai.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except (ConfigurationError, ValidationError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    args.settings = settings
    _setup_logging(settings, args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="portfolio-ai",
        description=f"portfolio-ai v{__version__} — multi-provider AI assistant for a portfolio",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- ask ---
    p_ask = subparsers.add_parser("ask", help="Ask the configured AI provider a question")
    p_ask.add_argument("question", help="Question text")
    p_ask.add_argument(
        "-f", "--feature", choices=["chat", "insights", "research"], default="chat",
        help="Feature used for model selection (default: chat)",
    )
    p_ask.add_argument("--system", default=None, help="System prompt")
    p_ask.add_argument(
        "-p", "--portfolio", type=Path, default=None,
        help="Portfolio export (JSON) backing the chat tools",
    )
    p_ask.add_argument(
        "--no-cache", action="store_true",
        help="Bypass the response cache",
    )
    p_ask.add_argument(
        "--stream", action="store_true",
        help="Print text through the streaming callback (disables caching)",
    )
    p_ask.set_defaults(func=_cmd_ask)

    # --- models ---
    p_models = subparsers.add_parser("models", help="Show recommended models")
    p_models.add_argument(
        "--provider", default=None,
        help="Provider to inspect (default: AI_PROVIDER)",
    )
    p_models.set_defaults(func=_cmd_models)

    # --- usage ---
    p_usage = subparsers.add_parser("usage", help="Show this month's AI spend")
    p_usage.set_defaults(func=_cmd_usage)

    # --- tools ---
    p_tools = subparsers.add_parser("tools", help="List the tools offered to chat")
    p_tools.add_argument(
        "--schema", action="store_true",
        help="Print full JSON parameter schemas",
    )
    p_tools.set_defaults(func=_cmd_tools)

    return parser


async def _cmd_ask(args: argparse.Namespace) -> int:
    """Run one AI call and print the answer."""
    from portfolio_ai.api.facade import build_context, call_ai
    from portfolio_ai.llm.models import AiFeature, ClientRequest, Message
    from portfolio_ai.portfolio.memory_repository import InMemoryPortfolioRepository

    repository = None
    if args.portfolio is not None:
        if not args.portfolio.exists():
            logger.error("File not found: %s", args.portfolio)
            return 1
        repository = InMemoryPortfolioRepository.from_file(args.portfolio)

    context = build_context(args.settings, repository)
    request = ClientRequest(
        feature=AiFeature(args.feature),
        messages=[Message(role="user", content=args.question)],
        system=args.system,
        stream=args.stream,
        on_token=(lambda text: print(text, end="", flush=True)) if args.stream else None,
        force_refresh=args.no_cache,
    )

    result = await call_ai(request, context)
    if not result.ok:
        print(f"Error [{result.error.code.value}]: {result.error.message}", file=sys.stderr)
        return 1

    if args.stream:
        print()
    else:
        print(result.text)
    suffix = " (cached)" if result.from_cache else ""
    tools = f", tools: {', '.join(result.tool_calls)}" if result.tool_calls else ""
    print(f"\n[{result.provider_id.value}/{result.model}{suffix}{tools}]", file=sys.stderr)
    return 0


async def _cmd_models(args: argparse.Namespace) -> int:
    """Display recommended models per feature."""
    from portfolio_ai.api.facade import build_context
    from portfolio_ai.orchestrator.client import AiOrchestrator

    orchestrator = AiOrchestrator(build_context(args.settings))
    for rec in orchestrator.get_recommended_models(args.provider):
        print(f"{rec.feature.value:10s} default: {', '.join(rec.defaults)}")
        print(f"{'':10s} all:     {', '.join(rec.all)}")
        if rec.note:
            print(f"{'':10s} {rec.note}")
    return 0


async def _cmd_usage(args: argparse.Namespace) -> int:
    """Display the current month's spend against the budget."""
    from portfolio_ai.api.facade import build_context
    from portfolio_ai.tracking.usage_ledger import month_key

    settings: Settings = args.settings
    context = build_context(settings)
    month = month_key()
    spent = await context.ledger.monthly_total(month)

    print(f"\nAI usage for {month}:")
    print(f"  Spent:   ${spent:.6f}")
    if settings.ai_budget_usd > 0:
        print(f"  Budget:  ${settings.ai_budget_usd:.2f}")
        print(f"  Left:    ${max(settings.ai_budget_usd - spent, 0):.6f}")
    else:
        print("  Budget:  unlimited")
    return 0


async def _cmd_tools(args: argparse.Namespace) -> int:
    """List the tool catalog."""
    from portfolio_ai.portfolio.memory_repository import InMemoryPortfolioRepository
    from portfolio_ai.tools.portfolio_tools import build_portfolio_registry

    registry = build_portfolio_registry(InMemoryPortfolioRepository())
    for tool in registry.list_tool_definitions():
        print(f"{tool['name']}: {tool['description']}")
        if args.schema:
            print(json.dumps(tool["parameters"], indent=2))
    return 0


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from portfolio_ai.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
