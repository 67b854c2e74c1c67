"""CLI: context-optimizer optimize, chat, dedupe, prioritize, tokens, config validate, mcp."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config import load_config, validate_config
from ..types import ChatMessage, OptimizerError


def _get_optimizer(args):
    from ..engine import ContextOptimizer

    return ContextOptimizer(config_path=args.config)


def _read_json(path: str):
    if path == "-":
        return json.load(sys.stdin)
    return json.loads(Path(path).read_text())


def _read_items(path: str) -> list:
    """Load a JSON list of strings or message dicts."""
    raw = _read_json(path)
    if isinstance(raw, dict):
        raw = raw.get("messages", raw.get("context", []))
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list")
    if raw and isinstance(raw[0], dict):
        return [ChatMessage.from_dict(m) for m in raw]
    return raw


def _dump_items(items: list) -> list:
    return [m.to_dict() if isinstance(m, ChatMessage) else m for m in items]


def cmd_optimize(args):
    """Fit context chunks behind a query."""
    optimizer = _get_optimizer(args)
    chunks = _read_items(args.input)
    result = optimizer.optimize_chunks(
        args.query,
        chunks,
        args.budget,
        dedupe=False if args.no_dedupe else None,
        strategy=args.strategy,
        threshold=args.threshold,
    )
    if args.text:
        print(result.final_text)
        return
    print(json.dumps({
        "final_prompt": result.final_text,
        "token_count": result.token_count,
        "dropped_chunks": result.dropped_items,
    }, indent=2))


def cmd_chat(args):
    """Trim a chat history."""
    optimizer = _get_optimizer(args)
    messages = _read_items(args.input)
    result = optimizer.optimize_chat(
        messages,
        args.budget,
        dedupe=False if args.no_dedupe else None,
        strategy=args.strategy,
        threshold=args.threshold,
        preserve_system=False if args.no_preserve_system else None,
        preserve_last_n=args.preserve_last,
    )
    print(json.dumps({
        "optimized_messages": _dump_items(result.kept_messages),
        "token_count": result.token_count,
        "removed_messages": _dump_items(result.removed_messages),
    }, indent=2))


def cmd_dedupe(args):
    """Remove near-duplicate items and report what each removed item duplicated."""
    optimizer = _get_optimizer(args)
    items = _read_items(args.input)
    report = optimizer.deduplicate_report(items, threshold=args.threshold, role=args.role)
    print(json.dumps(report.to_dict(items), indent=2))


def cmd_prioritize(args):
    """Reorder items best first."""
    optimizer = _get_optimizer(args)
    items = _read_items(args.input)
    ordered = optimizer.prioritize(items, args.query, strategy=args.strategy)
    print(json.dumps(_dump_items(ordered), indent=2))


def cmd_tokens(args):
    """Analyze token usage."""
    optimizer = _get_optimizer(args)
    if args.input:
        content = _read_items(args.input)
    else:
        content = sys.stdin.read() if args.text is None else args.text
    analysis = optimizer.analyze_tokens(content)
    stats = optimizer.estimate_tokens(content)

    print(f"Tokens:     {analysis.token_count:,}")
    print(f"Words:      {analysis.word_count:,}")
    print(f"Characters: {analysis.character_count:,}")
    print(f"Items:      {stats['total_items']} (avg {stats['average_tokens_per_item']:,}, "
          f"min {stats['min_tokens']:,}, max {stats['max_tokens']:,})")
    if analysis.breakdown:
        print()
        for key, value in analysis.breakdown.items():
            print(f"  {key:<24} {value:>8,}")
    print()
    for rec in analysis.recommendations:
        print(f"- {rec}")


def cmd_config_validate(args):
    """Validate config file."""
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        print("Config validation errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)
    else:
        print("Config is valid.")
        print(f"  Embedding: {config.embedding.provider} ({config.embedding.model or 'n/a'})")
        print(f"  Fallback: {config.embedding.fallback}")
        print(f"  Strategy: {config.prioritization.strategy}")
        print(f"  Dedupe threshold: {config.dedupe.threshold}")
        print(f"  Token counter: {config.token_counter}")


def cmd_mcp(args):
    """Start the MCP server on stdio."""
    from ..mcp.server import serve

    serve()


def _add_pipeline_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--input", "-i", required=True, help="JSON file (or - for stdin)")
    parser.add_argument("--budget", "-b", type=int, required=True, help="Token budget")
    parser.add_argument("--strategy", "-s", choices=["relevance", "recency", "hybrid"])
    parser.add_argument("--threshold", "-t", type=float, help="Duplicate similarity threshold")
    parser.add_argument("--no-dedupe", action="store_true", help="Skip deduplication")


def main():
    parser = argparse.ArgumentParser(
        prog="context-optimizer",
        description="Deduplicate, prioritize and trim LLM context to a token budget",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging to stderr")

    subparsers = parser.add_subparsers(dest="command")

    # optimize
    optimize_parser = subparsers.add_parser("optimize", help="Fit context chunks behind a query")
    optimize_parser.add_argument("--query", "-q", required=True, help="User prompt")
    _add_pipeline_options(optimize_parser)
    optimize_parser.add_argument("--text", action="store_true", help="Print only the final prompt")

    # chat
    chat_parser = subparsers.add_parser("chat", help="Trim a chat history (JSON messages)")
    _add_pipeline_options(chat_parser)
    chat_parser.add_argument("--preserve-last", type=int, help="Always keep the last N messages")
    chat_parser.add_argument(
        "--no-preserve-system", action="store_true", help="Allow system messages to be trimmed",
    )

    # dedupe
    dedupe_parser = subparsers.add_parser("dedupe", help="Remove near-duplicate items")
    dedupe_parser.add_argument("--input", "-i", required=True, help="JSON file (or - for stdin)")
    dedupe_parser.add_argument("--threshold", "-t", type=float)
    dedupe_parser.add_argument("--role", choices=["system", "user", "assistant"],
                               help="Only deduplicate messages of this role")

    # prioritize
    prioritize_parser = subparsers.add_parser("prioritize", help="Reorder items best first")
    prioritize_parser.add_argument("--input", "-i", required=True, help="JSON file (or - for stdin)")
    prioritize_parser.add_argument("--query", "-q", required=True)
    prioritize_parser.add_argument("--strategy", "-s", choices=["relevance", "recency", "hybrid"])

    # tokens
    tokens_parser = subparsers.add_parser("tokens", help="Analyze token usage")
    tokens_parser.add_argument("--input", "-i", help="JSON list of texts or messages")
    tokens_parser.add_argument("text", nargs="?", help="Text to analyze (default: stdin)")

    # mcp
    subparsers.add_parser("mcp", help="Start the MCP server (stdio)")

    # config validate
    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "optimize": cmd_optimize,
        "chat": cmd_chat,
        "dedupe": cmd_dedupe,
        "prioritize": cmd_prioritize,
        "tokens": cmd_tokens,
        "mcp": cmd_mcp,
    }

    try:
        if args.command == "config":
            if args.config_command == "validate":
                cmd_config_validate(args)
            else:
                print("Usage: context-optimizer config validate")
                sys.exit(1)
        else:
            commands[args.command](args)
    except (OptimizerError, ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
