#!/usr/bin/env python
"""Run an analysis strategy over an item file, or project its cost.

Example usages::

    # Analyse items with the bounded-concurrency strategy.
    python -m scripts.run_analysis run --items items.jsonl --strategy concurrent \
        --output enriched.json

    # Compare standard and batch pricing for 8,000 images.
    python -m scripts.run_analysis estimate --images 8000
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pydantic import ValidationError  # noqa: E402

from enrichment.core.config import LoggingSettings, PricingSettings  # noqa: E402
from enrichment.core.errors import RunAborted  # noqa: E402
from enrichment.core.logging import configure_logging  # noqa: E402
from enrichment.dependencies import AnalysisStrategy, build_analyzer  # noqa: E402
from enrichment.schemas import PromptVariant  # noqa: E402
from enrichment.services import BaseAnalyzer, estimate_run_cost  # noqa: E402

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_BAD_INPUT = 2
EXIT_CONFIG_ERROR = 3

logger = logging.getLogger("scripts.run_analysis")


def load_items(path: Path) -> List[Dict[str, Any]]:
    """Read items from a JSON array or a JSONL file."""
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    if text.startswith("["):
        items = json.loads(text)
    else:
        items = [json.loads(line) for line in text.splitlines() if line.strip()]
    if not all(isinstance(item, dict) for item in items):
        raise ValueError("Every item must be a JSON object")
    return items


async def _run(analyzer: BaseAnalyzer, items: List[Dict[str, Any]]) -> Dict[str, Any]:
    posts = await analyzer.process(items)
    return {
        "posts": [post.model_dump(mode="json") for post in posts],
        "cost": analyzer.get_cost_summary().model_dump(mode="json"),
    }


def run_command(args: argparse.Namespace) -> int:
    try:
        items = load_items(args.items)
    except (OSError, ValueError) as exc:
        print(f"Cannot read items from {args.items}: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT

    try:
        analyzer = build_analyzer(args.strategy, args.variant)
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        result = asyncio.run(_run(analyzer, items))
    except RunAborted as exc:
        logger.error("Analysis run aborted: %s", exc)
        return EXIT_ABORTED

    payload = json.dumps(result, indent=2)
    if args.output:
        args.output.write_text(payload + "\n", encoding="utf-8")
        print(f"Wrote {len(result['posts'])} posts to {args.output}")
    else:
        print(payload)
    return EXIT_OK


def estimate_command(args: argparse.Namespace) -> int:
    pricing = PricingSettings()
    standard = estimate_run_cost(
        args.images,
        prompt_tokens=args.prompt_tokens,
        completion_tokens=args.completion_tokens,
        pricing=pricing.standard_table(),
    )
    batch = estimate_run_cost(
        args.images,
        prompt_tokens=args.prompt_tokens,
        completion_tokens=args.completion_tokens,
        pricing=pricing.batch_table(),
    )
    savings = standard - batch
    percent = (savings / standard * 100) if standard else 0.0
    print(f"Images:            {args.images:,}")
    print(f"Tokens per image:  {args.prompt_tokens + args.completion_tokens}")
    print(f"Standard API cost: ${standard:.4f}")
    print(f"Batch API cost:    ${batch:.4f}")
    print(f"Batch savings:     ${savings:.4f} ({percent:.1f}%)")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Enrich social-media images with vision-model analyses."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Analyse an item file.")
    run_parser.add_argument(
        "--items",
        type=Path,
        required=True,
        help="JSON array or JSONL file of {postId, imagePath, metadata} items.",
    )
    run_parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in AnalysisStrategy],
        default=None,
        help="Analysis strategy; defaults to ANALYSIS_STRATEGY.",
    )
    run_parser.add_argument(
        "--variant",
        choices=[variant.value for variant in PromptVariant],
        default=None,
        help="Prompt variant; defaults to ANALYSIS_VARIANT.",
    )
    run_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the enriched posts here instead of stdout.",
    )
    run_parser.set_defaults(handler=run_command)

    estimate_parser = subparsers.add_parser(
        "estimate", help="Project standard and batch costs."
    )
    estimate_parser.add_argument("--images", type=int, required=True)
    estimate_parser.add_argument("--prompt-tokens", type=int, default=10)
    estimate_parser.add_argument("--completion-tokens", type=int, default=40)
    estimate_parser.set_defaults(handler=estimate_command)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    # stdout carries the enriched posts when no --output is given.
    configure_logging(LoggingSettings().log_level, stream=sys.stderr)
    return args.handler(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
