#!/usr/bin/env python
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from resume_enhancer.application import build_context, recovery_plan
from resume_enhancer.core.schema import EnhancementOptions, EnhancementRequest
from resume_enhancer.domain.errors import AIError
from resume_enhancer.domain.providers import Provider


async def run(args: argparse.Namespace) -> int:
    context = build_context()
    provider = Provider(args.provider)
    document = json.loads(Path(args.input).read_text(encoding="utf-8"))
    original_text = Path(args.text).read_text(encoding="utf-8") if args.text else ""

    request = EnhancementRequest(
        original_text=original_text,
        parsed_data=document,
        job_description=Path(args.job).read_text(encoding="utf-8") if args.job else None,
        user_instructions=args.instructions,
        focus_areas=tuple(args.focus or ()),
        enhancement_level=args.level,
        mode=args.mode,
    )
    options = EnhancementOptions(
        provider=provider,
        model=args.model,
        enable_fallback=args.fallback is not None,
        fallback_provider=Provider(args.fallback) if args.fallback else None,
    )
    api_key = args.api_key or context.key_store.get_api_key(provider)

    try:
        result = await context.orchestrator.enhance(request, api_key, options)
    except AIError as exc:
        payload = {"error": exc.to_dict(), "recovery": recovery_plan(exc, context.settings.max_attempts, context.settings.max_attempts).to_dict()}
        print(json.dumps(payload, indent=2), file=sys.stderr)
        return 1
    finally:
        await context.registry.aclose()

    print(json.dumps(result.to_wire(), indent=2, ensure_ascii=False))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Enhance or re-parse a structured resume with an AI provider")
    parser.add_argument("--input", required=True, help="structured resume JSON file")
    parser.add_argument("--provider", required=True, choices=[item.value for item in Provider])
    parser.add_argument("--model", help="model id; defaults to the provider default")
    parser.add_argument("--mode", choices=["enhance", "reparse"], default="enhance")
    parser.add_argument("--level", choices=["light", "moderate", "comprehensive"], default="moderate")
    parser.add_argument("--text", help="raw resume text file (required for reparse)")
    parser.add_argument("--job", help="target job description file")
    parser.add_argument("--instructions", help="special instructions for the model")
    parser.add_argument("--focus", action="append", help="focus area; repeat for several")
    parser.add_argument("--fallback", choices=[item.value for item in Provider], help="fallback provider")
    parser.add_argument("--api-key", help="API key; defaults to the provider environment variable")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    if args.mode == "reparse" and not args.text:
        parser.error("--text is required with --mode reparse")

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
