#!/usr/bin/env python3
"""Score one or more URLs from the command line."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from phishguard.analyzer.formatters import format_domain_age
from phishguard.analyzer.models import ErrorResult
from phishguard.config import load_config
from phishguard.main import build_engine


def print_result(result) -> None:
    if isinstance(result, ErrorResult):
        print(f"  error: {result.message}")
        return

    badge = f" {result.badge}" if result.badge else ""
    print(f"{result.domain}{badge}")
    print(f"  Verdict: {result.status} ({result.threat} threat) - {result.message}")
    print(f"  Risk score: {result.risk_score}/100 (confidence {result.confidence}%)")
    print(f"  HTTPS: {'yes' if result.has_tls else 'no'}")
    print(f"  Domain age: {format_domain_age(result.domain_age_days)}")
    if result.reasons:
        print("  Reasons:")
        for reason in result.reasons:
            print(f"    - {reason}")


async def run(urls: list[str], as_json: bool, keep_state: bool) -> int:
    config = load_config()
    if not keep_state:
        config.storage_backend = "memory"
    engine = build_engine(config)
    await engine.load()

    exit_code = 0
    payload = []
    try:
        for url in urls:
            result = await engine.analyze(url)
            if isinstance(result, ErrorResult):
                exit_code = 2
            if as_json:
                payload.append({"input": url, **result.to_dict()})
            else:
                print(f"\n{url}")
                print_result(result)
    finally:
        await engine.stop()

    if as_json:
        print(json.dumps(payload, indent=2))
    return exit_code


def main() -> None:
    parser = argparse.ArgumentParser(description="Score URLs for phishing risk.")
    parser.add_argument("urls", nargs="+", help="URLs to analyze (scheme required)")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument(
        "--keep-state",
        action="store_true",
        help="Load and save engine state via the configured storage backend",
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.urls, args.json, args.keep_state)))


if __name__ == "__main__":
    main()
