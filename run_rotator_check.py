"""
run_rotator_check.py — smoke check of the provider rotation against real vendors

Runs in one go:
  1. Configuration check (keys, limits)
  2. Provider status table
  3. One generation through the rotator (only with --prompt)
  4. Provider status table after the call

Usage:
    GROQ_API_KEY=... python run_rotator_check.py --prompt "Say hello in one word"
"""

import argparse
import sys
import time

from llm_rotator.core.config import settings, validate_settings
from llm_rotator.core.logging import setup_logging
from llm_rotator.core.metrics import metrics_text
from llm_rotator.core.sentry import init_sentry
from llm_rotator.service import LlmService, LlmUnavailableError


def print_step(title: str) -> None:
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)


def print_status(service: LlmService) -> None:
    statuses = service.get_providers_status()
    if not statuses:
        print("  (no providers configured)")
        return
    for name, info in statuses.items():
        mark = "✓" if info.available else "✗"
        print(
            f"  {mark} {name:12s} {info.status:13s} model={info.model} "
            f"calls={info.calls_made} ok={info.success_rate:.0f}% "
            f"rpm={info.calls_last_minute}/{info.rpm_limit}"
        )


def main() -> int:
    parser = argparse.ArgumentParser(description="Check LLM provider rotation")
    parser.add_argument("--prompt", help="send one prompt through the rotator")
    parser.add_argument("--metrics", action="store_true", help="dump Prometheus metrics at the end")
    args = parser.parse_args()

    setup_logging()
    validate_settings()
    init_sentry()

    print_step("Step 1: Configuration")
    keys = settings.api_keys()
    print(f"  AI enabled:  {settings.ai_enabled}")
    print(f"  Providers:   {', '.join(keys) if keys else 'none'}")
    print(f"  Timeout:     {settings.ai_timeout_seconds}s, retries: {settings.ai_max_retries}")

    service = LlmService(settings)

    print_step("Step 2: Provider status")
    print_status(service)

    if not args.prompt:
        print("\n  No --prompt given, skipping generation")
        return 0

    print_step("Step 3: Generation")
    started = time.monotonic()
    try:
        text = service.generate(args.prompt)
    except LlmUnavailableError as e:
        print(f"  ❌ {e}")
        cause = e.__cause__
        for line in getattr(cause, "errors", []):
            print(f"    - {line}")
        exit_code = 1
    else:
        print(f"  ✓ {len(text)} chars in {time.monotonic() - started:.1f}s")
        print(f"  {text[:500]}")
        exit_code = 0

    print_step("Step 4: Provider status after call")
    print_status(service)

    if args.metrics:
        print_step("Metrics")
        print(metrics_text().decode())

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
