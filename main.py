"""guidewriter - climbing area guide generator

Simple CLI that works through the area queue until it is exhausted.
"""

import argparse
import asyncio
import sys

from guidewriter.agents.orchestrator import BatchSummary, GuideOrchestrator
from guidewriter.config import settings
from guidewriter.errors import ConfigurationError, QueueError
from guidewriter.services.logger import configure_logging
from guidewriter.services.publisher import Publisher
from guidewriter.services.work_queue import WorkQueue


async def run_batch(
    queue_path: str,
    output_dir: str,
    *,
    max_items: int | None = None,
    model: str | None = None,
) -> BatchSummary:
    """Run the pipeline over every pending area in the queue."""
    queue = WorkQueue(queue_path)
    print(f"Queue: {queue_path} ({queue.pending_count()} pending)")
    print("-" * 50)

    orchestrator = GuideOrchestrator(
        queue,
        publisher=Publisher(output_dir),
        model=model,
    )
    return await orchestrator.run(max_items=max_items)


def print_summary(summary: BatchSummary) -> None:
    print(f"\n{'=' * 50}")
    print(f"[*] Processed {len(summary.outcomes)} area(s) in {summary.runtime_ms}ms")
    print(f"    Succeeded: {summary.succeeded}")
    print(f"    Failed:    {summary.failed}")
    for outcome in summary.outcomes:
        if outcome.success:
            print(f"  [+] {outcome.area}: {outcome.route_count} routes -> {outcome.path}")
        else:
            print(f"  [!] {outcome.area}: {outcome.error}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate climbing guides from the area queue")
    parser.add_argument("--queue", "-q", default=settings.queue_file, help="Queue file (one area per line)")
    parser.add_argument("--output-dir", "-o", default=settings.content_dir, help="Directory for generated guides")
    parser.add_argument("--max-items", "-n", type=int, help="Stop after this many areas")
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")
    parser.add_argument("--log-level", help="Console log level (default: from config)")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        settings.require_credentials()
        summary = asyncio.run(
            run_batch(args.queue, args.output_dir, max_items=args.max_items, model=args.model)
        )
    except (ConfigurationError, QueueError) as e:
        print(f"[!] Error: {e}", file=sys.stderr)
        return 1

    print_summary(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
