"""Live validation script - track real codes and capture page fixtures.

Usage: python scripts/validate_tracking.py CODE [CODE ...] [--no-fixtures]
"""

import asyncio
import sys
from pathlib import Path

from parceltrace import BatchOptions, BatchRunner, Tracker, TrackerConfig
from parceltrace.config import SinkBackend
from parceltrace.core.extraction import extract_tracking_page
from parceltrace.core.pool import BrowserPool
from parceltrace.core.sources import TrackingPageSource

FIXTURES_DIR = Path(__file__).parent.parent / "tests" / "fixtures"


async def capture_fixture(pool: BrowserPool, config: TrackerConfig, code: str) -> None:
    """Save the rendered tracking page and report what extraction finds."""
    print(f"\n{'='*60}")
    print(f"Capturing {code}...")
    print(f"{'='*60}")

    source = TrackingPageSource(pool, config)
    try:
        async with pool.page() as page:
            html = await source._load_tracking_page(page, code)
    except Exception as e:
        print(f"❌ Page load failed: {e}")
        return

    FIXTURES_DIR.mkdir(parents=True, exist_ok=True)
    fixture_path = FIXTURES_DIR / f"live_{code}.html"
    fixture_path.write_text(html, encoding="utf-8")
    print(f"✓ Saved fixture: {fixture_path} ({len(html)} bytes)")

    raw = extract_tracking_page(html)
    print(f"  Status label: {raw.status_text or '-'}")
    print(f"  Events: {len(raw.timeline)}")
    for event in raw.timeline[:3]:
        print(f"    {event.when}  {event.description[:60]}")
    if not raw.timeline:
        print("  ⚠️  No timeline extracted!")
    for err in raw.parse_errors:
        print(f"  ⚠️  {err}")


async def main(codes: list[str], save_fixtures: bool) -> int:
    config = TrackerConfig(sink_backend=SinkBackend.NONE)

    print("=" * 60)
    print("Live Validation")
    print("=" * 60)
    print(f"Tracking {len(codes)} code(s): {', '.join(codes)}")

    async with BrowserPool(config) as pool:
        if save_fixtures:
            for code in codes:
                await capture_fixture(pool, config, code)
                await asyncio.sleep(2)

        async with Tracker(config, pool=pool) as tracker:
            summary = await BatchRunner(tracker, config).run(codes, BatchOptions(batch_size=2))

    print("\n" + "=" * 60)
    print("VALIDATION SUMMARY")
    print("=" * 60)
    print(f"\nSuccess: {summary.successful}/{summary.total} (avg {summary.average_time_ms:.0f}ms)")

    print("\n| Code | Status | Source | Duration |")
    print("|------|--------|--------|----------|")
    for r in summary.results:
        print(f"| {r.tracking_code} | {r.delivery_status.value} | {r.source or '-'} | {r.duration} |")

    return 0 if summary.failed < summary.total else 1


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if not args:
        print(__doc__)
        sys.exit(2)
    sys.exit(asyncio.run(main(args, "--no-fixtures" not in sys.argv)))
