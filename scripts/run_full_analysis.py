#!/usr/bin/env python3
"""
Full Analysis Runner

Runs the complete authority & opportunity analysis for one site locally:
1. Content collection (WordPress REST API, sitemap fallback)
2. Internal link graph and authority scores
3. Opportunity ranking from search data (optional)
4. Claude phases: clusters, link suggestions, content gaps

Usage:
    # Set environment variables first (or use a .env file):
    export ANTHROPIC_API_KEY=your_key
    export DATAFORSEO_LOGIN=your_login        # optional, keyword enrichment
    export DATAFORSEO_PASSWORD=your_password  # optional

    # Run analysis:
    python scripts/run_full_analysis.py https://example.com

    # With options:
    python scripts/run_full_analysis.py https://example.com \
        --strategy money \
        --target-url https://example.com/services/ \
        --search-rows gsc_export.json \
        --output report.json
"""

import asyncio
import argparse
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def load_rows(path: str) -> list:
    """Load search rows from a JSON file (a list, or an object with a 'rows' key)."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("rows", [])
    return data


async def run_full_analysis(
    site_root: str,
    strategy: str = "global",
    target_urls: list = None,
    search_rows: list = None,
    output: str = None,
):
    """Run the primary analysis and write the report JSON."""

    load_dotenv()

    if not os.getenv("ANTHROPIC_API_KEY"):
        print("ERROR: Missing required environment variable ANTHROPIC_API_KEY")
        return None

    from linkstrategy.pipeline import EventType, ProgressEmitter, run_analysis

    print(f"\n{'='*70}")
    print("LINKSTRATEGY - FULL ANALYSIS")
    print(f"{'='*70}")
    print(f"Site:         {site_root}")
    print(f"Strategy:     {strategy}")
    print(f"Targets:      {', '.join(target_urls or []) or '(none)'}")
    print(f"Search rows:  {len(search_rows or [])}")
    print(f"{'='*70}\n")

    start_time = datetime.now()

    def sink(event):
        if event.type == EventType.ERROR:
            print(f"✗ {event.message}: {event.details}")

    report = await run_analysis(
        site_root,
        ProgressEmitter(sink),
        strategy=strategy,
        target_urls=target_urls,
        search_rows=search_rows,
    )
    if report is None:
        return None

    data = report.to_dict()
    output_path = Path(output or f"report_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json")
    output_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    duration = (datetime.now() - start_time).total_seconds()
    summary = data["summary"]
    print(f"\n{'='*70}")
    print("ANALYSIS COMPLETE")
    print(f"{'='*70}")
    print(f"Duration:       {duration:.1f} seconds")
    print(f"Pages scanned:  {summary['pages_scanned']}")
    print(f"Suggestions:    {summary['suggestions_total']} ({summary['high_priority']} high priority)")
    print(f"Content gaps:   {len(data['content_gap_suggestions'])}")
    for failure in data["phase_failures"]:
        print(f"  ⚠ {failure['phase']}: {failure['error']}")
    print(f"Report:         {output_path}")

    return str(output_path)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run the full internal link authority and opportunity analysis"
    )
    parser.add_argument(
        "site_root",
        help="Root URL of the site (e.g., https://example.com)"
    )
    parser.add_argument(
        "--strategy",
        default="global",
        choices=["global", "pillar", "money"],
        help="Suggestion strategy (default: global)"
    )
    parser.add_argument(
        "--target-url",
        action="append",
        default=[],
        dest="target_urls",
        help="Pillar or money page URL (repeatable)"
    )
    parser.add_argument(
        "--search-rows",
        default=None,
        help="JSON file with search analytics rows"
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Report JSON path (default: report_<timestamp>.json)"
    )

    args = parser.parse_args()

    result = asyncio.run(run_full_analysis(
        site_root=args.site_root,
        strategy=args.strategy,
        target_urls=args.target_urls,
        search_rows=load_rows(args.search_rows) if args.search_rows else None,
        output=args.output,
    ))

    if not result:
        sys.exit(1)


if __name__ == "__main__":
    main()
