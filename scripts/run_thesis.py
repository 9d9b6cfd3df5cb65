"""
Run one investment thesis end to end from the command line.

Uses the same settings as the API (.env / .env.local) and prints phase
events as they arrive. The final run is written as JSON with --output.

    python scripts/run_thesis.py "Deep value shipping companies" --strategy value
"""
import sys
import json
import asyncio
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env.local")
load_dotenv(Path(__file__).parent.parent / ".env")

from app.config import get_settings
from app.logging_config import setup_logging
from core.pipeline.events import Phase
from core.pipeline.models import Thesis
from core.pipeline.runner import PipelineRunner


async def main(
    thesis_text: str,
    strategy: str,
    title: str = None,
    max_opportunities: int = None,
    debate: bool = False,
    output: str = None,
) -> int:
    overrides = {}
    if max_opportunities is not None:
        overrides["max_opportunities"] = max_opportunities
    if debate:
        overrides["enable_debate"] = True
    settings = get_settings().model_copy(update=overrides)

    runner = PipelineRunner.from_settings(settings)
    thesis = Thesis(text=thesis_text, strategy=strategy, title=title)

    print("=" * 70)
    print(f"THESIS: {thesis.text}")
    print(f"Strategy: {thesis.strategy.value} | Debate: {settings.enable_debate}")
    print("=" * 70)

    final = None
    async for event in runner.stream(thesis):
        if event.phase == Phase.COMPLETE:
            final = json.loads(event.content)
            continue
        agent = f"[{event.agent}] " if event.agent else ""
        print(f"{event.phase.value:>18} | {agent}{event.content or ''}")
        if event.phase == Phase.ERROR:
            return 1

    if final is None:
        print("Run ended without a result")
        return 1

    summary = final["summary"]
    verdict = final["final_verdict"]
    print("=" * 70)
    print(f"VERDICT: {verdict['decision'].upper()} ({verdict['confidence']}%)")
    print(verdict["rationale"])
    print(
        f"INVEST {summary['invest_count']} | PASS {summary['pass_count']} | "
        f"WATCH {summary['watch_count']} | {summary['duration_seconds']:.1f}s"
    )
    for rank, analyzed in enumerate(final["analyzed"], start=1):
        opp = analyzed["opportunity"]
        decision = analyzed["verdict"]["decision"].upper() if analyzed["verdict"] else "-"
        print(f"  {rank}. {opp['ticker']:<6} {opp['company_name']:<35} {decision:<7} score={analyzed['score']}")
        for error in analyzed["errors"]:
            print(f"       ! {error}")

    if output:
        Path(output).write_text(json.dumps(final, indent=2))
        print(f"✓ Run written to {output}")
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Research an investment thesis and print ranked verdicts"
    )
    parser.add_argument("thesis", help="Investment thesis text")
    parser.add_argument(
        "--strategy",
        default="general",
        help="value | special-situations | distressed | general"
    )
    parser.add_argument("--title", default=None, help="Optional thesis title")
    parser.add_argument(
        "--max-opportunities",
        type=int,
        default=None,
        help="Override the number of opportunities analyzed"
    )
    parser.add_argument(
        "--debate",
        action="store_true",
        help="Run bull/skeptic/risk debate rounds after analysis"
    )
    parser.add_argument("--output", default=None, help="Write the final run as JSON")
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    args = parser.parse_args()
    setup_logging(level=args.log_level)

    sys.exit(asyncio.run(main(
        thesis_text=args.thesis,
        strategy=args.strategy,
        title=args.title,
        max_opportunities=args.max_opportunities,
        debate=args.debate,
        output=args.output,
    )))
