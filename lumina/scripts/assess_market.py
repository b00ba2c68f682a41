import argparse
import asyncio
import json

from lumina.deps import build_risk_aggregator
from lumina.logging import configure_logging
from lumina.oracle.fallback import calculate_fallback_risk
from lumina.oracle.models import MarketSnapshot


def _build_snapshot(args: argparse.Namespace) -> MarketSnapshot:
    no_odds = args.no_odds if args.no_odds is not None else 100 - args.yes_odds
    return MarketSnapshot(
        market_id=args.market_id,
        question=args.question,
        yes_odds=args.yes_odds,
        no_odds=no_odds,
        total_volume=args.volume,
        liquidity=args.liquidity,
        time_to_expiry=max(args.hours, 0.0),
        category=args.category,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Assess one prediction market and print the risk assessment.")
    parser.add_argument("--market-id", required=True, help="Market identifier")
    parser.add_argument("--question", required=True, help="Market question passed to the models")
    parser.add_argument("--yes-odds", type=float, required=True, help="YES implied probability in percent")
    parser.add_argument("--no-odds", type=float, help="NO implied probability in percent (default: 100 - yes)")
    parser.add_argument("--volume", type=float, default=0.0, help="Total volume in USD")
    parser.add_argument("--liquidity", type=float, default=0.0, help="Liquidity in USD")
    parser.add_argument("--hours", type=float, default=0.0, help="Hours until resolution")
    parser.add_argument("--category", default="Other", help="Market category")
    parser.add_argument("--fallback-only", action="store_true", help="Skip the AI backends and use the rule-based formula")
    args = parser.parse_args()

    configure_logging()
    snapshot = _build_snapshot(args)
    if args.fallback_only:
        assessment = calculate_fallback_risk(snapshot)
    else:
        assessment = asyncio.run(build_risk_aggregator().calculate_risk_score(snapshot))
    print(json.dumps(assessment.to_payload(), indent=2))


if __name__ == "__main__":
    main()
