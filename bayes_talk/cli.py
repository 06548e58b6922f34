"""
Command line tools for the talk.

Usage:
    python -m bayes_talk export --output-dir ./build/charts
    python -m bayes_talk analyze --control-clicked 425 --control-sessions 5000 \
        --treatment-clicked 480 --treatment-sessions 5000
    python -m bayes_talk peeking --experiments 500
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from bayes_talk.bayes import ExperimentData, VariantCounts, compute_bayesian_analysis
from bayes_talk.config import get_settings
from bayes_talk.logs import configure_logging
from bayes_talk.priors import BetaPrior
from bayes_talk.slides import Slide, build_deck
from bayes_talk.stopping import FixedHorizonRule, PValueRule, ProbabilityThresholdRule, simulate_peeking

logger = structlog.get_logger(__name__)


def export_charts(deck: List[Slide], output_dir: Path, include_plotlyjs: str = "cdn") -> Path:
    """
    Write every slide chart as standalone HTML plus a manifest.

    Returns:
        Path of the manifest.json describing slide order and files
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    slides = []
    for position, slide in enumerate(deck, start=1):
        entry = {"position": position, "key": slide.key, "title": slide.title, "chart": None, "image": None}
        if slide.chart is not None:
            filename = f"{position:02d}-{slide.key}.html"
            slide.chart().write_html(output_dir / filename, include_plotlyjs=include_plotlyjs, auto_play=False)
            entry["chart"] = filename
            logger.info("chart_exported", slide=slide.key, path=str(output_dir / filename))
        if slide.image is not None:
            entry["image"] = str(slide.image)
        slides.append(entry)

    manifest_path = output_dir / "manifest.json"
    with open(manifest_path, "w") as f:
        json.dump({"slides": slides}, f, indent=2)

    return manifest_path


def cmd_export(args: argparse.Namespace) -> int:
    """Export all charts of the deck."""
    settings = get_settings()
    output_dir = Path(args.output_dir) if args.output_dir else settings.output_dir
    deck = build_deck(settings)

    manifest_path = export_charts(deck, output_dir, include_plotlyjs=args.include_plotlyjs)

    n_charts = sum(1 for slide in deck if slide.chart is not None)
    print(f"Exported {n_charts} charts from {len(deck)} slides to {output_dir}")
    print(f"Manifest written to: {manifest_path}")
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    """Print the Bayesian comparison of two variants."""
    settings = get_settings()

    data = ExperimentData(
        control=VariantCounts(args.control_clicked, args.control_sessions),
        treatment=VariantCounts(args.treatment_clicked, args.treatment_sessions),
    )
    prior = BetaPrior(args.prior_shape1, args.prior_shape2)
    results = compute_bayesian_analysis(
        data,
        prior=prior,
        n_samples=args.samples if args.samples is not None else settings.n_samples,
        credible_level=settings.credible_level,
        seed=settings.seed,
    )

    level = f"{results.credible_level:.0%}"
    lower, upper = results.uplift_ci
    print("\nBayesian A/B Comparison")
    print("=======================")
    print(f"Prior:                 Beta({prior.shape1:g}, {prior.shape2:g})")
    print(f"{'Variant':<12} {'CTR':>8} {'Posterior':>28} {'Mean':>8}")
    for name, counts, posterior in (
        ("control", data.control, results.control_posterior),
        ("treatment", data.treatment, results.treatment_posterior),
    ):
        params = f"Beta({posterior.shape1:g}, {posterior.shape2:g})"
        print(f"{name:<12} {counts.ctr:>8.2%} {params:>28} {posterior.mean:>8.2%}")
    print()
    print(f"P(treatment > control): {results.prob_treatment_better:.1%}")
    print(f"Expected uplift:        {results.expected_uplift:+.2%} ({level} CI: {lower:+.2%} to {upper:+.2%})")
    print(f"Loss if treatment:      {results.loss_choosing_treatment * 100:.4f} pp")
    print(f"Loss if control:        {results.loss_choosing_control * 100:.4f} pp")
    print(f"Lower-risk choice:      {results.recommendation}")
    return 0


def cmd_peeking(args: argparse.Namespace) -> int:
    """Print the false positive rates of peeking at A/A tests."""
    settings = get_settings()
    num_days = args.days if args.days is not None else settings.num_days
    rules = [
        PValueRule(0.05),
        ProbabilityThresholdRule(settings.win_threshold),
        FixedHorizonRule(num_days, settings.win_threshold),
    ]
    table = simulate_peeking(
        settings.baseline_ctr,
        settings.avg_daily_sessions,
        num_days,
        rules,
        n_experiments=args.experiments if args.experiments is not None else settings.peeking_experiments,
        seed=settings.seed,
    )

    print("\nFalse positive rate in A/A tests")
    print("================================")
    print(table.pivot(index="rule", columns="checked", values="false_positive_rate").to_string(
        float_format=lambda rate: f"{rate:.1%}"
    ))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="bayes-talk",
        description="Charts and numbers for the Bayesian A/B testing talk",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Export every chart as HTML:
    python -m bayes_talk export --output-dir ./build/charts

  Compare two variants with a uniform prior:
    python -m bayes_talk analyze --control-clicked 425 --control-sessions 5000 \\
        --treatment-clicked 480 --treatment-sessions 5000

  Show how peeking inflates false positives:
    python -m bayes_talk peeking --experiments 500
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    export_parser = subparsers.add_parser("export", help="Export slide charts as HTML")
    export_parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Output directory (default: BAYES_TALK_OUTPUT_DIR or build/charts)",
    )
    export_parser.add_argument(
        "--include-plotlyjs",
        choices=["cdn", "inline"],
        default="cdn",
        help="How each HTML file loads plotly.js (default: cdn)",
    )
    export_parser.set_defaults(func=cmd_export)

    analyze_parser = subparsers.add_parser("analyze", help="Compare two variants")
    analyze_parser.add_argument("--control-clicked", type=int, required=True)
    analyze_parser.add_argument("--control-sessions", type=int, required=True)
    analyze_parser.add_argument("--treatment-clicked", type=int, required=True)
    analyze_parser.add_argument("--treatment-sessions", type=int, required=True)
    analyze_parser.add_argument("--prior-shape1", type=float, default=1.0, help="Beta prior shape1 (default: 1)")
    analyze_parser.add_argument("--prior-shape2", type=float, default=1.0, help="Beta prior shape2 (default: 1)")
    analyze_parser.add_argument("--samples", type=int, default=None, help="Monte Carlo samples per posterior")
    analyze_parser.set_defaults(func=cmd_analyze)

    peeking_parser = subparsers.add_parser("peeking", help="Simulate peeking at A/A tests")
    peeking_parser.add_argument("--experiments", type=int, default=None, help="Number of A/A tests")
    peeking_parser.add_argument("--days", type=int, default=None, help="Days per test")
    peeking_parser.set_defaults(func=cmd_peeking)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        configure_logging(get_settings().log_level)
        return args.func(args)
    except ValueError as e:
        logger.error("invalid_input", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
