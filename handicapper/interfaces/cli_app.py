"""
Handicapper Command Line Interface
==================================

Usage:
    handicapper analyze race.csv --bankroll 500
    handicapper analyze race.json --json
    handicapper config
"""

import click
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from handicapper.config import get_config, setup_logging
from handicapper.probability import SoftmaxConverter, PlattCalibrator
from handicapper.strategy import (
    calculate_overlay_pipeline,
    generate_bet_recommendations,
    potential_return,
)

logger = logging.getLogger(__name__)


def load_race_file(path: str) -> List[Dict[str, Any]]:
    """
    Read horse records from CSV or JSON.

    JSON may be a list of records or an object with a "horses" list.
    """
    file_path = Path(path)
    if file_path.suffix.lower() == ".json":
        data = json.loads(file_path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("horses", [])
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a list of horse records")
        return data

    # Odds like "5-2" must stay text
    df = pd.read_csv(file_path, dtype={"morning_line_odds": str, "morningLineOdds": str})
    # Round-trip through JSON for plain Python scalars and None for blanks
    return json.loads(df.to_json(orient="records"))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, verbose: bool):
    """Handicapper - Race Value Engine"""
    ctx.ensure_object(dict)
    config = get_config()
    ctx.obj["config"] = config

    setup_logging("DEBUG" if verbose else config.log_level, config.log_dir)


@cli.command()
@click.argument("race_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--bankroll", "-b", type=float, default=None, help="Bankroll (default from config)")
@click.option("--temperature", "-t", type=float, default=None, help="Softmax temperature")
@click.option("--min-ev", type=float, default=None, help="Minimum EV per unit stake")
@click.option("--min-overlay", type=float, default=None, help="Minimum true overlay percent")
@click.option("--calibration", type=click.Path(exists=True, dir_okay=False), help="Platt parameters JSON")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of tables")
@click.pass_context
def analyze(ctx, race_file: str, bankroll: Optional[float], temperature: Optional[float],
            min_ev: Optional[float], min_overlay: Optional[float], calibration: Optional[str],
            as_json: bool):
    """Find overlays and size bets for one race."""
    config = ctx.obj["config"]

    try:
        horses = load_race_file(race_file)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Could not read {race_file}: {e}")

    calibrator = None
    if calibration:
        calibrator = PlattCalibrator.from_dict(json.loads(Path(calibration).read_text(encoding="utf-8")))
        if not calibrator.is_ready:
            logger.warning(
                f"Calibration fitted on {calibrator.races_used} races, "
                f"needs {calibrator.min_races_required}; using raw probabilities"
            )

    filters = config.recommendation_filters()
    overrides = {}
    if min_ev is not None:
        overrides["min_ev"] = min_ev
    if min_overlay is not None:
        overrides["min_overlay_percent"] = min_overlay

    try:
        if overrides:
            filters = replace(filters, **overrides)
        converter = SoftmaxConverter(config.softmax_config(), calibrator)
        output = calculate_overlay_pipeline(horses, converter=converter, temperature=temperature)
        bankroll = config.default_bankroll if bankroll is None else bankroll
        recs = generate_bet_recommendations(output, bankroll, filters, config.kelly_config())
    except ValueError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps({"pipeline": output.to_dict(), "recommendations": recs.to_dict()}, indent=2))
        return

    metrics = output.field_metrics
    click.echo(f"\n{'='*60}")
    click.echo("🏇 Handicapper Value Analysis")
    click.echo(f"{'='*60}\n")
    click.echo(f"Field size:  {metrics.field_size}")
    click.echo(f"Overround:   {metrics.overround:.3f} (takeout {metrics.takeout_percent:.1f}%)")
    click.echo(f"Calibrated:  {'yes' if output.calibration_applied else 'no'}")
    for warning in metrics.market_warnings:
        click.echo(f"⚠️  {warning}")
    click.echo()

    if not output.is_empty:
        frame = output.to_frame()[[
            "horse_name", "morning_line_odds", "model_probability",
            "normalized_market_probability", "true_overlay_percent",
            "expected_value", "value_classification",
        ]]
        click.echo(frame.to_string(float_format=lambda v: f"{v:.3f}"))
        click.echo()

    if recs.pass_suggested:
        click.echo(f"❌ Pass: {recs.pass_reason}")
        return

    click.echo(f"✅ {len(recs.recommendations)} bet(s), bankroll {recs.bankroll:,.2f}:\n")
    for i, rec in enumerate(recs.recommendations, 1):
        click.echo(f"{i}. #{rec.program_number} {rec.horse_name} @ {rec.decimal_odds:.2f}")
        click.echo(f"   Stake: {rec.stake_amount:.2f} ({rec.stake_percent:.2f}%), "
                   f"EV: {rec.expected_value:.1%}, Confidence: {rec.confidence.value}")
        click.echo(f"   {rec.reasoning}")
    click.echo()
    click.echo(f"Total exposure:   {recs.total_exposure:.2f}%")
    click.echo(f"Potential return: {potential_return(recs):,.2f}")


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Show effective configuration."""
    click.echo(json.dumps(ctx.obj["config"].to_dict(), indent=2))


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
