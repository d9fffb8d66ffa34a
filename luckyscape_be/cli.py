#!/usr/bin/env python3
"""
LuckyScape engine CLI.

Usage:
    luckyscape simulate --spins 50000 --bet 1 --seed 42 --graphs ./reports
    luckyscape simulate --spins 2000 --buy TREASURE_RAINBOW
    luckyscape spin --seed 7 --bet 2.5
    luckyscape paytable
"""
import json
import sys

import click

from luckyscape_be.exceptions import AppException
from luckyscape_be.utils.game_config import load_game_config
from luckyscape_be.utils.rng import RNG
from luckyscape_be.utils.slot_tester import SlotTester
from luckyscape_be.utils.spin_handler import get_paytable, new_engine_state, spin as engine_spin


@click.group()
@click.option('--config-path', type=click.Path(exists=True, dir_okay=False), default=None,
              help='Alternative gameConfig.json')
@click.pass_context
def cli(ctx, config_path):
    """LuckyScape cascade engine tools."""
    ctx.ensure_object(dict)
    try:
        ctx.obj['config'] = load_game_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error loading game config: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--spins', 'num_spins', type=click.IntRange(min=1), default=10000, show_default=True,
              help='Paid rounds to simulate')
@click.option('--bet', 'bet_amount', type=float, default=1.0, show_default=True, help='Bet per round')
@click.option('--seed', type=int, default=None, help='Seed for a reproducible run')
@click.option('--buy', 'bonus_buy_tier', default=None, help='Simulate bonus buys of this tier instead of base spins')
@click.option('--graphs', 'graphs_dir', type=click.Path(file_okay=False), default=None,
              help='Directory to write PNG graphs into')
@click.option('--json', 'as_json', is_flag=True, help='Print the summary as JSON')
@click.pass_context
def simulate(ctx, num_spins, bet_amount, seed, bonus_buy_tier, graphs_dir, as_json):
    """Run an RTP simulation."""
    config = ctx.obj['config']
    if bonus_buy_tier and bonus_buy_tier not in config.bonus_buy_multipliers:
        click.echo(f"Error: unknown bonus tier '{bonus_buy_tier}'", err=True)
        sys.exit(1)

    tester = SlotTester(num_spins, bet_amount=bet_amount, seed=seed, config=config, bonus_buy_tier=bonus_buy_tier)
    summary = tester.run_simulation()

    if as_json:
        click.echo(json.dumps(summary, indent=2))
    else:
        tester.print_summary_statistics(echo=click.echo)

    if graphs_dir:
        for path in tester.generate_graphs(graphs_dir):
            click.echo(f"Graph saved: {path}")


@cli.command()
@click.option('--bet', 'bet_amount', type=float, default=1.0, show_default=True)
@click.option('--seed', type=int, default=None)
@click.pass_context
def spin(ctx, bet_amount, seed):
    """Play a single base-game spin and print the result as JSON."""
    config = ctx.obj['config']
    try:
        _, result = engine_spin(new_engine_state(config), RNG(seed), bet_amount, config)
    except AppException as e:
        click.echo(f"Error: {e.status_message}", err=True)
        sys.exit(1)
    click.echo(json.dumps(result.to_dict(), indent=2))


@cli.command()
@click.pass_context
def paytable(ctx):
    """Print the paytable."""
    click.echo(json.dumps(get_paytable(ctx.obj['config']), indent=2))


if __name__ == '__main__':
    cli(obj={})
