"""
Spin orchestration for LuckyScape.

Engine state (grid, golden squares, bonus session) is an explicit
EngineState value. Every operation here takes a state and returns a new one
alongside its payload, leaving the input untouched, so callers can keep old
states as snapshots or replay a seeded sequence.
"""
import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import FrozenSet, List, Optional, Tuple

from luckyscape_be.error_codes import ErrorCodes
from luckyscape_be.exceptions import BonusStateException, ConfigurationException, ValidationException
from luckyscape_be.utils.bonus_session import (
    BonusSession,
    apply_retrigger,
    mark_trigger_seen,
    on_spin_complete,
    open_session,
)
from luckyscape_be.utils.cascade_engine import (
    clone_grid,
    create_empty_grid,
    execute_cascade,
    fill_from_top,
)
from luckyscape_be.utils.cluster_detector import (
    find_scatters,
    find_symbol_positions,
    find_wins,
    get_tier_for_scatter_count,
    super_cascade_positions,
)
from luckyscape_be.utils.feature_resolver import FeatureResult, resolve_feature
from luckyscape_be.utils.game_config import SIZE_BANDS, load_game_config
from luckyscape_be.utils.weighted_table import weighted_choice

logger = logging.getLogger(__name__)

Position = Tuple[int, int]


def _positions_to_list(positions):
    return [[x, y] for x, y in sorted(positions, key=lambda p: (p[1], p[0]))]


def round_credits(value) -> float:
    """Rounds a credit amount half-up to 2 decimals."""
    return float(Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


@dataclass
class EngineState:
    grid: list
    golden_squares: FrozenSet[Position] = frozenset()
    session: Optional[BonusSession] = None

    @property
    def in_free_spins(self) -> bool:
        return self.session is not None

    @property
    def free_spins_remaining(self) -> int:
        return self.session.spins_remaining if self.session else 0

    def copy(self) -> 'EngineState':
        # BonusSession is frozen, so sharing it is safe
        return EngineState(grid=clone_grid(self.grid), golden_squares=frozenset(self.golden_squares), session=self.session)

    def to_dict(self) -> dict:
        return {
            'grid': clone_grid(self.grid),
            'golden_squares': _positions_to_list(self.golden_squares),
            'golden_squares_count': len(self.golden_squares),
            'in_free_spins': self.in_free_spins,
            'free_spins_remaining': self.free_spins_remaining,
            'bonus_mode': self.session.to_display() if self.session else None,
        }


@dataclass
class SpinResult:
    grid: list
    initial_win_positions: FrozenSet[Position]
    win_positions: FrozenSet[Position]
    cascades: List[dict]
    win_multiple: float
    total_win: float
    cascade_count: int
    scatter_count: int
    scatter_positions: List[Position]
    bonus_mode: Optional[dict] = None
    in_free_spins: bool = False
    free_spins_remaining: int = 0
    max_win_reached: bool = False
    bonus_features: dict = field(default_factory=dict)
    retrigger: Optional[dict] = None
    bonus_ended: bool = False

    def to_dict(self) -> dict:
        return {
            'grid': clone_grid(self.grid),
            'initial_win_positions': _positions_to_list(self.initial_win_positions),
            'win_positions': _positions_to_list(self.win_positions),
            'cascades': self.cascades,
            'win_multiple': self.win_multiple,
            'total_win': self.total_win,
            'cascade_count': self.cascade_count,
            'scatter_count': self.scatter_count,
            'scatter_positions': _positions_to_list(self.scatter_positions),
            'bonus_mode': self.bonus_mode,
            'in_free_spins': self.in_free_spins,
            'free_spins_remaining': self.free_spins_remaining,
            'max_win_reached': self.max_win_reached,
            'bonus_features': self.bonus_features,
            'retrigger': self.retrigger,
            'bonus_ended': self.bonus_ended,
        }


def new_engine_state(config=None) -> EngineState:
    config = config or load_game_config()
    return EngineState(grid=create_empty_grid(config.grid_width, config.grid_height))


def validate_bet_amount(bet_amount, min_bet, max_bet) -> float:
    """
    Caller-facing bet check. Nothing is mutated when it fails.

    Raises:
        ValidationException: Non-numeric bets or bets outside [min_bet, max_bet].
    """
    try:
        bet = float(bet_amount)
    except (TypeError, ValueError):
        raise ValidationException(
            status_message="Bet amount must be a number.",
            details={'bet_amount': bet_amount},
            error_code=ErrorCodes.INVALID_BET,
        )
    if math.isnan(bet) or math.isinf(bet) or bet < min_bet or bet > max_bet:
        raise ValidationException(
            status_message=f"Bet amount must be between {min_bet} and {max_bet}.",
            details={'bet_amount': bet_amount, 'min_bet': min_bet, 'max_bet': max_bet},
            error_code=ErrorCodes.INVALID_BET,
        )
    return bet


def _trigger_allowed(session, rng, config) -> bool:
    """Base game always allows the rainbow; free spins allow it on guaranteed tiers or a 35% roll."""
    if session is None or session.guaranteed_trigger:
        return True
    return rng.next_float() < config.feature.free_spin_trigger_chance


def _must_force_trigger(session) -> bool:
    if session is None:
        return False
    if session.guaranteed_trigger:
        return True
    return session.force_trigger_on_final_spin and session.is_final_spin and not session.saw_trigger_this_session


def _enforce_trigger_singleton(grid, rng, config):
    """Keeps one random rainbow and rerolls any others from the replacement table."""
    trigger = config.symbol_ids.trigger
    triggers = find_symbol_positions(grid, trigger)
    if len(triggers) <= 1:
        return
    keep_index = rng.next_int(0, len(triggers) - 1)
    replacement = config.weights['replacement'].without(trigger)
    fallback = min(config.symbol_ids.regular)
    for index, (x, y) in enumerate(triggers):
        if index == keep_index:
            continue
        grid[y][x] = weighted_choice(replacement, rng, default=fallback)


def _force_trigger(grid, rng, config) -> Optional[Position]:
    """Places a rainbow on a random regular-symbol cell when none is on the grid."""
    symbol_ids = config.symbol_ids
    if find_symbol_positions(grid, symbol_ids.trigger):
        return None
    candidates = [(x, y) for y, row in enumerate(grid) for x, value in enumerate(row) if value in symbol_ids.regular]
    if not candidates:
        return None
    x, y = rng.pick(candidates)
    grid[y][x] = symbol_ids.trigger
    return (x, y)


def _draw_table(config, name, trigger_allowed, grid):
    table = config.weights[name]
    trigger = config.symbol_ids.trigger
    if not trigger_allowed or find_symbol_positions(grid, trigger):
        return table.without(trigger)
    return table


def _generate_grid(rng, config, trigger_allowed):
    grid = create_empty_grid(config.grid_width, config.grid_height)
    table = _draw_table(config, 'base', trigger_allowed, grid)
    fill_from_top(grid, table, rng, fallback=min(config.symbol_ids.regular))
    return grid


def _run_cascades(grid, rng, config, trigger_allowed):
    cascades = []
    golden = set()
    initial_wins = frozenset()
    final_wins = frozenset()
    payout = 0.0

    for cascade_index in range(config.max_cascades_per_spin):
        win_result = find_wins(grid, config)
        if not win_result.clusters:
            break
        if cascade_index == 0:
            initial_wins = win_result.win_positions
        final_wins = win_result.win_positions
        golden.update(win_result.win_positions)
        payout += win_result.total_payout

        if config.super_cascades:
            to_remove = super_cascade_positions(grid, win_result, config)
        else:
            to_remove = win_result.win_positions

        before_grid = clone_grid(grid)
        table = _draw_table(config, 'refill', trigger_allowed, grid)
        outcome = execute_cascade(grid, to_remove, rng, table)
        _enforce_trigger_singleton(grid, rng, config)

        cascades.append({
            'index': cascade_index + 1,
            'before_grid': before_grid,
            'after_grid': clone_grid(grid),
            'win_positions': _positions_to_list(to_remove),
            'clusters': [cluster.to_dict() for cluster in win_result.clusters],
            'payout': win_result.total_payout,
            'move_data': outcome.move_data,
        })
        logger.debug(f"Cascade {cascade_index + 1}: {len(win_result.clusters)} clusters paying {win_result.total_payout}x")

    return cascades, golden, initial_wins, final_wins, payout


def _bonus_feature_display(session, trigger_positions, golden, feature, activated):
    return {
        'mode_id': session.tier_id if session else None,
        'mode_name': session.name if session else None,
        'persist_golden_squares': bool(session and session.persist_golden_squares),
        'guaranteed_trigger_every_spin': bool(session and session.guaranteed_trigger),
        'rainbow_triggered': activated,
        'spin_had_rainbow_symbol': bool(trigger_positions),
        'rainbow_positions': _positions_to_list(trigger_positions),
        'clover_symbols_hit': list(feature.clovers_hit),
        'pot_symbols_hit': list(feature.collectors_hit),
        'spin_collection_value': feature.total_value,
        'chain_rounds_triggered': feature.rounds_triggered,
        'golden_squares': _positions_to_list(golden),
        'golden_squares_count': len(golden),
        'bonus_event_timeline': feature.rounds,
    }


def spin(state, rng, bet_amount, config=None):
    """
    Plays one spin: generate, cascade until stable, resolve the golden-square
    feature, then open or advance the bonus session.

    A free spin is counted, then its scatters are applied as a retrigger, and
    the session is closed when nothing is left. Callers never need to call
    advance_free_spins themselves. A state holding an already spent session
    has it closed first, and the spin is played as a base spin.

    Args:
        state (EngineState): State before the spin. Not modified.
        rng: Random source (next_float / next_int / pick).
        bet_amount (float): Stake used to convert the bet multiple to credits.
        config (GameConfig, optional): Defaults to the packaged game config.

    Returns:
        tuple[EngineState, SpinResult]: The post-spin state and the result payload.
    """
    config = config or load_game_config()
    if state.session is not None and state.session.is_complete:
        state, _ = advance_free_spins(state)
    else:
        state = state.copy()
    session = state.session
    was_in_free_spins = session is not None
    symbol_ids = config.symbol_ids

    # Outside free spins golden squares only live for one spin
    golden = set(state.golden_squares) if session is not None else set()

    trigger_allowed = _trigger_allowed(session, rng, config)
    grid = _generate_grid(rng, config, trigger_allowed)
    _enforce_trigger_singleton(grid, rng, config)
    if _must_force_trigger(session):
        forced = _force_trigger(grid, rng, config)
        if forced:
            logger.debug(f"Forced rainbow onto {forced} for tier {session.tier_id}")

    cascades, won_positions, initial_wins, final_wins, cluster_payout = _run_cascades(grid, rng, config, trigger_allowed)
    golden.update(won_positions)

    trigger_positions = find_symbol_positions(grid, symbol_ids.trigger)
    if session is not None and trigger_positions:
        session = mark_trigger_seen(session)

    activated = bool(golden) and bool(trigger_positions)
    charged = frozenset(golden)
    feature = FeatureResult()
    if activated:
        top_level = max(tier.level for tier in config.tiers)
        feature = resolve_feature(
            charged,
            rng,
            config.feature,
            config.grid_width,
            config.grid_height,
            tier_id=session.tier_id if session else None,
            use_top_coin_table=bool(session and session.level == top_level),
        )

    if session is None or (activated and not session.persist_golden_squares):
        golden = set()

    win_multiple = cluster_payout + feature.total_value
    max_win_reached = win_multiple >= config.max_win
    if max_win_reached:
        win_multiple = config.max_win
    total_win = round_credits(win_multiple * float(bet_amount))

    scatters = find_scatters(grid, config)
    bonus_mode = None
    if session is None:
        tier = get_tier_for_scatter_count(scatters.count, config.tiers)
        if tier is not None:
            session = open_session(tier)
            golden = set()
            bonus_mode = {
                'type': tier.tier_id,
                'name': tier.name,
                'initial_spins': tier.spins,
                'scatter_count': scatters.count,
            }
            logger.info(f"Bonus {tier.tier_id} triggered by {scatters.count} scatters ({tier.spins} spins)")
    else:
        session = on_spin_complete(session, total_win)

    bonus_features = _bonus_feature_display(session, trigger_positions, charged, feature, activated)

    new_state = EngineState(grid=grid, golden_squares=frozenset(golden), session=session)
    retrigger = None
    bonus_ended = False
    if was_in_free_spins:
        # Retrigger before closing so scatters on the last spin still extend it
        new_state, retrigger = handle_free_spins_retrigger(new_state, scatters.count, config)
        new_state, bonus_ended = advance_free_spins(new_state)

    result = SpinResult(
        grid=clone_grid(grid),
        initial_win_positions=initial_wins,
        win_positions=final_wins,
        cascades=cascades,
        win_multiple=win_multiple,
        total_win=total_win,
        cascade_count=len(cascades),
        scatter_count=scatters.count,
        scatter_positions=scatters.positions,
        bonus_mode=bonus_mode,
        in_free_spins=new_state.in_free_spins,
        free_spins_remaining=new_state.free_spins_remaining,
        max_win_reached=max_win_reached,
        bonus_features=bonus_features,
        retrigger=retrigger,
        bonus_ended=bonus_ended,
    )
    return new_state, result


def start_bonus_mode(state, tier_id, config=None):
    """
    Opens a bonus session directly (bonus buy).

    Raises:
        BonusStateException: A session is already live.
        ConfigurationException: `tier_id` is not a configured tier.
    """
    config = config or load_game_config()
    if state.session is not None:
        raise BonusStateException(
            status_message="Cannot start a bonus while free spins are active.",
            details={'active_tier': state.session.tier_id},
        )
    tier = config.get_tier(tier_id)
    if tier is None:
        raise ConfigurationException(
            status_message=f"Unknown bonus mode: {tier_id}",
            details={'tier_id': tier_id},
            error_code=ErrorCodes.UNKNOWN_BONUS_TIER,
        )

    new_state = state.copy()
    new_state.session = open_session(tier)
    new_state.golden_squares = frozenset()
    logger.info(f"Bonus {tier.tier_id} started directly ({tier.spins} spins)")
    return new_state, {'type': tier.tier_id, 'name': tier.name, 'initial_spins': tier.spins}


def handle_free_spins_retrigger(state, scatter_count, config=None):
    """Awards extra spins or a tier upgrade for scatters landed during free spins."""
    if state.session is None:
        return state.copy(), None
    config = config or load_game_config()
    new_state = state.copy()
    before = state.session
    after = apply_retrigger(before, scatter_count, config.tiers)
    new_state.session = after
    if after == before:
        return new_state, None
    return new_state, {
        'extra_spins': after.spins_remaining - before.spins_remaining,
        'upgraded': after.tier_id != before.tier_id,
        'from_tier': before.tier_id,
        'tier_id': after.tier_id,
        'free_spins_remaining': after.spins_remaining,
    }


def advance_free_spins(state):
    """
    Ends the session once its remaining count reaches 0.

    Returns:
        tuple[EngineState, bool]: New state and whether the session just ended.
    """
    new_state = state.copy()
    if new_state.session is None:
        return new_state, False
    if new_state.session.spins_remaining <= 0:
        logger.info(f"Bonus {new_state.session.tier_id} finished, total won {new_state.session.total_won}")
        new_state.session = None
        new_state.golden_squares = frozenset()
        return new_state, True
    return new_state, False


def get_bonus_buy_offers(bet_amount, config=None) -> dict:
    config = config or load_game_config()
    offers = []
    for tier in config.tiers:
        multiplier = config.bonus_buy_multipliers.get(tier.tier_id)
        if multiplier is None:
            continue
        offers.append({
            'tier_id': tier.tier_id,
            'name': tier.name,
            'multiplier': multiplier,
            'cost': round_credits(float(bet_amount) * multiplier),
        })
    return {'enabled': config.bonus_buy_enabled, 'offers': offers}


def get_paytable(config=None) -> dict:
    config = config or load_game_config()
    return {
        'symbols': [{'id': symbol_id, 'name': name} for symbol_id, name in sorted(config.symbol_names.items())],
        'size_bands': list(SIZE_BANDS),
        'paytable': {str(symbol_id): dict(row) for symbol_id, row in sorted(config.paytable.items())},
        'scatter_triggers': {
            str(tier.scatters): f"{tier.name} ({tier.spins} free spins)" for tier in config.tiers
        },
        'min_cluster_size': config.min_cluster_size,
        'max_win': config.max_win,
        'rtp': config.rtp,
    }
