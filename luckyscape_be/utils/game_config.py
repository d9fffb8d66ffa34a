import functools
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

from luckyscape_be.utils.weighted_table import WeightedTable

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'data', 'gameConfig.json'))

SIZE_BANDS = ('5', '6', '7', '8', '9-10', '11-12', '13+')
SYMBOL_KINDS = ('regular', 'wild', 'scatter', 'clover', 'trigger', 'collector')


@dataclass(frozen=True)
class SymbolIds:
    empty: int = 0
    wild: int = 6
    scatter: int = 7
    clover: int = 8
    trigger: int = 9
    collector: int = 10
    regular: FrozenSet[int] = frozenset()

    @property
    def non_cluster(self) -> FrozenSet[int]:
        return frozenset({self.empty, self.scatter, self.clover, self.trigger, self.collector})

    def is_cluster_eligible(self, symbol: int) -> bool:
        return symbol not in self.non_cluster


@dataclass(frozen=True)
class OutcomeChances:
    """Clover and pot chances per reveal; a coin is whatever they leave."""
    clover: float
    pot: float


@dataclass(frozen=True)
class FeatureSettings:
    outcome_chances: Dict[str, OutcomeChances]
    coin_table: WeightedTable
    top_tier_coin_table: WeightedTable
    clover_table: WeightedTable
    global_pot_reduction: float = 0.75
    pot_decay: float = 0.6
    round_cap: float = 10000
    max_collector_activations: int = 64
    max_feature_rounds: int = 1
    free_spin_trigger_chance: float = 0.35


@dataclass(frozen=True)
class BonusTier:
    tier_id: str
    level: int
    name: str
    scatters: int
    spins: int
    persist_golden_squares: bool = False
    guaranteed_trigger: bool = False
    force_trigger_on_final_spin: bool = False


@dataclass(frozen=True)
class GameConfig:
    game_id: str
    name: str
    grid_width: int
    grid_height: int
    min_cluster_size: int
    max_cascades_per_spin: int
    rtp: float
    max_win: float
    symbol_ids: SymbolIds
    symbol_names: Dict[int, str]
    paytable: Dict[int, Dict[str, float]]
    weights: Dict[str, WeightedTable]
    feature: FeatureSettings
    tiers: Tuple[BonusTier, ...]
    bonus_buy_enabled: bool = False
    bonus_buy_multipliers: Dict[str, float] = field(default_factory=dict)
    super_cascades: bool = False

    def get_tier(self, tier_id: str) -> Optional[BonusTier]:
        for tier in self.tiers:
            if tier.tier_id == tier_id:
                return tier
        return None

    def get_tier_by_level(self, level: int) -> Optional[BonusTier]:
        for tier in self.tiers:
            if tier.level == level:
                return tier
        return None


def load_game_config(path=None) -> GameConfig:
    """
    Loads and validates the game configuration JSON.

    Args:
        path (str, optional): Explicit file path. Falls back to the
            GAME_CONFIG_PATH environment variable, then the packaged
            data/gameConfig.json.

    Returns:
        GameConfig: Parsed, immutable configuration. Results are cached per path.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the JSON is malformed or fails validation.
    """
    file_path = path or os.getenv('GAME_CONFIG_PATH') or DEFAULT_CONFIG_PATH
    return _load_cached(os.path.abspath(file_path))


@functools.lru_cache(maxsize=8)
def _load_cached(file_path):
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Game configuration file not found at {file_path}")
    try:
        with open(file_path, 'r') as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e.msg} (line {e.lineno}, col {e.colno})")

    _validate_game_config(raw)
    config = parse_game_config(raw)
    logger.info(f"Loaded game config '{config.game_id}' from {file_path}")
    return config


def _validate_weight_list(entries, label):
    if not isinstance(entries, list):
        raise ValueError(f"Config validation error: {label} must be a list of [value, weight] pairs.")
    for i, entry in enumerate(entries):
        if not (isinstance(entry, list) and len(entry) == 2):
            raise ValueError(f"Config validation error: {label}[{i}] must be a [value, weight] pair.")
        if not isinstance(entry[0], (int, float)) or not isinstance(entry[1], (int, float)):
            raise ValueError(f"Config validation error: {label}[{i}] must contain numbers.")
        if entry[1] < 0:
            raise ValueError(f"Config validation error: {label}[{i}] has a negative weight.")


def _validate_game_config(raw):
    """
    Checks the raw JSON structure before it is turned into dataclasses.

    Raises:
        ValueError: If any validation check fails.
    """
    if not isinstance(raw, dict):
        raise ValueError("Config validation error: Root must be a dictionary.")
    game = raw.get('game')
    if not isinstance(game, dict):
        raise ValueError("Config validation error: 'game' key must be a dictionary.")

    for key in ('name', 'short_name'):
        value = game.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Config validation error: game.{key} must be a non-empty str.")

    layout = game.get('layout')
    if not isinstance(layout, dict):
        raise ValueError("Config validation error: game.layout must be a dictionary.")
    for key in ('rows', 'columns'):
        value = layout.get(key)
        if not isinstance(value, int) or value <= 0:
            raise ValueError(f"Config validation error: game.layout.{key} must be a positive integer.")

    min_cluster = game.get('min_cluster_size', 5)
    if not isinstance(min_cluster, int) or min_cluster < 1:
        raise ValueError("Config validation error: game.min_cluster_size must be a positive integer.")

    symbols = game.get('symbols')
    if not isinstance(symbols, list) or not symbols:
        raise ValueError("Config validation error: game.symbols must be a non-empty list.")
    for i, sym in enumerate(symbols):
        if not isinstance(sym, dict) or not isinstance(sym.get('id'), int):
            raise ValueError(f"Config validation error: game.symbols[{i}] must have an integer 'id'.")
        if sym.get('kind') not in SYMBOL_KINDS:
            raise ValueError(f"Config validation error: game.symbols[{i}].kind must be one of {SYMBOL_KINDS}.")
    for kind in SYMBOL_KINDS[1:]:
        if sum(1 for s in symbols if s['kind'] == kind) != 1:
            raise ValueError(f"Config validation error: exactly one '{kind}' symbol is required.")

    paytable = game.get('paytable')
    if not isinstance(paytable, dict):
        raise ValueError("Config validation error: game.paytable must be a dictionary.")
    for symbol_id, row in paytable.items():
        if not isinstance(row, dict):
            raise ValueError(f"Config validation error: game.paytable['{symbol_id}'] must be a dictionary.")
        for band in SIZE_BANDS:
            if not isinstance(row.get(band), (int, float)):
                raise ValueError(f"Config validation error: game.paytable['{symbol_id}'] is missing band '{band}'.")

    weights = game.get('weights')
    if not isinstance(weights, dict):
        raise ValueError("Config validation error: game.weights must be a dictionary.")
    for table_name in ('base', 'refill', 'replacement'):
        _validate_weight_list(weights.get(table_name), f"game.weights.{table_name}")

    feature = game.get('feature')
    if not isinstance(feature, dict):
        raise ValueError("Config validation error: game.feature must be a dictionary.")
    chances = feature.get('outcome_chances')
    if not isinstance(chances, dict) or 'BASE' not in chances:
        raise ValueError("Config validation error: game.feature.outcome_chances must define 'BASE'.")
    for mode, row in chances.items():
        if not isinstance(row, dict) or any(not isinstance(row.get(k), (int, float)) for k in ('clover', 'pot')):
            raise ValueError(f"Config validation error: game.feature.outcome_chances.{mode} needs clover and pot.")
        if row['clover'] < 0 or row['pot'] < 0 or row['clover'] + row['pot'] > 1:
            raise ValueError(f"Config validation error: game.feature.outcome_chances.{mode} clover and pot must be non-negative and sum to at most 1.")
    for table_name in ('coin_table', 'top_tier_coin_table', 'clover_table'):
        _validate_weight_list(feature.get(table_name), f"game.feature.{table_name}")

    tiers = game.get('bonus_tiers')
    if not isinstance(tiers, list) or not tiers:
        raise ValueError("Config validation error: game.bonus_tiers must be a non-empty list.")
    for i, tier in enumerate(tiers):
        for key, key_type in (('id', str), ('name', str), ('level', int), ('scatters', int), ('spins', int)):
            if not isinstance(tier.get(key), key_type):
                raise ValueError(f"Config validation error: game.bonus_tiers[{i}].{key} must be a {key_type.__name__}.")


def _table(entries):
    return WeightedTable((value, weight) for value, weight in entries)


def parse_game_config(raw) -> GameConfig:
    """Builds the typed GameConfig from already-validated JSON."""
    game = raw['game']
    symbols = game['symbols']
    by_kind = {}
    for sym in symbols:
        by_kind.setdefault(sym['kind'], []).append(sym['id'])

    symbol_ids = SymbolIds(
        wild=by_kind['wild'][0],
        scatter=by_kind['scatter'][0],
        clover=by_kind['clover'][0],
        trigger=by_kind['trigger'][0],
        collector=by_kind['collector'][0],
        regular=frozenset(by_kind.get('regular', [])),
    )

    feature_raw = game['feature']
    feature = FeatureSettings(
        outcome_chances={
            mode: OutcomeChances(clover=float(row['clover']), pot=float(row['pot']))
            for mode, row in feature_raw['outcome_chances'].items()
        },
        coin_table=_table(feature_raw['coin_table']),
        top_tier_coin_table=_table(feature_raw['top_tier_coin_table']),
        clover_table=_table(feature_raw['clover_table']),
        global_pot_reduction=float(feature_raw.get('global_pot_reduction', 0.75)),
        pot_decay=float(feature_raw.get('pot_decay', 0.6)),
        round_cap=float(feature_raw.get('round_cap', 10000)),
        max_collector_activations=int(feature_raw.get('max_collector_activations', 64)),
        max_feature_rounds=int(feature_raw.get('max_feature_rounds', 1)),
        free_spin_trigger_chance=float(feature_raw.get('free_spin_trigger_chance', 0.35)),
    )

    tiers = tuple(sorted(
        (
            BonusTier(
                tier_id=t['id'],
                level=t['level'],
                name=t['name'],
                scatters=t['scatters'],
                spins=t['spins'],
                persist_golden_squares=bool(t.get('persist_golden_squares', False)),
                guaranteed_trigger=bool(t.get('guaranteed_trigger', False)),
                force_trigger_on_final_spin=bool(t.get('force_trigger_on_final_spin', False)),
            )
            for t in game['bonus_tiers']
        ),
        key=lambda tier: tier.level,
    ))

    bonus_buy = game.get('bonus_buy', {})

    return GameConfig(
        game_id=game['short_name'],
        name=game['name'],
        grid_width=game['layout']['columns'],
        grid_height=game['layout']['rows'],
        min_cluster_size=game.get('min_cluster_size', 5),
        max_cascades_per_spin=game.get('max_cascades_per_spin', 20),
        rtp=float(game.get('rtp', 0.96)),
        max_win=float(game.get('max_win', 5000)),
        symbol_ids=symbol_ids,
        symbol_names={sym['id']: sym.get('name', str(sym['id'])) for sym in symbols},
        paytable={int(symbol_id): {band: float(row[band]) for band in SIZE_BANDS} for symbol_id, row in game['paytable'].items()},
        weights={name: _table(entries) for name, entries in game['weights'].items()},
        feature=feature,
        tiers=tiers,
        bonus_buy_enabled=bool(bonus_buy.get('enabled', False)),
        bonus_buy_multipliers={tier_id: float(mult) for tier_id, mult in bonus_buy.get('multipliers', {}).items()},
        super_cascades=bool(game.get('super_cascades', False)),
    )
