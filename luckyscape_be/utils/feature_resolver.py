"""
Golden-square feature resolution.

When a rainbow trigger lands on a board that still holds golden squares,
every golden square is revealed as a coin, a clover or a collector (pot).
Clovers multiply neighbouring coins and full collectors. Collectors then
activate one at a time, first in first out: each one absorbs every coin and
every other full collector on the board, multiplies the sum by its own
value and becomes full. Cells it absorbed are revealed again, which can
produce new clovers and new collectors and so keep the chain going.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import List

from luckyscape_be.utils.weighted_table import weighted_choice

logger = logging.getLogger(__name__)

COIN = 'coin'
CLOVER = 'clover'
COLLECTOR = 'collector'

MOORE_OFFSETS = [(dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1) if (dx, dy) != (0, 0)]


def _row_major(positions):
    return sorted(positions, key=lambda p: (p[1], p[0]))


def adjusted_pot_chance(base, collector_count, global_reduction=0.75, decay=0.6) -> float:
    """
    Collector (pot) reveal chance damped by how many collectors are already on the board.

    base * global_reduction * decay ** collector_count; strictly decreasing in
    collector_count and always positive for a positive base.
    """
    return base * global_reduction * (decay ** max(0, collector_count))


def get_outcome_chances(tier_id, settings):
    """Per-mode coin/clover/pot chances; unknown or missing tiers use the base game row."""
    if tier_id and tier_id in settings.outcome_chances:
        return settings.outcome_chances[tier_id]
    return settings.outcome_chances['BASE']


def coin_tier(value) -> str:
    """Display tier for a coin worth `value` bet multiples."""
    if value >= 1:
        return 'gold'
    if value >= 0.1:
        return 'silver'
    return 'bronze'


@dataclass
class BoardEntity:
    kind: str
    value: float
    full: bool = False


@dataclass
class FeatureResult:
    rounds: List[dict] = field(default_factory=list)
    total_value: float = 0.0
    clovers_hit: List[float] = field(default_factory=list)
    collectors_hit: List[float] = field(default_factory=list)

    @property
    def rounds_triggered(self) -> int:
        return len(self.rounds)

    @property
    def activated(self) -> bool:
        return bool(self.rounds)


class FeatureRound:
    """One reveal/collection pass over a set of golden squares."""

    def __init__(self, round_index, rng, settings, width, height, tier_id=None, use_top_coin_table=False):
        self.round_index = round_index
        self.rng = rng
        self.settings = settings
        self.width = width
        self.height = height
        self.chances = get_outcome_chances(tier_id, settings)
        self.coin_table = settings.top_tier_coin_table if use_top_coin_table else settings.coin_table
        self.board = {}
        self.queue = deque()
        self.activations = 0
        self.clovers_hit = []
        self.collectors_hit = []
        self.event = {
            'round_index': round_index,
            'reveals': [],
            'clover_hits': [],
            'collector_steps': [],
            'round_collection_value': 0.0,
            'collector_count': 0,
            'activation_cap_reached': False,
        }

    def _collector_count(self):
        return sum(1 for entity in self.board.values() if entity.kind == COLLECTOR)

    def _draw_outcome(self):
        pot = adjusted_pot_chance(
            self.chances.pot,
            self._collector_count(),
            self.settings.global_pot_reduction,
            self.settings.pot_decay,
        )
        clover = self.chances.clover
        coin = max(0.0, 1.0 - clover - pot)

        roll = self.rng.next_float()
        if roll < coin:
            value = weighted_choice(self.coin_table, self.rng)
            return BoardEntity(COIN, float(value))
        if roll < coin + clover:
            multiplier = weighted_choice(self.settings.clover_table, self.rng)
            return BoardEntity(CLOVER, float(multiplier))
        return BoardEntity(COLLECTOR, 1.0)

    def reveal(self, positions, phase):
        """Reveals `positions` in row-major order; returns the new clover positions."""
        new_clovers = []
        for pos in _row_major(positions):
            entity = self._draw_outcome()
            self.board[pos] = entity
            entry = {'x': pos[0], 'y': pos[1], 'type': entity.kind, 'value': entity.value, 'phase': phase}
            if entity.kind == COIN:
                entry['tier'] = coin_tier(entity.value)
            elif entity.kind == CLOVER:
                self.clovers_hit.append(entity.value)
                new_clovers.append(pos)
            else:
                self.collectors_hit.append(entity.value)
                self.queue.append(pos)
            self.event['reveals'].append(entry)
        return new_clovers

    def apply_clover(self, pos):
        clover = self.board[pos]
        targets = []
        for dx, dy in MOORE_OFFSETS:
            tx, ty = pos[0] + dx, pos[1] + dy
            if tx < 0 or tx >= self.width or ty < 0 or ty >= self.height:
                continue
            target = self.board.get((tx, ty))
            if target is None:
                continue
            if target.kind == COIN or (target.kind == COLLECTOR and target.full):
                before = target.value
                target.value = before * clover.value
                targets.append({'x': tx, 'y': ty, 'type': target.kind, 'before': before, 'after': target.value})
        if targets:
            self.event['clover_hits'].append({'x': pos[0], 'y': pos[1], 'multiplier': clover.value, 'targets': targets})

    def activate(self, pos):
        collector = self.board[pos]
        absorbed = []
        for other_pos in _row_major(self.board.keys()):
            if other_pos == pos:
                continue
            other = self.board[other_pos]
            if other.kind == COIN or (other.kind == COLLECTOR and other.full):
                absorbed.append((other_pos, other))

        collected_before = sum(entity.value for _, entity in absorbed)
        multiplier = collector.value
        collector.value = collected_before * multiplier
        collector.full = True
        self.activations += 1

        freed = [p for p, _ in absorbed]
        for p in freed:
            del self.board[p]

        self.event['collector_steps'].append({
            'x': pos[0],
            'y': pos[1],
            'multiplier': multiplier,
            'absorbed': [{'x': p[0], 'y': p[1], 'type': e.kind, 'value': e.value} for p, e in absorbed],
            'collected_before_multiplier': collected_before,
            'collected_value': collector.value,
            'freed_positions': [[p[0], p[1]] for p in freed],
        })
        return freed

    def run(self, golden_squares):
        for pos in self.reveal(golden_squares, 'initial'):
            self.apply_clover(pos)

        cap = self.settings.max_collector_activations
        while self.queue:
            if self.activations >= cap:
                self.event['activation_cap_reached'] = True
                logger.warning(f"Feature round {self.round_index} hit the collector activation cap ({cap})")
                break
            pos = self.queue.popleft()
            entity = self.board.get(pos)
            if entity is None or entity.kind != COLLECTOR or entity.full:
                continue
            freed = self.activate(pos)
            for clover_pos in self.reveal(freed, 're-reveal'):
                self.apply_clover(clover_pos)

        if self.activations > 0:
            raw_value = sum(e.value for e in self.board.values() if e.kind == COLLECTOR and e.full)
        else:
            raw_value = sum(e.value for e in self.board.values() if e.kind == COIN)

        self.event['round_collection_value'] = min(self.settings.round_cap, raw_value)
        self.event['collector_count'] = len(self.collectors_hit)
        return self.event


def resolve_feature(golden_squares, rng, settings, width, height, tier_id=None, use_top_coin_table=False) -> FeatureResult:
    """
    Runs the golden-square feature over `golden_squares`.

    Args:
        golden_squares (Iterable[tuple[int, int]]): Charged (x, y) positions.
        rng: Random source (next_float / next_int).
        settings (FeatureSettings): Outcome chances, value tables and caps.
        width (int), height (int): Board bounds for clover neighbourhoods.
        tier_id (str, optional): Active bonus tier, selects outcome chances.
        use_top_coin_table (bool): Draw coins from the top-tier table.

    Returns:
        FeatureResult: Appended round events and the summed round values.
        A single round runs unless settings.max_feature_rounds is raised, in
        which case further rounds run while the previous one revealed a collector.
    """
    positions = list(golden_squares)
    result = FeatureResult()
    if not positions:
        return result

    max_rounds = max(1, settings.max_feature_rounds)
    for round_index in range(1, max_rounds + 1):
        feature_round = FeatureRound(round_index, rng, settings, width, height, tier_id, use_top_coin_table)
        event = feature_round.run(positions)
        result.rounds.append(event)
        result.total_value += event['round_collection_value']
        result.clovers_hit.extend(feature_round.clovers_hit)
        result.collectors_hit.extend(feature_round.collectors_hit)
        logger.debug(f"Feature round {round_index}: value={event['round_collection_value']} collectors={event['collector_count']}")
        if event['collector_count'] == 0:
            break

    return result
