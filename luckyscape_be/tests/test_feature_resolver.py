import unittest
from dataclasses import replace

from luckyscape_be.tests.helpers import ScriptedRNG
from luckyscape_be.utils.feature_resolver import (
    CLOVER,
    COIN,
    COLLECTOR,
    adjusted_pot_chance,
    coin_tier,
    get_outcome_chances,
    resolve_feature,
)
from luckyscape_be.utils.game_config import FeatureSettings, OutcomeChances, load_game_config
from luckyscape_be.utils.rng import RNG
from luckyscape_be.utils.weighted_table import WeightedTable


def make_settings(clover=0.3, pot=0.2, coin_values=((100, 1),), clover_values=((3, 1),), **overrides):
    settings = FeatureSettings(
        outcome_chances={'BASE': OutcomeChances(clover=clover, pot=pot)},
        coin_table=WeightedTable(coin_values),
        top_tier_coin_table=WeightedTable(coin_values),
        clover_table=WeightedTable(clover_values),
        global_pot_reduction=1.0,
        pot_decay=0.5,
    )
    return replace(settings, **overrides) if overrides else settings


COIN_ONLY = dict(clover=0.0, pot=0.0)
ALWAYS_COLLECTOR = dict(clover=0.0, pot=1.0, pot_decay=1.0)


class TestPotChance(unittest.TestCase):

    def test_default_damping(self):
        self.assertAlmostEqual(adjusted_pot_chance(0.05, 0), 0.0375)
        self.assertAlmostEqual(adjusted_pot_chance(0.05, 1), 0.0225)

    def test_strictly_decreasing_and_positive(self):
        chances = [adjusted_pot_chance(0.05, n) for n in range(10)]
        for earlier, later in zip(chances, chances[1:]):
            self.assertLess(later, earlier)
        self.assertTrue(all(c > 0 for c in chances))

    def test_outcome_chances_fall_back_to_base(self):
        settings = load_game_config().feature
        self.assertEqual(get_outcome_chances(None, settings), settings.outcome_chances['BASE'])
        self.assertEqual(get_outcome_chances('NOPE', settings), settings.outcome_chances['BASE'])
        self.assertEqual(get_outcome_chances('LEPRECHAUN', settings).pot, 0.03)

    def test_coin_tiers(self):
        self.assertEqual(coin_tier(0.05), 'bronze')
        self.assertEqual(coin_tier(0.1), 'silver')
        self.assertEqual(coin_tier(0.5), 'silver')
        self.assertEqual(coin_tier(1), 'gold')
        self.assertEqual(coin_tier(100), 'gold')


class TestFeatureRound(unittest.TestCase):

    def test_clover_then_collector_absorbs_boosted_coin(self):
        # coin 100, clover x3 next to it, collector; the freed cell re-reveals as a coin
        rng = ScriptedRNG([0.1, 0.0, 0.6, 0.0, 0.95, 0.1, 0.0])
        result = resolve_feature([(2, 0), (0, 0), (1, 0)], rng, make_settings(), 6, 5)

        self.assertEqual(result.rounds_triggered, 1)
        event = result.rounds[0]
        self.assertEqual(
            [(r['x'], r['y'], r['type'], r['phase']) for r in event['reveals']],
            [(0, 0, COIN, 'initial'), (1, 0, CLOVER, 'initial'), (2, 0, COLLECTOR, 'initial'), (0, 0, COIN, 're-reveal')],
        )
        self.assertEqual(event['clover_hits'][0]['targets'], [{'x': 0, 'y': 0, 'type': COIN, 'before': 100.0, 'after': 300.0}])

        step = event['collector_steps'][0]
        self.assertEqual((step['x'], step['y']), (2, 0))
        self.assertEqual(step['collected_before_multiplier'], 300.0)
        self.assertEqual(step['collected_value'], 300.0)
        self.assertEqual(step['freed_positions'], [[0, 0]])

        # the re-revealed coin is not counted once a collector has activated
        self.assertEqual(event['round_collection_value'], 300.0)
        self.assertEqual(result.total_value, 300.0)
        self.assertEqual(result.clovers_hit, [3.0])
        self.assertEqual(result.collectors_hit, [1.0])

    def test_coins_only_sum(self):
        result = resolve_feature([(0, 0), (5, 4)], ScriptedRNG([]), make_settings(**COIN_ONLY), 6, 5)
        self.assertEqual(result.total_value, 200.0)
        self.assertEqual(result.rounds[0]['collector_steps'], [])

    def test_clover_multiplies_adjacent_coin_only(self):
        settings = make_settings(clover_values=((4, 1),))
        adjacent = resolve_feature([(0, 0), (1, 1)], ScriptedRNG([0.1, 0.0, 0.6, 0.0]), settings, 6, 5)
        self.assertEqual(adjacent.total_value, 400.0)

        distant = resolve_feature([(0, 0), (2, 2)], ScriptedRNG([0.1, 0.0, 0.6, 0.0]), settings, 6, 5)
        self.assertEqual(distant.total_value, 100.0)
        self.assertEqual(distant.rounds[0]['clover_hits'], [])

    def test_round_value_is_capped(self):
        settings = make_settings(coin_values=((20000, 1),), **COIN_ONLY)
        result = resolve_feature([(0, 0)], ScriptedRNG([]), settings, 6, 5)
        self.assertEqual(result.total_value, 10000)

    def test_activation_cap_stops_endless_chain(self):
        settings = make_settings(max_collector_activations=10, **ALWAYS_COLLECTOR)
        result = resolve_feature([(0, 0), (1, 0)], ScriptedRNG([]), settings, 6, 5)
        event = result.rounds[0]
        self.assertTrue(event['activation_cap_reached'])
        self.assertEqual(len(event['collector_steps']), 10)

    def test_reveal_order_is_row_major(self):
        result = resolve_feature([(1, 1), (0, 1), (2, 0)], ScriptedRNG([]), make_settings(**COIN_ONLY), 6, 5)
        self.assertEqual([(r['x'], r['y']) for r in result.rounds[0]['reveals']], [(2, 0), (0, 1), (1, 1)])

    def test_no_golden_squares_no_rounds(self):
        result = resolve_feature([], ScriptedRNG([]), make_settings(), 6, 5)
        self.assertFalse(result.activated)
        self.assertEqual(result.total_value, 0.0)


class TestFeatureRounds(unittest.TestCase):

    def test_single_round_by_default(self):
        settings = make_settings(max_collector_activations=2, **ALWAYS_COLLECTOR)
        result = resolve_feature([(0, 0), (1, 0)], ScriptedRNG([]), settings, 6, 5)
        self.assertEqual(result.rounds_triggered, 1)

    def test_extra_rounds_need_a_collector(self):
        chaining = make_settings(max_collector_activations=2, max_feature_rounds=3, **ALWAYS_COLLECTOR)
        result = resolve_feature([(0, 0), (1, 0)], ScriptedRNG([]), chaining, 6, 5)
        self.assertEqual([e['round_index'] for e in result.rounds], [1, 2, 3])

        coins = make_settings(max_feature_rounds=3, **COIN_ONLY)
        result = resolve_feature([(0, 0)], ScriptedRNG([]), coins, 6, 5)
        self.assertEqual(result.rounds_triggered, 1)

    def test_seeded_runs_are_reproducible(self):
        settings = load_game_config().feature
        squares = [(x, y) for y in range(5) for x in range(6)]
        first = resolve_feature(squares, RNG(seed=99), settings, 6, 5, tier_id='TREASURE_RAINBOW')
        second = resolve_feature(squares, RNG(seed=99), settings, 6, 5, tier_id='TREASURE_RAINBOW')
        self.assertEqual(first.rounds, second.rounds)
        self.assertEqual(first.total_value, second.total_value)
        self.assertGreater(first.total_value, 0)
