import unittest

from luckyscape_be.utils.bonus_session import (
    apply_retrigger,
    mark_trigger_seen,
    on_spin_complete,
    open_session,
    retrigger_decision,
)
from luckyscape_be.utils.game_config import load_game_config


class TestRetriggerDecision(unittest.TestCase):

    def test_mapping(self):
        cases = [
            # (scatters, level) -> (extra, upgrade_to)
            ((0, 1), (0, None)),
            ((1, 2), (0, None)),
            ((2, 1), (2, None)),
            ((3, 1), (4, None)),
            ((4, 1), (4, 2)),
            ((4, 2), (4, None)),
            ((5, 1), (4, 3)),
            ((5, 2), (4, 3)),
            ((5, 3), (4, None)),
            ((6, 3), (4, None)),
        ]
        for (scatters, level), (extra, upgrade) in cases:
            decision = retrigger_decision(scatters, level)
            self.assertEqual((decision.extra_spins, decision.upgrade_to_level), (extra, upgrade), f"{scatters} scatters at level {level}")


class TestSessionLifecycle(unittest.TestCase):

    def setUp(self):
        self.config = load_game_config()
        self.leprechaun = self.config.get_tier('LEPRECHAUN')

    def test_open_session_copies_tier(self):
        session = open_session(self.leprechaun)
        self.assertEqual(session.tier_id, 'LEPRECHAUN')
        self.assertEqual(session.spins_remaining, 8)
        self.assertFalse(session.persist_golden_squares)
        self.assertFalse(session.is_final_spin)
        self.assertEqual(open_session(self.leprechaun, spins=1).spins_remaining, 1)

    def test_on_spin_complete_counts_and_accumulates(self):
        session = open_session(self.leprechaun)
        session = on_spin_complete(session, 1.25)
        session = on_spin_complete(session, 0.1)
        self.assertEqual(session.spins_remaining, 6)
        self.assertEqual(session.spins_completed, 2)
        self.assertEqual(session.total_won, 1.35)
        self.assertFalse(session.is_complete)

    def test_upgrade_carries_progress_forward(self):
        session = open_session(self.leprechaun)
        session = on_spin_complete(session, 3.0)
        session = mark_trigger_seen(session)

        upgraded = apply_retrigger(session, 4, self.config.tiers)
        self.assertEqual(upgraded.tier_id, 'GLITTER_GOLD')
        self.assertEqual(upgraded.level, 2)
        self.assertEqual(upgraded.spins_remaining, 7 + 4)
        self.assertEqual(upgraded.spins_completed, 1)
        self.assertEqual(upgraded.total_won, 3.0)
        self.assertTrue(upgraded.saw_trigger_this_session)
        self.assertTrue(upgraded.persist_golden_squares)
        self.assertTrue(upgraded.force_trigger_on_final_spin)

    def test_top_tier_only_gains_spins(self):
        session = open_session(self.config.get_tier('TREASURE_RAINBOW'))
        after = apply_retrigger(session, 5, self.config.tiers)
        self.assertEqual(after.tier_id, 'TREASURE_RAINBOW')
        self.assertEqual(after.spins_remaining, 16)

    def test_no_change_returns_same_session(self):
        session = open_session(self.leprechaun)
        self.assertIs(apply_retrigger(session, 1, self.config.tiers), session)

    def test_display_payload(self):
        display = open_session(self.config.get_tier('TREASURE_RAINBOW')).to_display()
        self.assertEqual(display['id'], 'TREASURE_RAINBOW')
        self.assertEqual(display['remaining'], 12)
        self.assertTrue(display['guaranteed_trigger_every_spin'])
