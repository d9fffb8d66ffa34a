import math
import os
import unittest

import pytest

from luckyscape_be.utils.slot_tester import SlotTester, _bucket_for


class TestSlotTester(unittest.TestCase):

    def test_base_game_simulation(self):
        tester = SlotTester(200, bet_amount=1.0, seed=42)
        summary = tester.run_simulation()

        self.assertEqual(summary['rounds'], 200)
        self.assertEqual(summary['total_bet'], 200.0)
        self.assertGreaterEqual(summary['rtp'], 0.0)
        self.assertEqual(sum(summary['wins_by_multiplier'].values()), 200)
        self.assertEqual(tester.rtp_over_time[-1]['spin_count'], 200)
        self.assertLessEqual(tester.hit_count, 200)
        self.assertEqual(len(tester.wins_per_round), 200)
        self.assertAlmostEqual(tester.total_win, tester.total_base_win + tester.total_bonus_win)
        low, high = summary['rtp_confidence_interval']
        self.assertLessEqual(low, summary['rtp'] + 1e-9)
        self.assertGreaterEqual(high, summary['rtp'] - 1e-9)

    def test_seeded_runs_match(self):
        first = SlotTester(100, seed=7).run_simulation()
        second = SlotTester(100, seed=7).run_simulation()
        self.assertEqual(first, second)

    def test_bonus_buy_simulation(self):
        tester = SlotTester(3, bet_amount=1.0, seed=5, bonus_buy_tier='LEPRECHAUN')
        summary = tester.run_simulation()

        self.assertEqual(summary['total_bet'], 24.0)
        self.assertEqual(summary['bonus_triggers'], 3)
        self.assertEqual(len(tester.bonus_data), 3)
        for session in tester.bonus_data:
            self.assertGreaterEqual(session['num_spins'], 8)
        self.assertEqual(tester.total_base_win, 0.0)

    def test_zero_rounds(self):
        tester = SlotTester(0, seed=1)
        summary = tester.run_simulation()
        self.assertEqual(summary['rtp'], 0.0)
        self.assertEqual(summary['total_bet'], 0.0)

    def test_print_summary(self):
        tester = SlotTester(20, seed=3)
        tester.run_simulation()
        lines = []
        tester.print_summary_statistics(echo=lines.append)
        self.assertTrue(any(line.startswith("Overall RTP") for line in lines))
        self.assertTrue(any("Win Distribution" in line for line in lines))

    def test_bucket_edges(self):
        self.assertEqual(_bucket_for(0), 0)
        self.assertEqual(_bucket_for(0.5), 0)
        self.assertEqual(_bucket_for(1), 1)
        self.assertEqual(_bucket_for(49.9), 20)
        self.assertEqual(_bucket_for(7000), 1000)


def test_generate_graphs(tmp_path):
    tester = SlotTester(40, seed=11)
    tester.run_simulation()
    paths = tester.generate_graphs(str(tmp_path / 'graphs'))
    assert [os.path.basename(p) for p in paths] == ['win_multiplier_distribution.png', 'rtp_convergence.png']
    for path in paths:
        assert os.path.getsize(path) > 0


def test_short_run_rtp_stays_in_a_sane_range():
    summary = SlotTester(2000, seed=2024).run_simulation()
    assert 20.0 < summary['rtp'] < 200.0
    assert summary['target_rtp'] == pytest.approx(96.0)


@pytest.mark.slow
@pytest.mark.skipif(os.getenv('LUCKYSCAPE_RUN_RTP_BENCHMARK') != '1', reason="set LUCKYSCAPE_RUN_RTP_BENCHMARK=1 to run")
def test_rtp_benchmark():
    tester = SlotTester(int(os.getenv('LUCKYSCAPE_BENCHMARK_SPINS', '100000')), seed=20240601)
    summary = tester.run_simulation()
    tester.print_summary_statistics()

    low, high = summary['rtp_confidence_interval']
    tolerance = float(os.getenv('LUCKYSCAPE_RTP_TOLERANCE', '5.0'))
    assert math.isfinite(summary['rtp'])
    assert low <= summary['rtp'] <= high
    assert abs(summary['rtp'] - tester.config.rtp * 100) <= tolerance
    assert summary['volatility_index'] > 0
