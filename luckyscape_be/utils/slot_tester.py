"""
RTP simulator for LuckyScape.

Plays N paid spins through the real engine, playing out every bonus session
a spin triggers, and reports RTP, hit/bonus frequencies, volatility and the
win multiplier distribution. Graphs are written with matplotlib.
"""
import logging
import os

import matplotlib
matplotlib.use('Agg')  # headless backend, graphs are only saved to disk
import matplotlib.pyplot as plt
import numpy as np

from luckyscape_be.utils.game_config import load_game_config
from luckyscape_be.utils.rng import RNG
from luckyscape_be.utils.spin_handler import new_engine_state, spin, start_bonus_mode

logger = logging.getLogger(__name__)

MULTIPLIER_BUCKETS = [0, 1, 2, 5, 10, 20, 50, 100, 500, 1000]


def _bucket_for(multiple):
    bucket = MULTIPLIER_BUCKETS[0]
    for edge in MULTIPLIER_BUCKETS:
        if multiple >= edge:
            bucket = edge
    return bucket


class SlotTester:
    def __init__(self, num_spins, bet_amount=1.0, seed=None, config=None, bonus_buy_tier=None):
        self.num_spins = num_spins
        self.bet_amount = float(bet_amount)
        self.seed = seed
        self.config = config or load_game_config()
        # When set, every round is a bonus buy of this tier instead of a paid base spin
        self.bonus_buy_tier = bonus_buy_tier
        self.rng = RNG(seed)

        self.total_bet = 0.0
        self.total_win = 0.0
        self.total_base_win = 0.0
        self.total_bonus_win = 0.0
        self.hit_count = 0
        self.bonus_triggers = 0
        self.feature_activations = 0
        self.max_cascades_seen = 0
        self.max_win_hits = 0
        self.wins_per_round = []
        self.bonus_data = []
        self.wins_by_multiplier = {}
        self.rtp_over_time = []

        self.overall_rtp = 0.0
        self.hit_frequency = 0.0
        self.bonus_frequency = 0.0
        self.avg_bonus_win = 0.0
        self.base_game_rtp_contribution = 0.0
        self.bonus_rtp_contribution = 0.0
        self.volatility_index = 0.0
        self.rtp_confidence_interval = (0.0, 0.0)

    def _track_spin(self, result):
        if result.bonus_features.get('rainbow_triggered'):
            self.feature_activations += 1
        if result.max_win_reached:
            self.max_win_hits += 1
        self.max_cascades_seen = max(self.max_cascades_seen, result.cascade_count)

    def _play_out_session(self, state):
        """Runs free spins until the session ends; returns (state, session win, spins played)."""
        session_win = 0.0
        spins_played = 0
        while state.in_free_spins:
            state, result = spin(state, self.rng, self.bet_amount, self.config)
            self._track_spin(result)
            session_win += result.total_win
            spins_played += 1
        return state, session_win, spins_played

    def _simulate_one_round(self, state):
        if self.bonus_buy_tier:
            cost = self.bet_amount * self.config.bonus_buy_multipliers[self.bonus_buy_tier]
            state, _ = start_bonus_mode(state, self.bonus_buy_tier, self.config)
            base_win = 0.0
            triggered = True
        else:
            cost = self.bet_amount
            state, result = spin(state, self.rng, self.bet_amount, self.config)
            self._track_spin(result)
            base_win = result.total_win
            triggered = result.bonus_mode is not None

        bonus_win = 0.0
        bonus_spins = 0
        if triggered:
            state, bonus_win, bonus_spins = self._play_out_session(state)

        return state, {
            'bet': cost,
            'base_win': base_win,
            'bonus_win': bonus_win,
            'bonus_triggered': triggered,
            'bonus_spins': bonus_spins,
        }

    def _collect_round_statistics(self, round_data):
        win = round_data['base_win'] + round_data['bonus_win']
        self.total_bet += round_data['bet']
        self.total_win += win
        self.total_base_win += round_data['base_win']
        self.total_bonus_win += round_data['bonus_win']
        self.wins_per_round.append(win)

        if win > 0:
            self.hit_count += 1
        if round_data['bonus_triggered']:
            self.bonus_triggers += 1
            self.bonus_data.append({'total_win': round_data['bonus_win'], 'num_spins': round_data['bonus_spins']})

        bucket = _bucket_for(win / round_data['bet']) if round_data['bet'] > 0 else 0
        self.wins_by_multiplier[bucket] = self.wins_by_multiplier.get(bucket, 0) + 1

    def run_simulation(self):
        logger.info(f"Simulating {self.num_spins} rounds at bet {self.bet_amount} (seed={self.seed}, buy={self.bonus_buy_tier})")
        state = new_engine_state(self.config)
        interval = self.num_spins // 20 or 1
        cumulative_win = 0.0
        cumulative_bet = 0.0

        for i in range(self.num_spins):
            state, round_data = self._simulate_one_round(state)
            self._collect_round_statistics(round_data)
            cumulative_win += round_data['base_win'] + round_data['bonus_win']
            cumulative_bet += round_data['bet']
            if (i + 1) % interval == 0 or (i + 1) == self.num_spins:
                rtp = (cumulative_win / cumulative_bet) * 100 if cumulative_bet > 0 else 0
                self.rtp_over_time.append({'spin_count': i + 1, 'rtp': rtp})
                logger.debug(f"Completed {i + 1}/{self.num_spins} rounds, running RTP {rtp:.2f}%")

        self.calculate_derived_statistics()
        return self.summary()

    def calculate_derived_statistics(self):
        if self.num_spins == 0 or self.total_bet <= 0:
            logger.warning("No rounds were simulated. Cannot calculate derived statistics.")
            return

        self.overall_rtp = (self.total_win / self.total_bet) * 100
        self.hit_frequency = (self.hit_count / self.num_spins) * 100
        self.bonus_frequency = (self.bonus_triggers / self.num_spins) * 100
        self.avg_bonus_win = (self.total_bonus_win / self.bonus_triggers) if self.bonus_triggers > 0 else 0
        self.base_game_rtp_contribution = (self.total_base_win / self.total_bet) * 100
        self.bonus_rtp_contribution = (self.total_bonus_win / self.total_bet) * 100

        round_cost = self.total_bet / self.num_spins
        returns = np.array(self.wins_per_round, dtype=float) / round_cost
        self.volatility_index = float(np.std(returns))
        if len(returns) > 1:
            half_width = 1.96 * float(np.std(returns, ddof=1)) / np.sqrt(len(returns))
        else:
            half_width = 0.0
        mean_return = float(np.mean(returns))
        self.rtp_confidence_interval = ((mean_return - half_width) * 100, (mean_return + half_width) * 100)

    def summary(self) -> dict:
        return {
            'rounds': self.num_spins,
            'bet_amount': self.bet_amount,
            'bonus_buy_tier': self.bonus_buy_tier,
            'total_bet': round(self.total_bet, 2),
            'total_win': round(self.total_win, 2),
            'rtp': self.overall_rtp,
            'target_rtp': self.config.rtp * 100,
            'rtp_confidence_interval': list(self.rtp_confidence_interval),
            'hit_frequency': self.hit_frequency,
            'bonus_frequency': self.bonus_frequency,
            'bonus_triggers': self.bonus_triggers,
            'avg_bonus_win': self.avg_bonus_win,
            'base_game_rtp_contribution': self.base_game_rtp_contribution,
            'bonus_rtp_contribution': self.bonus_rtp_contribution,
            'volatility_index': self.volatility_index,
            'feature_activations': self.feature_activations,
            'max_cascades_seen': self.max_cascades_seen,
            'max_win_hits': self.max_win_hits,
            'wins_by_multiplier': {str(k): v for k, v in sorted(self.wins_by_multiplier.items())},
        }

    def print_summary_statistics(self, echo=print):
        echo("\n--- Simulation Summary ---")
        echo(f"Game: {self.config.name}")
        echo(f"Rounds Simulated: {self.num_spins}" + (f" (bonus buy {self.bonus_buy_tier})" if self.bonus_buy_tier else ""))
        echo(f"Bet Amount: {self.bet_amount}")
        echo(f"Total Wagered: {self.total_bet:.2f}")
        echo(f"Total Won: {self.total_win:.2f}")

        echo("\n--- Detailed Metrics ---")
        low, high = self.rtp_confidence_interval
        echo(f"Overall RTP: {self.overall_rtp:.2f}% (Target: {self.config.rtp * 100:.2f}%, 95% CI {low:.2f}% - {high:.2f}%)")
        echo(f"Hit Frequency: {self.hit_frequency:.2f}% ({self.hit_count} wins out of {self.num_spins} rounds)")
        echo(f"Bonus Trigger Frequency: {self.bonus_frequency:.2f}% ({self.bonus_triggers} triggers)")
        echo(f"Average Bonus Win: {self.avg_bonus_win:.2f}")
        echo(f"Base Game RTP Contribution: {self.base_game_rtp_contribution:.2f}%")
        echo(f"Bonus Game RTP Contribution: {self.bonus_rtp_contribution:.2f}%")
        echo(f"Volatility Index (Return StdDev): {self.volatility_index:.2f}")
        echo(f"Feature Activations: {self.feature_activations}, Max Cascades: {self.max_cascades_seen}, Max Win Hits: {self.max_win_hits}")

        echo("\nWin Distribution (by Bet Multiplier):")
        for mult, count in sorted(self.wins_by_multiplier.items()):
            echo(f"  {mult}x+: {count} times ({count / self.num_spins * 100:.2f}%)")

    def generate_graphs(self, output_dir):
        """Writes the multiplier distribution and RTP convergence charts; returns the file paths."""
        os.makedirs(output_dir, exist_ok=True)
        paths = []

        if self.wins_by_multiplier:
            multipliers = sorted(self.wins_by_multiplier.keys())
            counts = [self.wins_by_multiplier[m] for m in multipliers]
            plt.figure(figsize=(12, 7))
            plt.bar([f"{m}x" for m in multipliers], counts, color='skyblue', width=0.8)
            plt.title(f"Win Multiplier Distribution for {self.config.name}", fontsize=16)
            plt.xlabel("Bet Multiplier", fontsize=12)
            plt.ylabel("Frequency", fontsize=12)
            plt.grid(axis='y', linestyle='--', alpha=0.7)
            plt.tight_layout()
            path = os.path.join(output_dir, 'win_multiplier_distribution.png')
            plt.savefig(path)
            plt.clf()
            paths.append(path)

        if self.rtp_over_time:
            spin_counts = [point['spin_count'] for point in self.rtp_over_time]
            rtps = [point['rtp'] for point in self.rtp_over_time]
            plt.figure(figsize=(10, 6))
            plt.plot(spin_counts, rtps, label="Simulated RTP", marker='.', linestyle='-')
            plt.axhline(y=self.config.rtp * 100, color='r', linestyle='--', label=f"Target RTP ({self.config.rtp * 100:.2f}%)")
            plt.title(f"RTP Convergence for {self.config.name}", fontsize=16)
            plt.xlabel("Number of Rounds", fontsize=12)
            plt.ylabel("RTP (%)", fontsize=12)
            plt.legend(fontsize=10)
            plt.grid(True, linestyle='--', alpha=0.7)
            plt.tight_layout()
            path = os.path.join(output_dir, 'rtp_convergence.png')
            plt.savefig(path)
            plt.clf()
            paths.append(path)

        plt.close('all')
        return paths
