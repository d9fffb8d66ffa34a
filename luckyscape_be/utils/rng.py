import random
import secrets


class RNG:
    """
    Random source for the engine.

    Seeded instances use random.Random so a seed replays the same spins bit
    for bit. Unseeded instances draw from secrets.SystemRandom.
    """

    def __init__(self, seed=None):
        self.seed = seed
        self.draws = 0
        self._source = random.Random(seed) if seed is not None else secrets.SystemRandom()

    def next_float(self) -> float:
        """Uniform float in [0, 1)."""
        self.draws += 1
        return self._source.random()

    def next_int(self, min_value: int, max_value: int) -> int:
        """Uniform integer in [min_value, max_value], both inclusive."""
        if min_value > max_value:
            raise ValueError(f"Invalid range: {min_value} > {max_value}")
        span = max_value - min_value + 1
        return min_value + int(self.next_float() * span)

    def pick(self, items):
        if not items:
            raise ValueError("Cannot pick from an empty sequence")
        return items[self.next_int(0, len(items) - 1)]

    def reset(self):
        """Rewind a seeded source to its first draw. Unseeded sources only reset the counter."""
        self.draws = 0
        if self.seed is not None:
            self._source = random.Random(self.seed)

    def get_state(self) -> dict:
        return {'seed': self.seed, 'draws': self.draws}

    def __repr__(self):
        return f"<RNG seed={self.seed} draws={self.draws}>"
