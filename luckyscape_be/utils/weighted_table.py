"""
Weighted tables and the single weighted-draw routine used by the engine.

Every weighted decision (symbol generation, refill, coin values, clover
multipliers) goes through weighted_choice so the roll sequence stays
identical everywhere: sum the weights, draw an integer in [0, total - 1],
subtract weights in table order until the remainder goes negative.
"""


class WeightedTable:
    """Immutable list of (value, weight) pairs, kept in table order."""

    def __init__(self, entries):
        self.entries = tuple((value, weight) for value, weight in entries)

    @property
    def total_weight(self):
        return sum(weight for _, weight in self.entries if weight > 0)

    @property
    def values(self):
        return [value for value, _ in self.entries]

    def without(self, *excluded):
        """Copy of the table with the given values dropped."""
        return WeightedTable((value, weight) for value, weight in self.entries if value not in excluded)

    def to_list(self):
        return [[value, weight] for value, weight in self.entries]

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __eq__(self, other):
        return isinstance(other, WeightedTable) and self.entries == other.entries

    def __hash__(self):
        return hash(self.entries)

    def __repr__(self):
        return f"<WeightedTable entries={len(self.entries)} total={self.total_weight}>"


def weighted_choice(table, rng, default=None):
    """
    Draws one value from a WeightedTable.

    Args:
        table (WeightedTable): Candidate values and their weights.
        rng: Random source exposing next_int(min, max).
        default: Returned when the table cannot be drawn from.

    Returns:
        The selected value. An empty table, or one with no positive weight,
        yields `default` (or the first entry when no default is given) and
        consumes no randomness.
    """
    entries = [(value, weight) for value, weight in table.entries if weight > 0]
    total = sum(weight for _, weight in entries)

    if not entries or total <= 0:
        if default is not None:
            return default
        return table.entries[0][0] if table.entries else None

    roll = rng.next_int(0, total - 1)
    for value, weight in entries:
        roll -= weight
        if roll < 0:
            return value

    return entries[0][0]
