from luckyscape_be.utils.rng import RNG


class ScriptedRNG(RNG):
    """RNG that replays a fixed list of floats, then returns `default` forever."""

    def __init__(self, floats, default=0.0):
        super().__init__(seed=0)
        self.floats = list(floats)
        self.default = default

    def next_float(self):
        self.draws += 1
        if self.floats:
            return self.floats.pop(0)
        return self.default


def grid_from_rows(rows):
    return [list(row) for row in rows]


# 4 rows of alternating 3/4: no two orthogonal neighbours match
CHECKER_ROWS = [
    [3, 4, 3, 4, 3, 4],
    [4, 3, 4, 3, 4, 3],
    [3, 4, 3, 4, 3, 4],
    [4, 3, 4, 3, 4, 3],
]
