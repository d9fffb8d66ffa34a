"""
Cascade mechanics: remove winning cells, drop the survivors down their
column and refill the gaps from a weighted symbol table.
"""
from dataclasses import dataclass, field

from luckyscape_be.utils.weighted_table import weighted_choice

EMPTY = 0


@dataclass
class CascadeOutcome:
    grid: list
    move_data: dict = field(default_factory=dict)


def create_empty_grid(width, height, empty=EMPTY):
    return [[empty for _ in range(width)] for _ in range(height)]


def clone_grid(grid):
    return [list(row) for row in grid]


def remove_positions(grid, positions, empty=EMPTY):
    for x, y in positions:
        grid[y][x] = empty


def apply_gravity(grid, empty=EMPTY):
    """
    Packs every column's non-empty cells against the bottom, keeping their
    relative order. Columns never exchange cells.

    Returns:
        list[dict]: One entry per cell that changed row, with the row it came
        from: {'x', 'y', 'from_y', 'symbol'}.
    """
    height = len(grid)
    width = len(grid[0]) if height else 0
    moved_cells = []

    for x in range(width):
        survivors = [(y, grid[y][x]) for y in range(height) if grid[y][x] != empty]
        empty_count = height - len(survivors)

        for y in range(height):
            grid[y][x] = empty

        for offset, (from_y, symbol) in enumerate(survivors):
            to_y = empty_count + offset
            grid[to_y][x] = symbol
            if to_y != from_y:
                moved_cells.append({'x': x, 'y': to_y, 'from_y': from_y, 'symbol': symbol})

    return moved_cells


def fill_from_top(grid, table, rng, empty=EMPTY, fallback=1):
    """Fills empty cells row by row from the top with weighted draws from `table`."""
    filled_cells = []
    for y, row in enumerate(grid):
        for x, value in enumerate(row):
            if value == empty:
                symbol = weighted_choice(table, rng, default=fallback)
                row[x] = symbol
                filled_cells.append({'x': x, 'y': y, 'symbol': symbol})
    return filled_cells


def execute_cascade(grid, positions_to_remove, rng, table, empty=EMPTY):
    """
    Runs one remove -> gravity -> refill cycle on `grid` in place.

    Args:
        grid (list[list[int]]): Grid to mutate.
        positions_to_remove (Iterable[tuple[int, int]]): (x, y) cells to clear.
        rng: Random source used by the refill draws.
        table (WeightedTable): Refill table for this draw context.

    Returns:
        CascadeOutcome: The same grid object plus animation data
        ({'moved_cells': [...], 'filled_cells': [...]}).
    """
    remove_positions(grid, positions_to_remove, empty)
    moved_cells = apply_gravity(grid, empty)
    filled_cells = fill_from_top(grid, table, rng, empty)
    return CascadeOutcome(grid=grid, move_data={'moved_cells': moved_cells, 'filled_cells': filled_cells})
