"""
Cluster win detection for the 6x5 cluster-pays grid.

Grids are lists of rows (grid[y][x]); positions are (x, y) tuples.
"""
from collections import deque
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple

Position = Tuple[int, int]


@dataclass
class Cluster:
    symbol: int
    positions: List[Position]
    paying_symbol: Optional[int] = None
    payout: float = 0.0

    @property
    def size(self) -> int:
        return len(self.positions)

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'paying_symbol': self.paying_symbol,
            'size': self.size,
            'payout': self.payout,
            'positions': [[x, y] for x, y in sorted(self.positions, key=lambda p: (p[1], p[0]))],
        }


@dataclass
class WinResult:
    clusters: List[Cluster] = field(default_factory=list)
    total_payout: float = 0.0
    win_positions: FrozenSet[Position] = frozenset()


@dataclass
class ScatterResult:
    count: int
    positions: List[Position]


def symbols_match(root, neighbor, symbol_ids) -> bool:
    """
    Match predicate for the flood fill.

    A neighbour joins the root's cluster if it carries the same id, or if the
    root is a regular symbol and the neighbour is wild. A wild root only
    accepts further wilds.
    """
    non_cluster = symbol_ids.non_cluster
    if root in non_cluster or neighbor in non_cluster:
        return False
    if root == neighbor:
        return True
    return root != symbol_ids.wild and neighbor == symbol_ids.wild


def get_cluster_size_band(size, min_cluster_size=5) -> Optional[str]:
    if size < min_cluster_size:
        return None
    if size <= 5:
        return '5'
    if size in (6, 7, 8):
        return str(size)
    if size <= 10:
        return '9-10'
    if size <= 12:
        return '11-12'
    return '13+'


def get_symbol_payout(symbol, size, paytable, min_cluster_size=5) -> float:
    """Bet-multiple payout for `size` connected `symbol`s; 0 for unknown symbols or short clusters."""
    row = paytable.get(symbol)
    band = get_cluster_size_band(size, min_cluster_size)
    if row is None or band is None:
        return 0.0
    return float(row.get(band, 0.0))


def _highest_paying_symbol(grid, positions, paytable):
    best_symbol = None
    best_five_payout = float('-inf')
    for x, y in positions:
        symbol = grid[y][x]
        row = paytable.get(symbol)
        if row is None:
            continue
        five_payout = row.get('5', 0.0)
        if five_payout > best_five_payout:
            best_five_payout = five_payout
            best_symbol = symbol
    return best_symbol


def _flood_fill(grid, start_x, start_y, visited, symbol_ids):
    width = len(grid[0])
    height = len(grid)
    root = grid[start_y][start_x]
    queue = deque([(start_x, start_y)])
    visited.add((start_x, start_y))
    positions = []

    while queue:
        x, y = queue.popleft()
        positions.append((x, y))
        for nx, ny in ((x + 1, y), (x - 1, y), (x, y + 1), (x, y - 1)):
            if nx < 0 or nx >= width or ny < 0 or ny >= height:
                continue
            if (nx, ny) in visited:
                continue
            if symbols_match(root, grid[ny][nx], symbol_ids):
                visited.add((nx, ny))
                queue.append((nx, ny))

    return root, positions


def find_wins(grid, config) -> WinResult:
    """
    Finds every winning cluster on the grid.

    Scans row-major; each unvisited cluster-eligible cell seeds a BFS flood
    fill. The visited set is shared across the whole scan, so clusters are
    disjoint. Regions smaller than the minimum cluster size are discarded.

    Args:
        grid (list[list[int]]): Symbol ids, grid[y][x].
        config (GameConfig): Supplies the symbol catalog, paytable and min cluster size.

    Returns:
        WinResult: Clusters with their payouts, total bet-multiple payout and
        the union of winning positions. Never raises on game data.
    """
    symbol_ids = config.symbol_ids
    visited = set()
    clusters = []

    for y in range(len(grid)):
        for x in range(len(grid[0])):
            if (x, y) in visited:
                continue
            if not symbol_ids.is_cluster_eligible(grid[y][x]):
                continue
            root, positions = _flood_fill(grid, x, y, visited, symbol_ids)
            if len(positions) >= config.min_cluster_size:
                clusters.append(Cluster(symbol=root, positions=positions))

    total_payout = 0.0
    win_positions = set()
    for cluster in clusters:
        cluster.paying_symbol = _highest_paying_symbol(grid, cluster.positions, config.paytable)
        cluster.payout = get_symbol_payout(cluster.paying_symbol, cluster.size, config.paytable, config.min_cluster_size)
        total_payout += cluster.payout
        win_positions.update(cluster.positions)

    return WinResult(clusters=clusters, total_payout=total_payout, win_positions=frozenset(win_positions))


def find_symbol_positions(grid, symbol) -> List[Position]:
    """Row-major positions holding `symbol`."""
    return [(x, y) for y, row in enumerate(grid) for x, value in enumerate(row) if value == symbol]


def find_scatters(grid, config) -> ScatterResult:
    positions = find_symbol_positions(grid, config.symbol_ids.scatter)
    return ScatterResult(count=len(positions), positions=positions)


def get_tier_for_scatter_count(count, tiers):
    """Highest tier whose scatter requirement is met: 3 -> tier 1, 4 -> tier 2, 5+ -> tier 3."""
    qualifying = [tier for tier in tiers if count >= tier.scatters]
    if not qualifying:
        return None
    return max(qualifying, key=lambda tier: tier.level)


def super_cascade_positions(grid, win_result, config) -> FrozenSet[Position]:
    """
    Winning positions plus every cell holding a regular symbol type that took
    part in a winning cluster.
    """
    regular = config.symbol_ids.regular
    matched_types = {grid[y][x] for cluster in win_result.clusters for x, y in cluster.positions if grid[y][x] in regular}
    if not matched_types:
        return win_result.win_positions
    extra = {(x, y) for y, row in enumerate(grid) for x, value in enumerate(row) if value in matched_types}
    return frozenset(win_result.win_positions | extra)
