import logging
import threading
from collections import OrderedDict

from luckyscape_be.utils.rng import RNG
from luckyscape_be.utils.spin_handler import new_engine_state

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 10000


def player_rng(seed, session_id) -> RNG:
    """Seeded stores give every session its own replayable stream; unseeded ones draw from the system."""
    if seed is None:
        return RNG()
    return RNG(f"{seed}:{session_id}")


class PlayerSlot:
    """Engine state, random source and locked bonus bet for one player."""

    def __init__(self, state, rng):
        self.state = state
        self.rng = rng
        self.bonus_bet = None


class EngineStore:
    """
    In-process map of session id -> PlayerSlot, bounded to `max_sessions`.

    Lookups refresh a session's position; creating a session past the bound
    evicts the least recently used one, bonus session included. Nothing is
    persisted. The lock only guards the map, a player's spins are expected to
    arrive one at a time.
    """

    def __init__(self, config, seed=None, max_sessions=DEFAULT_MAX_SESSIONS):
        if max_sessions < 1:
            raise ValueError(f"max_sessions must be positive, got {max_sessions}")
        self.config = config
        self.seed = seed
        self.max_sessions = max_sessions
        self._players = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id) -> PlayerSlot:
        """Returns the player's slot, creating it on first use."""
        with self._lock:
            player = self._players.get(session_id)
            if player is not None:
                self._players.move_to_end(session_id)
                return player

            player = PlayerSlot(new_engine_state(self.config), player_rng(self.seed, session_id))
            self._players[session_id] = player
            while len(self._players) > self.max_sessions:
                evicted_id, evicted = self._players.popitem(last=False)
                logger.info(f"Evicted idle session {evicted_id} (in_free_spins={evicted.state.in_free_spins})")
            return player

    def find(self, session_id):
        """Like get() but never creates; None for unknown sessions."""
        with self._lock:
            player = self._players.get(session_id)
            if player is not None:
                self._players.move_to_end(session_id)
            return player

    def __contains__(self, session_id):
        return session_id in self._players

    def __len__(self):
        return len(self._players)
