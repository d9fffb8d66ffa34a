import logging
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)


class LedgerClient:
    """
    Client for the externally hosted player-credit ledger.

    Calls are made after a spin has been resolved and nothing in the engine
    waits on them: failures are logged and reported as None.
    """

    def __init__(self, base_url: str, game_id: str = 'luckyscape', timeout: float = 5.0):
        self.base_url = (base_url or '').rstrip('/')
        self.game_id = game_id
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def report_win(self, bet_amount: float, win_amount: float, bonus_type: Optional[str] = None) -> Optional[Dict]:
        """POSTs a resolved spin; returns the ledger's response body (e.g. remaining credits)."""
        if not self.enabled:
            return None

        payload = {
            'betAmount': bet_amount,
            'winAmount': win_amount,
            'gameId': self.game_id,
            'bonusType': bonus_type,
        }
        try:
            response = requests.post(f"{self.base_url}/api/win", json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"Ledger report_win failed for game {self.game_id}: {e}")
            return None
        except ValueError as e:
            logger.error(f"Ledger report_win returned invalid JSON: {e}")
            return None

    def get_player_state(self) -> Optional[Dict]:
        """Fetches {remainingCredits, dailyBudget} for the current player."""
        if not self.enabled:
            return None

        try:
            response = requests.get(f"{self.base_url}/api/state", timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"Ledger get_player_state failed: {e}")
            return None
        except ValueError as e:
            logger.error(f"Ledger get_player_state returned invalid JSON: {e}")
            return None
