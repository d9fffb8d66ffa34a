import unittest
from unittest.mock import MagicMock, patch

import requests

from luckyscape_be.services.ledger_client import LedgerClient


class TestLedgerClient(unittest.TestCase):

    def setUp(self):
        self.client = LedgerClient('http://ledger.test/', game_id='luckyscape', timeout=2.0)

    def test_base_url_is_normalised(self):
        self.assertEqual(self.client.base_url, 'http://ledger.test')
        self.assertTrue(self.client.enabled)

    @patch('luckyscape_be.services.ledger_client.requests.post')
    def test_report_win_posts_payload(self, mock_post):
        mock_response = MagicMock()
        mock_response.json.return_value = {'remainingCredits': 12.5, 'dailyBudget': 100}
        mock_post.return_value = mock_response

        body = self.client.report_win(1.0, 2.5, bonus_type='LEPRECHAUN')

        self.assertEqual(body, {'remainingCredits': 12.5, 'dailyBudget': 100})
        mock_post.assert_called_once_with(
            'http://ledger.test/api/win',
            json={'betAmount': 1.0, 'winAmount': 2.5, 'gameId': 'luckyscape', 'bonusType': 'LEPRECHAUN'},
            timeout=2.0,
        )
        mock_response.raise_for_status.assert_called_once()

    @patch('luckyscape_be.services.ledger_client.requests.post')
    def test_report_win_failure_returns_none(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("ledger down")
        self.assertIsNone(self.client.report_win(1.0, 0.0))

    @patch('luckyscape_be.services.ledger_client.requests.post')
    def test_report_win_http_error_returns_none(self, mock_post):
        mock_response = MagicMock()
        mock_response.raise_for_status.side_effect = requests.HTTPError("503")
        mock_post.return_value = mock_response
        self.assertIsNone(self.client.report_win(1.0, 0.0))
        mock_response.json.assert_not_called()

    @patch('luckyscape_be.services.ledger_client.requests.get')
    def test_get_player_state(self, mock_get):
        mock_get.return_value = MagicMock(json=MagicMock(return_value={'remainingCredits': 5}))
        self.assertEqual(self.client.get_player_state(), {'remainingCredits': 5})
        mock_get.assert_called_once_with('http://ledger.test/api/state', timeout=2.0)

    @patch('luckyscape_be.services.ledger_client.requests.get')
    def test_get_player_state_bad_json(self, mock_get):
        mock_get.return_value = MagicMock(json=MagicMock(side_effect=ValueError("no json")))
        self.assertIsNone(self.client.get_player_state())

    @patch('luckyscape_be.services.ledger_client.requests.get')
    @patch('luckyscape_be.services.ledger_client.requests.post')
    def test_disabled_client_makes_no_calls(self, mock_post, mock_get):
        client = LedgerClient('')
        self.assertFalse(client.enabled)
        self.assertIsNone(client.report_win(1.0, 1.0))
        self.assertIsNone(client.get_player_state())
        mock_post.assert_not_called()
        mock_get.assert_not_called()
