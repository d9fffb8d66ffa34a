import copy
import json

import pytest

from luckyscape_be.utils.game_config import DEFAULT_CONFIG_PATH, load_game_config


@pytest.fixture(scope='module')
def raw_config():
    with open(DEFAULT_CONFIG_PATH) as f:
        return json.load(f)


def _write(tmp_path, raw, name='gameConfig.json'):
    path = tmp_path / name
    path.write_text(json.dumps(raw))
    return str(path)


def test_packaged_config_defaults():
    config = load_game_config()
    assert config.game_id == 'luckyscape'
    assert (config.grid_width, config.grid_height) == (6, 5)
    assert config.min_cluster_size == 5
    assert config.max_cascades_per_spin == 20
    assert config.max_win == 5000
    assert config.symbol_ids.wild == 6
    assert config.symbol_ids.trigger == 9
    assert config.symbol_ids.regular == frozenset({1, 2, 3, 4, 5, 11, 12, 13, 14, 15})
    assert [t.tier_id for t in config.tiers] == ['LEPRECHAUN', 'GLITTER_GOLD', 'TREASURE_RAINBOW']
    assert config.feature.pot_decay == 0.6
    assert config.feature.global_pot_reduction == 0.75
    assert config.feature.max_feature_rounds == 1
    assert 9 in config.weights['base'].values
    assert 9 not in config.weights['replacement'].values
    assert config.bonus_buy_multipliers == {'LEPRECHAUN': 8.0, 'GLITTER_GOLD': 16.0, 'TREASURE_RAINBOW': 72.0}


def test_config_is_cached():
    assert load_game_config() is load_game_config()


def test_lookup_helpers():
    config = load_game_config()
    assert config.get_tier('GLITTER_GOLD').level == 2
    assert config.get_tier('NOPE') is None
    assert config.get_tier_by_level(3).tier_id == 'TREASURE_RAINBOW'


def test_env_var_selects_file(tmp_path, monkeypatch, raw_config):
    raw = copy.deepcopy(raw_config)
    raw['game']['name'] = 'Env Scape'
    monkeypatch.setenv('GAME_CONFIG_PATH', _write(tmp_path, raw))
    assert load_game_config().name == 'Env Scape'


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_game_config(str(tmp_path / 'nope.json'))


def test_invalid_json(tmp_path):
    path = tmp_path / 'broken.json'
    path.write_text('{"game": ')
    with pytest.raises(ValueError, match='Invalid JSON'):
        load_game_config(str(path))


def _drop_layout(game):
    del game['layout']


def _second_wild(game):
    game['symbols'].append({'id': 16, 'name': 'Wild 2', 'kind': 'wild'})


def _missing_band(game):
    del game['paytable']['1']['13+']


def _negative_weight(game):
    game['weights']['refill'][0][1] = -1


def _no_tiers(game):
    game['bonus_tiers'] = []


def _no_base_chances(game):
    del game['feature']['outcome_chances']['BASE']


def _chances_over_one(game):
    game['feature']['outcome_chances']['LEPRECHAUN'] = {'clover': 0.7, 'pot': 0.4}


def _bad_kind(game):
    game['symbols'][0]['kind'] = 'mystery'


@pytest.mark.parametrize('mutate', [
    _drop_layout, _second_wild, _missing_band, _negative_weight, _no_tiers, _no_base_chances, _chances_over_one, _bad_kind,
])
def test_validation_errors(tmp_path, raw_config, mutate):
    raw = copy.deepcopy(raw_config)
    mutate(raw['game'])
    with pytest.raises(ValueError, match='Config validation error'):
        load_game_config(_write(tmp_path, raw, f'{mutate.__name__}.json'))


def test_outcome_chances_leave_the_rest_to_coins():
    chances = load_game_config().feature.outcome_chances
    assert set(chances) == {'BASE', 'LEPRECHAUN', 'GLITTER_GOLD', 'TREASURE_RAINBOW'}
    assert (chances['BASE'].clover, chances['BASE'].pot) == (0.08, 0.02)
    assert not hasattr(chances['BASE'], 'coin')
