from flask import Blueprint, request, jsonify, current_app
from http import HTTPStatus
from marshmallow import ValidationError

from luckyscape_be.schemas import (
    SpinRequestSchema, BonusBuyRequestSchema, BonusBuyOffersQuerySchema, SessionQuerySchema
)
from luckyscape_be.utils.spin_handler import (
    spin as engine_spin,
    start_bonus_mode,
    get_bonus_buy_offers,
    get_paytable,
    validate_bet_amount,
    round_credits,
)
from luckyscape_be.exceptions import AppException, NotFoundException, ValidationException
from luckyscape_be.error_codes import ErrorCodes

slots_bp = Blueprint('slots', __name__, url_prefix='/api/slots')


def _engine():
    return current_app.extensions['luckyscape']


def _load(schema, data):
    if data is None:
        raise ValidationException(status_message="Invalid JSON payload.")
    try:
        return schema.load(data)
    except ValidationError as e:
        raise ValidationException(status_message="Input validation failed.", details=e.messages)


def _bet_limits():
    return current_app.config['MIN_BET'], current_app.config['MAX_BET']


@slots_bp.route('/spin', methods=['POST'])
def spin():
    data = _load(SpinRequestSchema(), request.get_json(silent=True))
    engine = _engine()
    config = engine['config']
    bet = validate_bet_amount(data['bet_amount'], *_bet_limits())

    player = engine['store'].get(data['session_id'])
    was_in_free_spins = player.state.in_free_spins
    if was_in_free_spins and player.bonus_bet is not None:
        bet = player.bonus_bet

    state, result = engine_spin(player.state, player.rng, bet, config)

    if result.bonus_ended:
        player.bonus_bet = None
    elif result.bonus_mode is not None:
        player.bonus_bet = bet
    player.state = state

    current_app.logger.info(
        f"Spin session={data['session_id']} bet={bet} win={result.total_win} "
        f"cascades={result.cascade_count} free_spins={was_in_free_spins}"
    )

    ledger_response = engine['ledger'].report_win(
        bet_amount=0 if was_in_free_spins else bet,
        win_amount=result.total_win,
        bonus_type=state.session.tier_id if state.session else None,
    )

    return jsonify({
        'status': True,
        'result': result.to_dict(),
        'retrigger': result.retrigger,
        'bonus_ended': result.bonus_ended,
        'state': state.to_dict(),
        'ledger': ledger_response,
    }), HTTPStatus.OK


@slots_bp.route('/bonus-buy', methods=['GET'])
def bonus_buy_offers():
    data = _load(BonusBuyOffersQuerySchema(), request.args.to_dict())
    bet_amount = data['bet_amount'] if data['bet_amount'] is not None else current_app.config['DEFAULT_BET']
    bet = validate_bet_amount(bet_amount, *_bet_limits())
    return jsonify({'status': True, **get_bonus_buy_offers(bet, _engine()['config'])}), HTTPStatus.OK


@slots_bp.route('/bonus-buy', methods=['POST'])
def bonus_buy():
    data = _load(BonusBuyRequestSchema(), request.get_json(silent=True))
    engine = _engine()
    config = engine['config']
    bet = validate_bet_amount(data['bet_amount'], *_bet_limits())

    if not config.bonus_buy_enabled:
        raise AppException(
            error_code=ErrorCodes.BONUS_BUY_DISABLED,
            status_message="Bonus buy is disabled for this game.",
            status_code=HTTPStatus.FORBIDDEN,
        )
    tier_id = data['tier_id']
    if tier_id not in config.bonus_buy_multipliers:
        raise ValidationException(
            status_message=f"Unknown bonus mode: {tier_id}",
            details={'tier_id': tier_id},
            error_code=ErrorCodes.UNKNOWN_BONUS_TIER,
        )

    player = engine['store'].get(data['session_id'])
    # BonusStateException propagates to the global handler when a session is live
    state, bonus_mode = start_bonus_mode(player.state, tier_id, config)
    cost = round_credits(bet * config.bonus_buy_multipliers[tier_id])
    player.state = state
    player.bonus_bet = bet

    current_app.logger.info(f"Bonus buy session={data['session_id']} tier={tier_id} cost={cost}")
    ledger_response = engine['ledger'].report_win(bet_amount=cost, win_amount=0, bonus_type=tier_id)

    return jsonify({
        'status': True,
        'bonus_mode': bonus_mode,
        'cost': cost,
        'state': state.to_dict(),
        'ledger': ledger_response,
    }), HTTPStatus.OK


@slots_bp.route('/state', methods=['GET'])
def get_state():
    data = _load(SessionQuerySchema(), request.args.to_dict())
    engine = _engine()
    player = engine['store'].find(data['session_id'])
    if player is None:
        raise NotFoundException(
            status_message="Unknown session.",
            details={'session_id': data['session_id']},
        )
    return jsonify({
        'status': True,
        'state': player.state.to_dict(),
        'bonus_bet': player.bonus_bet,
        'player': engine['ledger'].get_player_state(),
    }), HTTPStatus.OK


@slots_bp.route('/paytable', methods=['GET'])
def paytable():
    return jsonify({'status': True, 'paytable': get_paytable(_engine()['config'])}), HTTPStatus.OK
