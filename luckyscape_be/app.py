from flask import Flask, request, jsonify, current_app, g, has_app_context
import uuid
import logging
from http import HTTPStatus
from marshmallow import ValidationError
from pythonjsonlogger import jsonlogger
from werkzeug.exceptions import HTTPException as WerkzeugHTTPException

from luckyscape_be.config import Config
from luckyscape_be.exceptions import AppException
from luckyscape_be.error_codes import ErrorCodes
from luckyscape_be.routes.slots import slots_bp
from luckyscape_be.services.engine_store import EngineStore
from luckyscape_be.services.ledger_client import LedgerClient
from luckyscape_be.utils.game_config import load_game_config


class RequestIdFilter(logging.Filter):
    def filter(self, record):
        record.request_id = g.get('request_id', 'N/A') if has_app_context() else 'N/A'
        return True


def _configure_logging(app):
    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(levelname)s %(request_id)s %(module)s %(funcName)s %(lineno)d %(message)s'
    )
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)

    package_logger = logging.getLogger('luckyscape_be')
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False

    # app.logger is "luckyscape_be.app"; its records reach the package handler
    app.logger.handlers.clear()
    app.logger.setLevel(level)


def _error_response(request_id, error_code, status_message, details=None, action_button=None):
    return jsonify({
        'request_id': request_id,
        'status': False,
        'error_code': error_code,
        'status_message': status_message,
        'details': details if details is not None else {},
        'action_button': action_button
    })


def create_app(config_class=Config):
    """Application factory: engine services, JSON logging, blueprints and error handlers."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)

    game_config = load_game_config(app.config.get('GAME_CONFIG_PATH'))
    app.extensions['luckyscape'] = {
        'config': game_config,
        'store': EngineStore(
            game_config,
            seed=app.config.get('RNG_SEED'),
            max_sessions=app.config.get('MAX_SESSIONS', 10000),
        ),
        'ledger': LedgerClient(
            app.config.get('LEDGER_URL', ''),
            game_id=app.config.get('GAME_ID', game_config.game_id),
            timeout=app.config.get('LEDGER_TIMEOUT', 5.0),
        ),
    }
    if not app.config.get('LEDGER_URL'):
        app.logger.warning("LEDGER_URL not configured - spin results will not be reported")

    @app.before_request
    def assign_request_id():
        g.request_id = str(uuid.uuid4())

    app.register_blueprint(slots_bp)

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': True, 'game': game_config.game_id}), HTTPStatus.OK

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        request_id = g.get('request_id', 'N/A')
        current_app.logger.warning(
            f"Request ID: {request_id} - Validation error: {e.messages} - Error Code: {ErrorCodes.VALIDATION_ERROR}"
        )
        return _error_response(
            request_id, ErrorCodes.VALIDATION_ERROR, 'Input validation failed.', {'errors': e.messages}
        ), HTTPStatus.UNPROCESSABLE_ENTITY

    @app.errorhandler(404)
    def handle_not_found(e):
        request_id = g.get('request_id', 'N/A')
        current_app.logger.warning(
            f"Request ID: {request_id} - HTTP 404 Not Found: {request.url} - Error Code: {ErrorCodes.NOT_FOUND}"
        )
        return _error_response(
            request_id, ErrorCodes.NOT_FOUND, 'The requested resource was not found.', {'path': request.path}
        ), HTTPStatus.NOT_FOUND

    @app.errorhandler(WerkzeugHTTPException)
    def handle_werkzeug_http_exception(e):
        request_id = g.get('request_id', 'N/A')
        error_code = ErrorCodes.GENERIC_ERROR
        if e.code == 405:
            error_code = ErrorCodes.METHOD_NOT_ALLOWED
        elif e.code >= 500:
            error_code = ErrorCodes.INTERNAL_SERVER_ERROR

        current_app.logger.warning(
            f"Request ID: {request_id} - Werkzeug HTTPException: {e.code} - {e.name}: {e.description} - Error Code: {error_code}"
        )
        return _error_response(request_id, error_code, e.name, {'description': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_global_exception(e):
        request_id = g.get('request_id', 'N/A')

        if isinstance(e, AppException):
            current_app.logger.error(
                f"Request ID: {request_id} - AppException: {e.error_code} - {e.status_message} - Details: {e.details}",
                exc_info=True if e.status_code >= 500 else False
            )
            return _error_response(
                request_id, e.error_code, e.status_message, e.details, e.action_button
            ), e.status_code

        if isinstance(e, WerkzeugHTTPException):
            return handle_werkzeug_http_exception(e)

        current_app.logger.critical(
            f"Request ID: {request_id} - Unhandled Critical Exception. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        return _error_response(
            request_id,
            ErrorCodes.INTERNAL_SERVER_ERROR,
            'An unexpected internal server error occurred. Please try again later.',
        ), HTTPStatus.INTERNAL_SERVER_ERROR

    return app
