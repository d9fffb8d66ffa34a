from luckyscape_be.error_codes import ErrorCodes

class AppException(Exception):
    def __init__(self, error_code, status_message, status_code, details=None, action_button=None):
        super().__init__(status_message)
        self.error_code = error_code
        self.status_message = status_message
        self.status_code = status_code
        self.details = details if details is not None else {}
        self.action_button = action_button if action_button is not None else {}

class ValidationException(AppException):
    def __init__(self, status_message="Validation failed", details=None, action_button=None, error_code=ErrorCodes.VALIDATION_ERROR):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=422,
            details=details,
            action_button=action_button
        )

class NotFoundException(AppException):
    def __init__(self, status_message="Resource not found", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.NOT_FOUND,
            status_message=status_message,
            status_code=404,
            details=details,
            action_button=action_button
        )

class BonusStateException(AppException):
    """Raised when a bonus session is started while another one is still live."""
    def __init__(self, status_message="A bonus session is already active", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.BONUS_ALREADY_ACTIVE,
            status_message=status_message,
            status_code=409,
            details=details,
            action_button=action_button
        )

class ConfigurationException(AppException):
    """Programmer errors: unknown tier ids, broken game config. Never retried."""
    def __init__(self, status_message="Game configuration error", details=None, action_button=None, error_code=ErrorCodes.CONFIGURATION_ERROR):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )
