class ErrorCodes:
    GENERIC_ERROR = "GENERIC_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_BET = "INVALID_BET"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    BONUS_ALREADY_ACTIVE = "BONUS_ALREADY_ACTIVE"
    UNKNOWN_BONUS_TIER = "UNKNOWN_BONUS_TIER"
    BONUS_BUY_DISABLED = "BONUS_BUY_DISABLED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
