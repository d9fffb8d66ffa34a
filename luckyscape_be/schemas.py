from marshmallow import Schema, fields, validates, ValidationError
from marshmallow.validate import Length, Range


class SpinRequestSchema(Schema):
    bet_amount = fields.Float(
        required=True,
        allow_nan=False,
        validate=Range(min=0, min_inclusive=False, error="Bet amount must be positive.")
    )
    session_id = fields.Str(load_default='default', validate=Length(min=1, max=64))

    @validates('bet_amount')
    def validate_bet_precision(self, value, **kwargs):
        # Credits carry at most 2 decimals
        if round(value, 2) != value:
            raise ValidationError('Bet amount must have at most 2 decimal places.')


class BonusBuyRequestSchema(Schema):
    tier_id = fields.Str(required=True, validate=Length(min=1, max=32))
    bet_amount = fields.Float(
        required=True,
        allow_nan=False,
        validate=Range(min=0, min_inclusive=False, error="Bet amount must be positive.")
    )
    session_id = fields.Str(load_default='default', validate=Length(min=1, max=64))


class BonusBuyOffersQuerySchema(Schema):
    # Omitted means the configured default bet
    bet_amount = fields.Float(
        load_default=None,
        allow_nan=False,
        validate=Range(min=0, min_inclusive=False, error="Bet amount must be positive.")
    )


class SessionQuerySchema(Schema):
    session_id = fields.Str(load_default='default', validate=Length(min=1, max=64))
