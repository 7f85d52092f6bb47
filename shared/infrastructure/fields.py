"""
Custom Django model fields for money.

MoneyField stores amounts as DECIMAL(max_digits, 2) and quantizes every
value to the cent (half-up) before it reaches the database, so a stray
float or an unrounded Decimal can never leak into a persisted total.
"""

from decimal import Decimal

from django.db import models

from shared.domain.value_objects import round_cents


class MoneyField(models.DecimalField):
    """DecimalField fixed at two decimal places with half-up rounding."""

    description = "Money amount rounded to the cent"

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('max_digits', 10)
        kwargs['decimal_places'] = 2
        kwargs.setdefault('default', Decimal('0.00'))
        super().__init__(*args, **kwargs)

    def deconstruct(self):
        name, path, args, kwargs = super().deconstruct()
        kwargs.pop('decimal_places', None)
        return name, path, args, kwargs

    def get_prep_value(self, value):
        value = super().get_prep_value(value)
        if value is None:
            return value
        return round_cents(value)
