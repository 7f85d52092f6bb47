"""Fleet app package.

Holds the rate tables the pricing engine reads at call time: vehicles
and their daily rates, rental locations with their drop-off fee groups,
add-ons, and the key/value system settings used for protection-plan and
additional-driver rates.
"""
