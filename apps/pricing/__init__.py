"""Pricing app package.

Single source of truth for booking amounts: the injectable
``PricingConfig``, the ``PricingEngine`` that reads rate tables at call
time, and the fail-closed ``PriceValidator`` used at checkout.
"""
