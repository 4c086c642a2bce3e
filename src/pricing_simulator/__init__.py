"""
Pricing Simulator Package

Quotes payment-processing services for a client configuration.
Resolves Configuration → Selection → Totals with tiered pricing, auto-added
services and layered discounts.
"""

__version__ = "2.0.0"
