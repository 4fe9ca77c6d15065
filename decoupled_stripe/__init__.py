"""
Decoupled Stripe - intent-based Stripe payment gateways for a host checkout.

The host confirms intents client-side; this package creates them and later
reconciles their outcome into local payment records.
"""

__version__ = "0.1.0"
