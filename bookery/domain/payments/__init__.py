"""
Payments domain

Checkout initiation against the gateway, verification of payment outcomes,
the return page flow and the gateway webhook.
"""
