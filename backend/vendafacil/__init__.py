"""
VendaFácil billing and access service.

Owns the Hotmart subscription webhook, the per-store entitlement record
and the access gate consumed by the app layout.
"""

__version__ = "1.0.0"
