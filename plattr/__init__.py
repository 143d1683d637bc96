"""
                Plattr Storefront

Customer-side core of a food-ordering storefront: phone + OTP sign-in,
a per-user cart and order placement, over a pluggable record store.

Version: 1.0.0
"""

__version__ = "1.0.0"
