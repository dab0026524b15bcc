"""
                Food Ordering Backend

Storefront, cart, checkout, order tracking, offers, loyalty points and
an admin panel, with a hybrid Mock/Real integration layer for payments,
SMS/WhatsApp, email and image uploads.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
