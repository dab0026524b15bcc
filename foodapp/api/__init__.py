"""
HTTP routers, one module per area.
"""

from foodapp.api import (
    addresses,
    admin,
    cart,
    loyalty,
    menu,
    notifications,
    offers,
    orders,
    otp,
    pages,
    payments,
    users,
)

routers = [
    menu.router,
    cart.router,
    addresses.router,
    orders.router,
    offers.router,
    loyalty.router,
    otp.router,
    users.router,
    notifications.router,
    payments.router,
    admin.staff_router,
    admin.router,
    pages.router,
]

__all__ = ["routers"]
