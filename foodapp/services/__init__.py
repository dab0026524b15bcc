"""
                        Services Module

Business logic lives here as plain async functions taking an AsyncSession.
Integrations follow the hybrid pattern: a Mock implementation for
development and a Real one for staging/production, picked by ENV_MODE.

Domain services:
    - menu_service, cart_service, address_service, order_service
    - offer_service, loyalty_service, otp_service, user_service
    - restaurant_service, admin_service, export_service

Integrations:
    - payment: Stripe payment intents, webhooks and refunds
    - notifications: Twilio SMS/WhatsApp and SendGrid email
    - media: Cloudinary image uploads
"""
