"""
Lanka Chemist email package.

Services send email through the Communications Service API with
``EmailClient`` (client.py); templates live with that service, keyed by
template type (``order_confirmation``, ``admin_new_order``,
``order_status_update``).
"""
