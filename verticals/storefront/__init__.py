"""Storefront vertical: promotions wired into a multi-tenant shop.

- SQLAlchemy rule table with TenantMixin
- Async repository with atomic usage accounting
- Commit service enforcing usage limits exactly once per order
- FastAPI router for cart preview, rule validation and order commit
"""
