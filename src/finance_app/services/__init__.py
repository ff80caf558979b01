"""
finance_app.services

Service layer.

Responsibilities:
- Own transactions (commit/rollback) and cross-system ordering.
- Take the caller's identity explicitly on every authorized call.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services never read request-scoped globals; routers pass `CallerIdentity` in.
