"""
finance_app.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Identity (users) and ledger data (categories/budgets/transactions) share one database;
# they are joined only by username, never by foreign key.
