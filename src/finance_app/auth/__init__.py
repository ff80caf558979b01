"""
finance_app.auth

Authentication/authorization package.

Responsibilities:
- JWT verification boundary and dev token minting.
- Claim extraction into a typed `CallerIdentity`.
- Pure authorization decisions (roles + ownership).
- FastAPI dependencies wiring the above into routers.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# `claims` and `policy` have no FastAPI/HTTP imports so they can be tested in isolation.
