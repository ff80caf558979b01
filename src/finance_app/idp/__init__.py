"""
finance_app.idp

Identity provider integration package.

Responsibilities:
- Provide the client used to provision and revoke accounts at the external IdP.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services depend on the `IdentityProvider` protocol, not on HTTP details.
