"""
finance_app.api.routers

HTTP routers, one module per resource.
"""
