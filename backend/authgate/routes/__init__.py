# Routes package init
"""
AuthGate — API Routes Package
==============================

Route Inventory:
    - root.py:  GET  /                           (boilerplate liveness text)
    - auth.py:  POST /api/auth/register
                POST /api/auth/login
                POST /api/auth/forgot-password
                POST /api/auth/reset-password

Routes stay thin: extract the body, call the service, return the schema.
"""
