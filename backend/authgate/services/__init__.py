# Services package init
"""
AuthGate — Services Layer
==========================

What:  Business logic between routes (HTTP) and database (persistence).

Service Inventory:
    - security: bcrypt hashing, JWT issuing, reset-token generation
    - AuthService: register, login, forgot/reset password, reset purge
    - scheduler: APScheduler jobs run inside the API process
"""
