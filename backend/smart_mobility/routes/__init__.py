# Routes package init
"""
Smart Mobility Backend - API Routes Package
============================================

Route Inventory:
    - health.py:           GET /, GET /health, GET /api/health
    - auth.py:             /api/auth/{register, login, google, logout,
                           verify, me, test-account}
    - users.py:            /api/users/{profile, stats}
    - frequent_routes.py:  /api/routes/{frequent, frequent/{id}/use,
                           frequent/{id}, history, stats}

Routes are thin: they read the request, resolve the caller, call a service
and pick the status code. Business rules live in the services.
"""
