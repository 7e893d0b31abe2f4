"""
Smart Mobility Backend - Application Package
=============================================

What:  Backend for the Smart Mobility app: user accounts (email/password and
       Google sign-in), profiles, and frequent routes with usage statistics.
Who:   Imported by uvicorn (`smart_mobility.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │   Routes + Auth strategies (HTTP)   │  ← request parsing, caller resolution
    ├─────────────────────────────────────┤
    │   Services (GeoMatcher, Route...)   │  ← matching, usage accounting
    ├─────────────────────────────────────┤
    │   Stores (RouteStore, UserStore)    │  ← explicit storage interface
    ├─────────────────────────────────────┤
    │   Models + Database (SQLAlchemy)    │  ← async sessions, one per request
    └─────────────────────────────────────┘

    Services never import the session factory. They receive stores, and the
    stores receive the request's session, so every layer can be exercised
    with a mock or an in-memory SQLite database.
"""

__version__ = "1.0.0"
