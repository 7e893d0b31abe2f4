# Services package init
"""
Smart Mobility Backend - Services Layer
========================================

What:  Business logic between the routes (HTTP) and the stores (persistence).
How:   Services receive their stores and collaborators in the constructor;
       smart_mobility.dependencies builds them per request.

Service Inventory:
    - GeoMatcher: is this trip a route the user already has?
    - RouteService: save-or-use, use, deactivate, list, history, stats
    - UserService: profile read/update and user statistics
    - AuthService: register, login, Google sign-in, verify, test account
"""
