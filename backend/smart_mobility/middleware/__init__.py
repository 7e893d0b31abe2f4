# Middleware package init
"""
Smart Mobility Backend - Middleware Package
============================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [Security Headers]
            → [GZip] → [CORS] → [Session] → Route Handler

    1. Rate Limit first: reject credential floods before any processing
    2. Request ID: correlation id for logs and error bodies
    3. Logging: one access line per request, with the id
    4. Security headers on every response
    5. Session (only under the session auth strategy), innermost so route
       handlers see request.session
"""
