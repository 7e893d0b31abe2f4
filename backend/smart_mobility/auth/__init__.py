"""
Smart Mobility Backend - Authentication Package

Credentials (passwords, bearer tokens, Google ID tokens) and the pluggable
strategies that turn a request into a caller id.
"""
