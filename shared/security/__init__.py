"""
Admin authentication: JWT tokens and login rate limiting.
"""
