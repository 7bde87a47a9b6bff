"""
Core package: settings, structured logging, bearer token helpers and the
rate limiter shared by the API routers.
"""
