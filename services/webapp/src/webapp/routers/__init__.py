"""
API router package.

Contains the FastAPI routers for health, users, leaderboards, orders,
background tasks, Sentry webhooks and the debug endpoints.
"""
