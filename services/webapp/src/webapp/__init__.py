"""
FastAPI application for the stack guide.

Shows the four tools working together from one web app: Redis for
caching and leaderboards, RabbitMQ for order events, Celery for
background jobs, Sentry for errors and alerting.
"""
