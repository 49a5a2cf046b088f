"""
Messaging utilities for the stack guide.

This package provides the async Redis client wrapper used for caching
and pub/sub, and the shared Celery application that the task-queue and
monitoring packages register their tasks with.
"""
