"""
Core app - Shared abstractions and utilities.

Provides the TaskService used by proposals (emails) and roofing
(EagleView order polling) to run background work on one of:
- Local development (sync execution)
- AWS Lambda + SQS (production)
- Celery + Redis (fallback)
"""
