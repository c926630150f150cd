"""
ASGI config for ScopeGen project.

Served by Uvicorn/Daphne in containers, or by AWS Lambda through Mangum.
"""
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# Initialize Django at import time so Lambda pays the cost during container
# startup instead of on the first request.
from django.core.asgi import get_asgi_application

application = get_asgi_application()


_lambda_handler = None


def get_lambda_handler():
    """Return the Mangum adapter around the ASGI application."""
    from mangum import Mangum
    return Mangum(application, lifespan="off")


def lambda_handler(event, context):
    """
    AWS Lambda entry point for HTTP requests.

    lambda_handlers.api_handler wraps this with extra error reporting.
    """
    global _lambda_handler
    if _lambda_handler is None:
        _lambda_handler = get_lambda_handler()
    return _lambda_handler(event, context)
