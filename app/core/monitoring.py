"""
Application monitoring and error tracking with Sentry
"""
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.httpx import HttpxIntegration

from config import settings


def init_sentry():
    """
    Initialize Sentry for error tracking when SENTRY_DSN is configured
    """
    if not settings.SENTRY_DSN:
        return False

    sentry_environment = settings.SENTRY_ENVIRONMENT
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=sentry_environment,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            AsyncioIntegration(),
            HttpxIntegration(),
        ],
        traces_sample_rate=1.0 if sentry_environment == "development" else 0.1,
        release=settings.APP_VERSION,
    )
    return True
