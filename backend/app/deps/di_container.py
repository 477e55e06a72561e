"""
Dependency injection container using dependency-injector.
Wires the process-wide singletons: alert channels, scheduler and health.
"""

from typing import Optional

from dependency_injector import containers, providers

from app.core.config import settings
from app.core.integrations.http.http_client import HttpClient
from app.services.alert_dispatcher import AlertDispatcher
from app.services.email_service import EmailService
from app.services.health_service import HealthService
from app.services.reminder_scheduler import ReminderScheduler
from app.controllers.health_controller import HealthController


def _webhook_client(url: Optional[str], timeout: int) -> Optional[HttpClient]:
    if not url:
        return None
    return HttpClient(base_url=url, timeout=timeout)


class Container(containers.DeclarativeContainer):
    """Dependency injection container."""

    # Configuration
    config = providers.Configuration()

    # Alert channels
    email_service = providers.Singleton(
        EmailService,
    )

    webhook_client = providers.Singleton(
        _webhook_client,
        url=config.alert_webhook_url,
        timeout=config.alert_webhook_timeout_seconds,
    )

    alert_dispatcher = providers.Singleton(
        AlertDispatcher,
        email_service=email_service,
        webhook_client=webhook_client,
    )

    # Background jobs
    reminder_scheduler = providers.Singleton(
        ReminderScheduler,
        dispatcher=alert_dispatcher,
        interval_seconds=config.reminder_interval_seconds,
    )

    # Services
    health_service = providers.Singleton(
        HealthService,
        scheduler=reminder_scheduler,
    )

    # Controllers
    health_controller = providers.Factory(
        HealthController,
        health_service=health_service,
    )


# Global container instance
_container: Container = None


def build_container() -> Container:
    container = Container()
    container.config.from_dict({
        "alert_webhook_url": settings.ALERT_WEBHOOK_URL,
        "alert_webhook_timeout_seconds": settings.ALERT_WEBHOOK_TIMEOUT_SECONDS,
        "reminder_interval_seconds": settings.REMINDER_INTERVAL_SECONDS,
    })
    return container


def get_container() -> Container:
    """Get the global dependency injection container."""
    global _container
    if _container is None:
        _container = build_container()
    return _container


def get_alert_dispatcher() -> AlertDispatcher:
    """FastAPI dependency for the shared alert dispatcher."""
    return get_container().alert_dispatcher()
