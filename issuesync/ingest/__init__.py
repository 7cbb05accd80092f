"""GitHub webhook intake and HTTP API."""

from .intake import IntakeResult, WebhookIntake
from .dependencies import Services
from .server import create_app

__all__ = [
    "IntakeResult",
    "WebhookIntake",
    "Services",
    "create_app",
]
