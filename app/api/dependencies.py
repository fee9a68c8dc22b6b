"""FastAPI dependencies resolving services built during application startup."""

from fastapi import Request

from app.services.enrollment_service import EnrollmentSequencer
from app.services.event_dispatcher import EventDispatcher
from app.services.notification_service import NotificationTrigger


def get_sequencer(request: Request) -> EnrollmentSequencer:
    return request.app.state.sequencer


def get_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.dispatcher


def get_notifier(request: Request) -> NotificationTrigger:
    return request.app.state.notifier
