"""Database models."""

from medgo.models.ambulance_requests import ambulance_notifications, ambulance_requests
from medgo.models.base import metadata
from medgo.models.driver_request_history import driver_request_history
from medgo.models.driver_status import driver_status
from medgo.models.push_tokens import push_tokens
from medgo.models.sms_delivery_status import sms_delivery_status
from medgo.models.users import users

__all__ = [
    "ambulance_notifications",
    "ambulance_requests",
    "driver_request_history",
    "driver_status",
    "metadata",
    "push_tokens",
    "sms_delivery_status",
    "users",
]
