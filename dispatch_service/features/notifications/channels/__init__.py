"""Channel-specific notification delivery.

- Email: SMTP relay from the settings store
- SMS: form-POST aggregator gateway
- In-App: the notification record itself
"""

from __future__ import annotations

from dispatch_service.features.notifications.channels.base import ChannelDispatcher
from dispatch_service.features.notifications.channels.email import EmailChannelDispatcher
from dispatch_service.features.notifications.channels.in_app import InAppChannelDispatcher
from dispatch_service.features.notifications.channels.sms import SmsChannelDispatcher

__all__ = [
    "ChannelDispatcher",
    "EmailChannelDispatcher",
    "InAppChannelDispatcher",
    "SmsChannelDispatcher",
]
