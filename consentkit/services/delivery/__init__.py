"""
Delivery Service

At-least-once delivery of preference saves and banner-open events.
"""

from .event_sync import EventDeliverySync, FlushResult
from .payloads import SavePreferencesPayload, SaveOpenPayload

__all__ = ["EventDeliverySync", "FlushResult", "SavePreferencesPayload", "SaveOpenPayload"]
