"""Push delivery backends and the work queue that drives them."""

from .fcm import FcmProvider
from .queue import PushWorkQueue, QueueConfig
from .web_push import WebPushProvider

__all__ = ["FcmProvider", "PushWorkQueue", "QueueConfig", "WebPushProvider"]
