from .types import TransitionEvent
from .base import Notifier
from .config import ChannelConfigError, parse_channel_config
from .dispatcher import NotificationDispatcher
from .factory import build_notifier

__all__ = [
	"TransitionEvent",
	"Notifier",
	"ChannelConfigError",
	"parse_channel_config",
	"NotificationDispatcher",
	"build_notifier",
]
