"""Channel delivery: senders, recipient directory, dispatcher, metrics."""

from src.delivery.channels import (
    ChannelSender,
    EmailSender,
    HttpChannelSender,
    PushSender,
    SlackSender,
    SMSSender,
)
from src.delivery.directory import RecipientDirectory, StaticRecipientDirectory
from src.delivery.dispatcher import Dispatcher
from src.delivery.exceptions import (
    ChannelSendError,
    DeliveryError,
    RecipientResolutionError,
)
from src.delivery.factory import create_delivery_stack, create_senders
from src.delivery.metrics import ChannelStats, DeliveryMetrics

__all__ = [
    "ChannelSendError",
    "ChannelSender",
    "ChannelStats",
    "DeliveryError",
    "DeliveryMetrics",
    "Dispatcher",
    "EmailSender",
    "HttpChannelSender",
    "PushSender",
    "RecipientDirectory",
    "RecipientResolutionError",
    "SMSSender",
    "SlackSender",
    "StaticRecipientDirectory",
    "create_delivery_stack",
    "create_senders",
]
