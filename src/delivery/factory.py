"""Convenience factory for wiring the delivery stack."""

from __future__ import annotations

from src.core.config import ChannelsConfig, DispatchConfig
from src.delivery.channels import (
    ChannelSender,
    EmailSender,
    PushSender,
    SlackSender,
    SMSSender,
)
from src.delivery.dispatcher import Dispatcher
from src.delivery.metrics import DeliveryMetrics


def create_senders(config: ChannelsConfig) -> list[ChannelSender]:
    """Instantiate a sender for every enabled channel."""
    senders: list[ChannelSender] = []

    if config.email.enabled:
        senders.append(EmailSender(config.email))

    if config.sms.enabled:
        senders.append(SMSSender(config.sms))

    if config.slack.enabled:
        senders.append(SlackSender(config.slack))

    if config.push.enabled:
        senders.append(PushSender(config.push))

    return senders


def create_delivery_stack(
    channels: ChannelsConfig,
    dispatch: DispatchConfig,
) -> tuple[Dispatcher, DeliveryMetrics]:
    """Build a dispatcher + metrics collector from config.

    Returns:
        (dispatcher, metrics)
    """
    metrics = DeliveryMetrics()
    dispatcher = Dispatcher(
        senders=create_senders(channels),
        config=dispatch,
        metrics=metrics,
    )
    return dispatcher, metrics
