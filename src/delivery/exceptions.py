"""Exception hierarchy for channel delivery."""

from __future__ import annotations


class DeliveryError(Exception):
    """Base exception for delivery errors."""


class ChannelSendError(DeliveryError):
    """A channel sender reported a failed send."""


class RecipientResolutionError(DeliveryError):
    """The recipient directory could not resolve a reference."""
