"""Recipient directory: resolves rule recipient references to addresses."""

from __future__ import annotations

import abc
import re

from src.core.config import DirectoryConfig, DirectoryUserConfig
from src.core.types import ChannelKind, Recipient, RecipientKind, RecipientRef
from src.delivery.exceptions import RecipientResolutionError

_PHONE_RE = re.compile(r"^\+?[0-9][0-9 ()-]{5,}$")


class RecipientDirectory(abc.ABC):
    """Resolves a :class:`RecipientRef` to concrete recipients."""

    @abc.abstractmethod
    async def resolve(self, ref: RecipientRef) -> list[Recipient]:
        """Return one or more recipients.

        Raises:
            RecipientResolutionError: the reference cannot be resolved.
        """


def _recipient(user_id: str, entry: DirectoryUserConfig) -> Recipient:
    addresses = {
        ChannelKind.EMAIL: entry.email,
        ChannelKind.SMS: entry.phone,
        ChannelKind.SLACK: entry.slack,
        ChannelKind.PUSH: entry.push_token,
    }
    return Recipient(
        user_id=user_id,
        addresses={k: v for k, v in addresses.items() if v},
    )


def literal_recipient(address: str) -> Recipient | None:
    """Build a recipient for an address that belongs to no known user."""
    if address.startswith("#"):
        return Recipient(user_id=address, addresses={ChannelKind.SLACK: address})
    if "@" in address:
        return Recipient(user_id=address, addresses={ChannelKind.EMAIL: address})
    if _PHONE_RE.match(address):
        return Recipient(user_id=address, addresses={ChannelKind.SMS: address})
    return None


class StaticRecipientDirectory(RecipientDirectory):
    """Directory backed by the ``directory.users`` settings section."""

    def __init__(self, config: DirectoryConfig | None = None) -> None:
        self._users: dict[str, DirectoryUserConfig] = dict(
            (config or DirectoryConfig()).users
        )

    def add_user(self, user_id: str, entry: DirectoryUserConfig) -> None:
        self._users[user_id] = entry

    async def resolve(self, ref: RecipientRef) -> list[Recipient]:
        if not ref.value:
            raise RecipientResolutionError("empty recipient reference")

        if ref.kind == RecipientKind.USER:
            entry = self._users.get(ref.value)
            if entry is None:
                raise RecipientResolutionError(f"unknown user {ref.value!r}")
            return [_recipient(ref.value, entry)]

        if ref.kind == RecipientKind.ROLE:
            members = [
                _recipient(uid, entry)
                for uid, entry in self._users.items()
                if ref.value in entry.roles
            ]
            if not members:
                raise RecipientResolutionError(f"role {ref.value!r} has no members")
            return members

        for uid, entry in self._users.items():
            if ref.value in (entry.email, entry.phone, entry.slack):
                return [_recipient(uid, entry)]
        recipient = literal_recipient(ref.value)
        if recipient is None:
            raise RecipientResolutionError(f"unrecognised address {ref.value!r}")
        return [recipient]
