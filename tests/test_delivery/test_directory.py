"""Tests for the static recipient directory."""

from __future__ import annotations

import pytest

from src.core.config import DirectoryConfig, DirectoryUserConfig
from src.core.types import ChannelKind, RecipientRef
from src.delivery.directory import StaticRecipientDirectory, literal_recipient
from src.delivery.exceptions import RecipientResolutionError


def _directory() -> StaticRecipientDirectory:
    return StaticRecipientDirectory(DirectoryConfig(users={
        "alice": DirectoryUserConfig(
            email="alice@example.com", phone="+15550100", roles=["finance", "ops"]
        ),
        "bob": DirectoryUserConfig(email="bob@example.com", slack="@bob", roles=["ops"]),
    }))


class TestResolve:
    async def test_user(self) -> None:
        [r] = await _directory().resolve(RecipientRef.parse("user:alice"))
        assert r.user_id == "alice"
        assert r.address_for(ChannelKind.EMAIL) == "alice@example.com"
        assert r.address_for(ChannelKind.SMS) == "+15550100"
        assert r.address_for(ChannelKind.PUSH) is None

    async def test_unknown_user_raises(self) -> None:
        with pytest.raises(RecipientResolutionError):
            await _directory().resolve(RecipientRef.parse("user:mallory"))

    async def test_role_expands_to_members(self) -> None:
        members = await _directory().resolve(RecipientRef.parse("role:ops"))
        assert sorted(r.user_id for r in members) == ["alice", "bob"]

    async def test_empty_role_raises(self) -> None:
        with pytest.raises(RecipientResolutionError):
            await _directory().resolve(RecipientRef.parse("role:legal"))

    async def test_known_address_maps_to_user(self) -> None:
        [r] = await _directory().resolve(RecipientRef.parse("bob@example.com"))
        assert r.user_id == "bob"

    async def test_literal_email_address(self) -> None:
        [r] = await _directory().resolve(RecipientRef.parse("finance@example.com"))
        assert r.user_id == "finance@example.com"
        assert r.addresses == {ChannelKind.EMAIL: "finance@example.com"}

    async def test_unrecognised_address_raises(self) -> None:
        with pytest.raises(RecipientResolutionError):
            await _directory().resolve(RecipientRef.parse("nobody"))

    async def test_empty_ref_raises(self) -> None:
        with pytest.raises(RecipientResolutionError):
            await _directory().resolve(RecipientRef(value=""))

    async def test_add_user(self) -> None:
        directory = StaticRecipientDirectory()
        directory.add_user("carol", DirectoryUserConfig(push_token="tok"))
        [r] = await directory.resolve(RecipientRef.parse("user:carol"))
        assert r.address_for(ChannelKind.PUSH) == "tok"


class TestLiteralRecipient:
    def test_slack_channel(self) -> None:
        r = literal_recipient("#alerts")
        assert r is not None and r.addresses == {ChannelKind.SLACK: "#alerts"}

    def test_phone(self) -> None:
        r = literal_recipient("+1 555 0100")
        assert r is not None and ChannelKind.SMS in r.addresses

    def test_garbage(self) -> None:
        assert literal_recipient("hello") is None
