"""EventSimulator: synthesises random domain events on a timer.

A demo / load harness that stands in for real producers. It goes through the
same :class:`PollingEventSource` interface as every other poller and has no
special path into rule matching.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from datetime import timedelta
from typing import Any

from src.core.types import Event, utc_now
from src.events.base import PollingEventSource

FieldFactory = Callable[[random.Random], dict[str, Any]]

_CUSTOMERS = ("Acme Corp", "Globex", "Initech", "Umbrella", "Hooli", "Vandelay")
_PLANS = ("starter", "growth", "enterprise")


def _payment_failed(rng: random.Random) -> dict[str, Any]:
    return {
        "amount": round(rng.uniform(10, 2500), 2),
        "currency": "USD",
        "customer": rng.choice(_CUSTOMERS),
        "reason": rng.choice(("card_declined", "insufficient_funds", "expired_card")),
        "attempt": rng.randint(1, 4),
    }


def _payment_received(rng: random.Random) -> dict[str, Any]:
    return {
        "amount": round(rng.uniform(10, 5000), 2),
        "currency": "USD",
        "customer": rng.choice(_CUSTOMERS),
        "plan": rng.choice(_PLANS),
    }


def _sla_breach(rng: random.Random) -> dict[str, Any]:
    return {
        "sla": rng.choice(("first_response", "resolution", "uptime")),
        "ticket": f"TCK-{rng.randint(1000, 9999)}",
        "minutes_overdue": rng.randint(1, 240),
        "tier": rng.choice(_PLANS),
    }


def _trial_expiring(rng: random.Random) -> dict[str, Any]:
    return {
        "account": rng.choice(_CUSTOMERS),
        "days_remaining": rng.randint(0, 7),
        "plan": rng.choice(_PLANS),
    }


def _security_incident(rng: random.Random) -> dict[str, Any]:
    return {
        "incident": rng.choice(("brute_force_login", "impossible_travel", "api_key_leak")),
        "severity": rng.choice(("low", "medium", "high", "critical")),
        "source_ip": ".".join(str(rng.randint(1, 254)) for _ in range(4)),
        "tags": rng.sample(["auth", "admin", "api", "sso", "mfa"], k=2),
    }


def _new_application(rng: random.Random) -> dict[str, Any]:
    return {
        "job": rng.choice(("Backend Engineer", "Data Analyst", "Product Designer")),
        "candidate": f"candidate-{rng.randint(100, 999)}",
        "score": rng.randint(0, 100),
    }


GENERATORS: dict[str, FieldFactory] = {
    "payment_failed": _payment_failed,
    "payment_received": _payment_received,
    "sla_breach": _sla_breach,
    "trial_expiring": _trial_expiring,
    "security_incident": _security_incident,
    "new_application": _new_application,
}


class EventSimulator(PollingEventSource):
    """Emits one random event per poll interval."""

    name = "simulator"

    def __init__(
        self,
        interval_secs: float = 5.0,
        event_types: Sequence[str] | None = None,
        seed: int | None = None,
        jitter_secs: float = 0.0,
    ) -> None:
        super().__init__(poll_interval_secs=interval_secs)
        types = list(event_types) if event_types else list(GENERATORS)
        unknown = [t for t in types if t not in GENERATORS]
        if unknown:
            raise ValueError(f"no generator for event types: {unknown}")
        self._types = types
        self._rng = random.Random(seed)
        self._jitter_secs = jitter_secs

    def generate(self) -> Event:
        """Build one random event."""
        event_type = self._rng.choice(self._types)
        occurred_at = utc_now()
        if self._jitter_secs:
            occurred_at -= timedelta(seconds=self._rng.uniform(0, self._jitter_secs))
        return Event(
            type=event_type,
            fields=GENERATORS[event_type](self._rng),
            occurred_at=occurred_at,
        )

    async def poll(self) -> list[Event]:
        return [self.generate()]
