"""Pytest configuration and shared fakes for the round lifecycle tests."""

import asyncio
import itertools
import random
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401  (registers the archive table on Base)
from config import Settings
from database import Base, build_engine
from core.player_registry import PlayerRegistry
from core.round_lifecycle import RoundLifecycle


class FakeGateway:
    """Records every broadcast and reply instead of sending it."""

    def __init__(self):
        self.broadcasts: List[tuple] = []
        self.replies: List[tuple] = []

    async def broadcast_all(self, event: str, payload: Dict[str, Any]) -> None:
        self.broadcasts.append((event, payload))

    async def reply_to(self, connection_id: str, event: str, payload: Dict[str, Any]) -> None:
        self.replies.append((connection_id, event, payload))

    def broadcast_events(self, event: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.broadcasts if name == event]

    def replies_to(self, connection_id: str, event: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            payload
            for cid, name, payload in self.replies
            if cid == connection_id and (event is None or name == event)
        ]


class RecordingSocket:
    """WebSocket stand-in that keeps every frame it is sent."""

    def __init__(self):
        self.frames: List[Dict[str, Any]] = []

    async def send_json(self, data):
        self.frames.append(data)

    def events(self, event: str) -> List[Dict[str, Any]]:
        return [frame["data"] for frame in self.frames if frame["event"] == event]


class StalledSocket:
    """WebSocket stand-in whose sends never complete (a peer that stopped reading)."""

    def __init__(self):
        self.attempts = 0

    async def send_json(self, data):
        self.attempts += 1
        await asyncio.sleep(3600)


class BrokenSocket:
    async def send_json(self, data):
        raise RuntimeError("connection reset")


class FakeSettlement:
    """In-process stand-in for the settlement service."""

    def __init__(
        self,
        round_ids=None,
        mint_status: str = "success",
        mint_delay: float = 0.0,
        fail_mint: bool = False,
        winning_pot: Optional[str] = None,
        oracle_success: bool = True,
        fail_oracle: bool = False,
        fail_report: bool = False,
    ):
        self._round_ids = iter(round_ids) if round_ids is not None else (
            f"round-{n}" for n in itertools.count(1)
        )
        self.mint_status = mint_status
        self.mint_delay = mint_delay
        self.fail_mint = fail_mint
        self.winning_pot = winning_pot
        self.oracle_success = oracle_success
        self.fail_oracle = fail_oracle
        self.fail_report = fail_report

        self.mint_calls: List[Dict[str, Any]] = []
        self.oracle_calls = 0
        self.reports: List[tuple] = []

    async def mint_round_id(self, metadata):
        self.mint_calls.append(metadata)
        if self.mint_delay:
            await asyncio.sleep(self.mint_delay)
        if self.fail_mint:
            raise RuntimeError("settlement unavailable")
        return next(self._round_ids), self.mint_status

    async def report_winners(self, round_id, winners):
        if self.fail_report:
            raise RuntimeError("settlement unavailable")
        self.reports.append((round_id, winners))
        return True

    async def fetch_winning_pot(self):
        self.oracle_calls += 1
        if self.fail_oracle:
            raise RuntimeError("oracle unavailable")
        return self.winning_pot, self.oracle_success


@pytest.fixture
def seeded_rng():
    """Provide a deterministic RNG for tests."""
    return random.Random(42)


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def settlement():
    return FakeSettlement(winning_pot="A")


@pytest.fixture
def registry():
    return PlayerRegistry()


def make_settings(**overrides) -> Settings:
    values = {
        "round_duration": 30.0,
        "cooldown_delay": 30.0,
        "pot_labels": ["A", "B", "C"],
        "settlement_timeout": 0.5,
    }
    values.update(overrides)
    return Settings(**values)


@pytest_asyncio.fixture
async def make_lifecycle(registry, gateway, settlement, session_factory, seeded_rng):
    """Factory for lifecycles; every lifecycle created is shut down afterwards."""
    created = []

    def factory(settings=None, settlement_override=None, gateway_override=None, **kwargs):
        lifecycle = RoundLifecycle(
            registry=registry,
            gateway=gateway_override or gateway,
            settlement=settlement_override or settlement,
            settings=settings or make_settings(),
            session_factory=session_factory,
            rng=seeded_rng,
            **kwargs,
        )
        created.append(lifecycle)
        return lifecycle

    yield factory

    for lifecycle in created:
        await lifecycle.shutdown()


@pytest_asyncio.fixture
async def lifecycle(make_lifecycle):
    return make_lifecycle()
