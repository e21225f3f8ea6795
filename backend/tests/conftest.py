import os
import sys
from types import SimpleNamespace

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from correlator import PendingRequestRegistry
from errors import TransportError
from transport import RoomTransport


class FakeTransport(RoomTransport):
    """Records every command; on_send lets a test play the browser."""

    def __init__(self, on_send=None, fail: bool = False):
        self.sent: list[tuple[str, dict, list[str]]] = []
        self.on_send = on_send
        self.fail = fail

    async def send_data(self, room, payload, destination_identities):
        if self.fail:
            raise TransportError("room unreachable")
        self.sent.append((room, payload, list(destination_identities)))
        if self.on_send is not None:
            await self.on_send(room, payload, destination_identities)


class FakeModels:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def generate_content(self, model, contents):
        self.calls.append({"model": model, "contents": contents})
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeRotator:
    """Stands in for KeyRotator; every client shares one FakeModels."""

    def __init__(self, *responses):
        self.models = FakeModels(responses)
        self.clients_issued = 0

    def get_client(self):
        self.clients_issued += 1
        return SimpleNamespace(aio=SimpleNamespace(models=self.models))


def text_response(*texts, thought: str = None):
    parts = []
    if thought:
        parts.append(SimpleNamespace(text=thought, thought=True))
    parts.extend(SimpleNamespace(text=t, thought=None) for t in texts)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])


@pytest.fixture
def registry():
    return PendingRequestRegistry()


@pytest.fixture
def transport():
    return FakeTransport()
