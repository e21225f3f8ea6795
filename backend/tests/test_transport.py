import pytest

import config
from errors import TransportNotConfiguredError
from transport import LiveKitRoomTransport, build_dispatch_metadata


@pytest.mark.parametrize("ws_url, http_url", [
    ("wss://lab.livekit.cloud", "https://lab.livekit.cloud"),
    ("ws://localhost:7880", "http://localhost:7880"),
    ("https://already.http", "https://already.http"),
])
def test_livekit_http_url(ws_url, http_url):
    assert config.livekit_http_url(ws_url) == http_url


def test_single_agent_config_is_wrapped_in_squad(monkeypatch):
    monkeypatch.setattr(config, "CALL_EVENTS_URL", "https://app.test/api/call-events")
    monkeypatch.setattr(config, "AGENT_WEBHOOK_TOKEN", "env-token")

    metadata = build_dispatch_metadata(
        {"name": "Sparky", "llm": {"model": "x"}, "callConfig": {"stt": {"lang": "en"}}},
        room="lab-room",
        participant="trainee-7",
    )

    assert metadata["callType"] == "inbound"
    assert metadata["room_name"] == "lab-room"
    assert metadata["demo_mode"] is True
    assert metadata["squad"]["members"][0]["agent"]["name"] == "Sparky"
    assert metadata["callbackUrl"] == "https://app.test/api/call-events"
    assert metadata["webhookToken"] == "env-token"
    assert metadata["userId"] == "trainee-7"
    assert metadata["callConfig"] == {"stt": {"lang": "en"}, "llm": {"model": "x"}}


def test_squad_config_passes_through(monkeypatch):
    monkeypatch.setattr(config, "CALL_EVENTS_URL", "")
    monkeypatch.setattr(config, "AGENT_WEBHOOK_TOKEN", "")

    squad = {"squad": {"members": []}, "userId": "owner", "callbackUrl": "https://cb.test", "webhookToken": "cfg"}
    metadata = build_dispatch_metadata(squad, room="r", participant="p")

    assert metadata["squad"] == {"members": []}
    assert "callType" not in metadata
    assert metadata["userId"] == "owner"
    assert metadata["callbackUrl"] == "https://cb.test"
    assert metadata["webhookToken"] == "cfg"
    assert metadata["callConfig"] == {}


def test_missing_urls_are_not_promoted(monkeypatch):
    monkeypatch.setattr(config, "CALL_EVENTS_URL", "")
    monkeypatch.setattr(config, "AGENT_WEBHOOK_TOKEN", "")
    metadata = build_dispatch_metadata({"name": "Sparky"}, room="r", participant="p")
    assert "callbackUrl" not in metadata
    assert "webhookToken" not in metadata


def test_token_has_three_segments():
    transport = LiveKitRoomTransport(url="wss://lab.livekit.cloud", api_key="key", api_secret="s" * 40)
    assert transport.configured
    assert transport.create_token("lab-room", "trainee-7").count(".") == 2


@pytest.mark.asyncio
async def test_unconfigured_transport_refuses_to_send():
    transport = LiveKitRoomTransport(url="", api_key="", api_secret="")
    assert not transport.configured
    with pytest.raises(TransportNotConfiguredError):
        await transport.send_data("room", {"type": "capture_screenshot"}, ["someone"])
    with pytest.raises(TransportNotConfiguredError):
        transport.create_token("room", "someone")
