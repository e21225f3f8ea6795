# ============================================================
# transport.py - LiveKit Room Transport
# ============================================================
# The only ways this backend touches the real-time room: send a
# JSON command to one participant over the data channel, mint a
# join token, and dispatch the voice agent into a room.
# ============================================================

import json
import asyncio
from typing import Any

from livekit import api

import config
from errors import TransportError, TransportNotConfiguredError


class RoomTransport:
    """Participant-addressed command delivery into a room."""

    async def send_data(self, room: str, payload: dict, destination_identities: list[str]) -> None:
        raise NotImplementedError


class LiveKitRoomTransport(RoomTransport):
    """RoomTransport backed by the LiveKit server API."""

    def __init__(
        self,
        url: str = None,
        api_key: str = None,
        api_secret: str = None,
    ):
        self.url = config.LIVEKIT_URL if url is None else url
        self.api_key = config.LIVEKIT_API_KEY if api_key is None else api_key
        self.api_secret = config.LIVEKIT_API_SECRET if api_secret is None else api_secret

    @property
    def configured(self) -> bool:
        return bool(self.url and self.api_key and self.api_secret)

    def _require_config(self):
        if not self.configured:
            raise TransportNotConfiguredError("LiveKit not configured")

    def _client(self) -> api.LiveKitAPI:
        return api.LiveKitAPI(config.livekit_http_url(self.url), self.api_key, self.api_secret)

    async def send_data(self, room: str, payload: dict, destination_identities: list[str]) -> None:
        self._require_config()
        data = json.dumps(payload).encode("utf-8")
        print(f"[SEND] {payload.get('type')} -> room={room} to={destination_identities}")

        lkapi = self._client()
        try:
            await lkapi.room.send_data(
                api.SendDataRequest(
                    room=room,
                    data=data,
                    kind=api.DataPacket.RELIABLE,
                    destination_identities=destination_identities,
                )
            )
        except (api.TwirpError, OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"Failed to send {payload.get('type')} to room {room}: {e}")
        finally:
            await lkapi.aclose()

    def create_token(self, room: str, identity: str) -> str:
        """Join token with publish, subscribe and data-channel grants."""
        self._require_config()
        token = (
            api.AccessToken(self.api_key, self.api_secret)
            .with_identity(identity)
            .with_name(identity)
            .with_grants(
                api.VideoGrants(
                    room_join=True,
                    room=room,
                    can_publish=True,
                    can_subscribe=True,
                    can_publish_data=True,
                )
            )
        )
        return token.to_jwt()

    async def dispatch_agent(self, room: str, metadata: dict, agent_name: str = None) -> bool:
        """
        Ask LiveKit to dispatch the voice agent into `room`.

        Failures are logged and reported as False; the participant can still
        join without an agent.
        """
        self._require_config()
        agent_name = agent_name or config.AGENT_DISPATCH_NAME
        print(f"[DISPATCH] Dispatching agent '{agent_name}' to room: {room}")

        lkapi = self._client()
        try:
            result = await lkapi.agent_dispatch.create_dispatch(
                api.CreateAgentDispatchRequest(
                    agent_name=agent_name,
                    room=room,
                    metadata=json.dumps(metadata),
                )
            )
            print(f"[DISPATCH] Agent dispatch successful: {result.id}")
            return True
        except (api.TwirpError, OSError, asyncio.TimeoutError) as e:
            print(f"[ERROR] Error dispatching agent: {e}")
            return False
        finally:
            await lkapi.aclose()


def build_dispatch_metadata(agent_config: dict[str, Any], room: str, participant: str) -> dict[str, Any]:
    """
    Build the dispatch metadata the Python agent server reads into session.userdata.

    Configs without a squad get wrapped as a single-member squad. callbackUrl
    and webhookToken are promoted to the top level (config first, then env),
    and tts/llm/stt overrides are folded into callConfig.
    """
    if agent_config.get("squad"):
        base = dict(agent_config)
    else:
        base = {
            "callType": "inbound",
            "room_name": room,
            "demo_mode": True,
            "squad": {"members": [{"agent": agent_config}]},
        }

    callback_url = agent_config.get("callbackUrl") or base.get("callbackUrl") or config.CALL_EVENTS_URL
    webhook_token = agent_config.get("webhookToken") or base.get("webhookToken") or config.AGENT_WEBHOOK_TOKEN

    call_config = {
        **(base.get("callConfig") or {}),
        **(agent_config.get("callConfig") or {}),
    }
    for key in ("tts", "llm", "stt"):
        if agent_config.get(key):
            call_config[key] = agent_config[key]

    metadata = dict(base)
    if callback_url:
        metadata["callbackUrl"] = callback_url
    if webhook_token:
        metadata["webhookToken"] = webhook_token
    metadata["userId"] = base.get("userId") or participant
    metadata["callConfig"] = call_config
    return metadata
