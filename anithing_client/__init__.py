"""Device-side sync agent for the AniThing API."""

from anithing_client.agent import SyncAgent
from anithing_client.config import Config

__all__ = ["Config", "SyncAgent"]
