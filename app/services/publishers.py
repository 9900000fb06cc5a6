"""Platform publish adapters, one per social platform, looked up by platform name."""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Protocol


@dataclass(frozen=True)
class PublishReceipt:
    external_post_id: str


class PlatformPublisher(Protocol):
    def publish(self, post) -> PublishReceipt:
        """Deliver the post; raise on any platform or network failure."""
        ...


PROFILE_ENV_PREFIX = "BUFFER_PROFILE_ID_"


def publishers_from_env(environ: Mapping[str, str] | None = None) -> dict[str, PlatformPublisher]:
    # BUFFER_PROFILE_ID_LINKEDIN=... -> {"linkedin": BufferPublisher(...)}
    from app.services.buffer_client import BufferPublisher

    environ = os.environ if environ is None else environ
    token = environ.get("BUFFER_ACCESS_TOKEN")
    out: dict[str, PlatformPublisher] = {}
    for key, value in environ.items():
        if key.startswith(PROFILE_ENV_PREFIX) and value:
            out[key[len(PROFILE_ENV_PREFIX):].lower()] = BufferPublisher(profile_id=value, token=token)
    return out


@lru_cache
def get_publishers() -> dict[str, PlatformPublisher]:
    return publishers_from_env()
