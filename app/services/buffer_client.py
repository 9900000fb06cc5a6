import os
import requests

from app.services.publishers import PublishReceipt

BUFFER_API = "https://api.bufferapp.com/1"

class BufferError(Exception):
    pass

def _headers(token: str | None):
    if not token:
        raise BufferError("BUFFER_ACCESS_TOKEN not set")
    return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

def create_update(profile_id: str, text: str, token: str | None = None, timeout: int = 30):
    """
    Creates a Buffer update and shares it now; the pipeline already decided the time.
    """
    if not profile_id:
        raise BufferError("Missing Buffer profile_id")

    payload = {
        "profile_ids": [profile_id],
        "text": text,
        "now": True,
    }

    resp = requests.post(
        f"{BUFFER_API}/updates/create.json",
        headers=_headers(token or os.getenv("BUFFER_ACCESS_TOKEN")),
        json=payload,
        timeout=timeout,
    )
    if resp.status_code >= 400:
        raise BufferError(f"Buffer error {resp.status_code}: {resp.text}")

    return resp.json()


class BufferPublisher:
    """Publishes through one Buffer profile (one per social platform)."""

    def __init__(self, profile_id: str, token: str | None = None):
        self.profile_id = profile_id
        self.token = token

    def publish(self, post) -> PublishReceipt:
        text = (post.processed_content or post.raw_content or "").strip()
        if not text:
            raise BufferError("Empty post content; cannot publish")

        res = create_update(profile_id=self.profile_id, text=text, token=self.token)
        updates = res.get("updates")
        update_id = updates[0].get("id") if isinstance(updates, list) and updates else None
        if not update_id:
            raise BufferError(f"Buffer accepted the update but returned no id: {res}")
        return PublishReceipt(external_post_id=str(update_id))
