import logging
import re
import uuid
from pathlib import Path

from campaign_manager.config import settings

log = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_file_name(file_name: str) -> str:
    name = Path(file_name or "").name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "file"


class AssetStorage:
    """Stores campaign asset files on the local filesystem."""

    def __init__(self, root_dir: str = settings.ASSET_STORAGE_DIR, base_url: str = settings.ASSET_BASE_URL):
        self.root = Path(root_dir)
        self.base_url = base_url.rstrip("/")

    def build_key(self, campaign_id: uuid.UUID, file_name: str) -> str:
        return f"campaigns/{campaign_id}/{uuid.uuid4().hex}_{sanitize_file_name(file_name)}"

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def save(self, key: str, data: bytes) -> str:
        path = self.root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        log.debug("Stored asset %s (%s bytes)", key, len(data))
        return self.url_for(key)

    def delete(self, key: str) -> None:
        path = self.root / key
        try:
            path.unlink()
            log.debug("Deleted asset %s", key)
        except FileNotFoundError:
            log.warning("Asset file already missing: %s", key)
