"""Upload user-supplied images to ImgBB so Notion can reference them by URL."""
from __future__ import annotations

import base64
import logging
from typing import Optional

import requests

from .config import env_or_config
from .errors import ConfigurationError, ImageHostError

logger = logging.getLogger(__name__)

IMGBB_UPLOAD_URL = "https://api.imgbb.com/1/upload"
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class ImgBBUploader:
    def __init__(
        self,
        api_key: str,
        *,
        upload_url: str = IMGBB_UPLOAD_URL,
        timeout_seconds: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.upload_url = upload_url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls) -> "ImgBBUploader":
        api_key = str(env_or_config("IMGBB_API_KEY", "image_host.api_key", "") or "").strip()
        if not api_key:
            raise ConfigurationError("Missing IMGBB_API_KEY environment variable")
        return cls(
            api_key,
            upload_url=str(env_or_config("IMGBB_UPLOAD_URL", "image_host.upload_url", IMGBB_UPLOAD_URL)),
        )

    def upload(self, content: bytes, filename: str = "image") -> str:
        """Return the public URL of the hosted copy of *content*."""
        payload = {"key": self.api_key, "image": base64.b64encode(content).decode("ascii"), "name": filename}
        try:
            response = self.session.post(self.upload_url, data=payload, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            raise ImageHostError(f"Image host unreachable: {exc}") from exc
        if not response.ok:
            raise ImageHostError(f"Image host returned HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise ImageHostError("Image host returned a non-JSON response") from exc
        url = (body.get("data") or {}).get("url") if isinstance(body, dict) else None
        if not (isinstance(body, dict) and body.get("success") and url):
            raise ImageHostError("Image host rejected the upload")
        logger.info("Uploaded %s (%s bytes) to image host", filename, len(content))
        return str(url)


def upload_with_default_host(content: bytes, filename: str) -> str:
    return ImgBBUploader.from_env().upload(content, filename)
