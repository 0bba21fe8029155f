"""Public blob upload for encoded actor clips.

Providers fetch the reference clip by URL, so it must be publicly
reachable. The default store is Catbox (https://catbox.moe/tools.php): a
multipart POST that answers with the file URL as plain text.
"""

from __future__ import annotations

import logging
import os
from typing import Protocol

import httpx

from matrixgen.services.errors import ActorRegistrationError

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    async def upload(self, path: str) -> str:
        """Upload a local file and return its public URL."""
        ...


class CatboxBlobStore:
    def __init__(
        self,
        upload_url: str = "https://catbox.moe/user/api.php",
        *,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.upload_url = upload_url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._own_client = client is None

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def upload(self, path: str) -> str:
        name = os.path.basename(path)
        try:
            with open(path, "rb") as f:
                resp = await self._client.post(
                    self.upload_url,
                    data={"reqtype": "fileupload"},
                    files={"fileToUpload": (name, f.read(), "video/mp4")},
                )
        except OSError as e:
            raise ActorRegistrationError(f"cannot read {path}: {e}") from e
        except httpx.TimeoutException as e:
            raise ActorRegistrationError("upload timed out") from e
        except httpx.HTTPError as e:
            raise ActorRegistrationError(f"upload failed: {e}") from e

        text = resp.text.strip()
        if resp.is_success and text.startswith("https://"):
            logger.info("Uploaded %s → %s", name, text)
            return text
        raise ActorRegistrationError(f"upload rejected: {text or f'HTTP {resp.status_code}'}")
