"""Media host client for product images.

The catalog treats the media host as an external collaborator with one
operation: given raw image bytes and a destination folder, return one
publicly resolvable URL per image, in input order. A failure of any image
fails the whole batch.
"""

import asyncio
import hashlib
import re
import time
from collections.abc import Sequence
from typing import Any, Protocol

import httpx
import structlog

from catalog_admin.infrastructure.config import Settings

logger = structlog.get_logger()


class MediaUploadError(Exception):
    """Error from the media host while uploading a batch of images."""

    def __init__(
        self, folder: str, message: str, status_code: int | None = None
    ) -> None:
        self.folder = folder
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{folder}] {message}")


class MediaHost(Protocol):
    """Image hosting contract."""

    async def upload_images(
        self,
        images: Sequence[bytes],
        folder: str,
        public_id_prefix: str,
    ) -> list[str]: ...

    async def close(self) -> None: ...


# ============================================================================
# Destination paths
# ============================================================================


def slugify(value: str) -> str:
    """Lowercase, with runs of non-alphanumerics collapsed to ``-``."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug or "uncategorized"


def build_media_folder(
    root: str,
    product_id: str,
    category_name: str,
    subcategory_name: str,
) -> str:
    """Destination folder for a product's images.

    Example:
        >>> build_media_folder("products", "prod_0001", "Home & Garden", "Lamps")
        'products/home-garden/lamps/prod_0001'
    """
    return "/".join(
        [root.strip("/"), slugify(category_name), slugify(subcategory_name), product_id]
    )


# ============================================================================
# Cloudinary HTTP client
# ============================================================================


class CloudinaryMediaHost:
    """Signed-upload client for a Cloudinary-compatible image API.

    Each image is posted as multipart form data to
    ``{base_url}/{cloud_name}/image/upload`` and the ``secure_url`` of the
    response is returned.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        base_url: str = "https://api.cloudinary.com/v1_1",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize media host client.

        Args:
            cloud_name: Account cloud name.
            api_key: API key sent with each upload.
            api_secret: Secret used to sign uploads; never sent.
            base_url: API root.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def sign(self, params: dict[str, Any]) -> str:
        """Signature over the sorted upload parameters.

        Args:
            params: Parameters to sign (``file`` and ``api_key`` excluded).

        Returns:
            Hex SHA-1 digest.
        """
        payload = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{payload}{self.api_secret}".encode()).hexdigest()

    async def _upload_one(self, image: bytes, folder: str, public_id: str) -> str:
        params: dict[str, Any] = {
            "folder": folder,
            "public_id": public_id,
            "timestamp": int(time.time()),
        }
        data = {**params, "api_key": self.api_key, "signature": self.sign(params)}

        try:
            client = await self._get_client()
            response = await client.post(
                f"/{self.cloud_name}/image/upload",
                data=data,
                files={"file": (f"{public_id}.jpg", image, "application/octet-stream")},
            )
        except httpx.RequestError as e:
            logger.error(
                "Media upload request failed",
                folder=folder,
                public_id=public_id,
                error=str(e),
            )
            raise MediaUploadError(folder, f"Request failed: {str(e)}") from e

        if response.status_code != 200:
            raise MediaUploadError(
                folder,
                f"Upload of {public_id} failed: {response.text}",
                response.status_code,
            )

        try:
            url = response.json().get("secure_url")
        except ValueError as e:
            raise MediaUploadError(folder, f"Upload of {public_id} returned invalid JSON") from e
        if not url:
            raise MediaUploadError(folder, f"Upload of {public_id} returned no URL")
        return url

    async def upload_images(
        self,
        images: Sequence[bytes],
        folder: str,
        public_id_prefix: str,
    ) -> list[str]:
        """Upload a batch of images concurrently.

        Args:
            images: Raw image bytes, in display order.
            folder: Destination folder.
            public_id_prefix: Prefix for each image's public id; images are
                numbered from 1.

        Returns:
            One URL per image, in input order.

        Raises:
            MediaUploadError: If any upload fails. Uploads still in flight
                are cancelled before this is raised.
        """
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(
                        self._upload_one(image, folder, f"{public_id_prefix}_{index}")
                    )
                    for index, image in enumerate(images, start=1)
                ]
        except ExceptionGroup as eg:
            failures = [e for e in eg.exceptions if isinstance(e, MediaUploadError)]
            if not failures:
                raise
            logger.error(
                "Image batch upload failed",
                folder=folder,
                failed=len(failures),
                errors=[f.message for f in failures],
            )
            raise failures[0] from None

        urls = [task.result() for task in tasks]
        logger.info("Uploaded images", folder=folder, count=len(urls))
        return urls


# ============================================================================
# In-memory host
# ============================================================================


class InMemoryMediaHost:
    """Media host that keeps uploads in memory (development and tests)."""

    def __init__(self, base_url: str = "memory://media") -> None:
        self.base_url = base_url.rstrip("/")
        self.uploads: dict[str, bytes] = {}

    async def upload_images(
        self,
        images: Sequence[bytes],
        folder: str,
        public_id_prefix: str,
    ) -> list[str]:
        """Store images and return their URLs in input order."""
        urls = []
        for index, image in enumerate(images, start=1):
            url = f"{self.base_url}/{folder}/{public_id_prefix}_{index}"
            self.uploads[url] = bytes(image)
            urls.append(url)
        return urls

    async def close(self) -> None:
        """Nothing to release."""
        pass


def create_media_host(config: Settings) -> MediaHost:
    """Build the backend selected by ``config.media_backend``."""
    if config.media_backend == "cloudinary":
        return CloudinaryMediaHost(
            cloud_name=config.media_cloud_name,
            api_key=config.media_api_key,
            api_secret=config.media_api_secret,
            base_url=config.media_upload_url,
            timeout=config.media_timeout,
        )
    return InMemoryMediaHost()
