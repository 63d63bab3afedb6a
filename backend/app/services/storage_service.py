"""
Storage Service - Cloudflare R2 (S3 API) with local-disk fallback

R2 is used when STORAGE_DRIVER=r2 and all R2 credentials are set. Any R2
failure falls back to uploads/<subfolder>/ unless FORCE_R2_STORAGE is on.
Objects uploaded without a public bucket URL are served through
/api/materials/proxy/r2/<key>.
"""

import asyncio
import base64
import binascii
import mimetypes
import os
import random
import re
import string
import time
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Optional, Union, Dict
from urllib.parse import quote, unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.exceptions import ResourceNotFoundError, StorageError, ServiceUnavailableError
from app.core.logging_config import logger


PROXY_PATH = "/api/materials/proxy/r2/"
_PROXY_KEY_RE = re.compile(r"/proxy/r2/(.+)$")
_UNSAFE_STEM_RE = re.compile(r"[^A-Za-z0-9_-]")
_DATA_URL_RE = re.compile(r"^data:[^;,]*(;base64)?,")

# Served when the object carries no Content-Type
EXTENSION_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".txt": "text/plain",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


@dataclass
class StoredObject:
    """An object read back from R2"""
    body: bytes
    content_type: str
    content_length: int


def guess_content_type(key: str) -> str:
    ext = os.path.splitext(key)[1].lower()
    return EXTENSION_MIME_TYPES.get(ext) or mimetypes.guess_type(key)[0] or "application/octet-stream"


def _random_suffix(length: int = 6) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choices(alphabet, k=length))


def _decode_payload(data: Union[bytes, str]) -> bytes:
    """Raw bytes pass through; strings are base64, optionally as a data: URL"""
    if isinstance(data, bytes):
        return data
    payload = _DATA_URL_RE.sub("", data.strip(), count=1)
    try:
        return base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        raise StorageError(f"Invalid base64 payload: {e}")


class StorageService:
    """
    R2 / local file storage.

    The boto3 client is created lazily on first R2 use; blocking SDK calls
    run in the default thread pool so the event loop is never stalled.
    """

    def __init__(self):
        self._client = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def is_r2_ready(self) -> bool:
        return settings.STORAGE_DRIVER == "r2" and settings.is_r2_configured()

    def _get_client(self):
        """Lazy initialization of the R2 client"""
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
                aws_access_key_id=settings.R2_ACCESS_KEY_ID,
                aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
                region_name="auto",
                config=Config(signature_version="s3v4", retries={"max_attempts": 3}),
            )
            logger.info(f"[Storage] R2 client initialized for bucket {settings.R2_BUCKET_NAME}")
        return self._client

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    # ------------------------------------------------------------------
    # Keys and URLs
    # ------------------------------------------------------------------

    @staticmethod
    def generate_key(filename: str, prefix: str = "uploads") -> str:
        """
        {prefix}/{epoch_ms}_{sanitized_stem}_{random6}{ext}

        Example: materials/1718000000000_Unit_1_notes_k3j9x2.pdf
        """
        stem, ext = os.path.splitext(os.path.basename(filename or "file"))
        sanitized = _UNSAFE_STEM_RE.sub("_", stem)
        return f"{prefix}/{int(time.time() * 1000)}_{sanitized}_{_random_suffix()}{ext}"

    @staticmethod
    def safe_key(key: str) -> str:
        return quote(key, safe="/:@!$&'()*+,;=-._~").replace("#", "%23")

    def public_url_for(self, key: str) -> str:
        safe_key = self.safe_key(key)
        if settings.R2_PUBLIC_BASE_URL:
            return f"{settings.R2_PUBLIC_BASE_URL.rstrip('/')}/{safe_key}"
        return f"{settings.public_base_url}{PROXY_PATH}{safe_key}"

    @staticmethod
    def detect_storage(url: Optional[str]) -> str:
        if url and ("r2.cloudflarestorage.com" in url or PROXY_PATH in url):
            return "r2"
        return "local"

    @staticmethod
    def extract_key(url_or_key: str) -> str:
        """Object key from a proxy URL, a direct R2 URL or a bare key"""
        value = url_or_key.strip()
        if PROXY_PATH in value:
            match = _PROXY_KEY_RE.search(value)
            return unquote(match.group(1)) if match else value
        if "r2.cloudflarestorage.com" in value:
            parts = [p for p in urlparse(value).path.split("/") if p]
            # Path-style URL: first segment is the bucket
            if len(parts) > 1:
                return unquote("/".join(parts[1:]))
            return unquote(parts[0]) if parts else value
        return value.lstrip("/")

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def _upload_to_r2(self, content: bytes, key: str, content_type: str) -> str:
        client = self._get_client()
        await self._run(
            client.put_object,
            Bucket=settings.R2_BUCKET_NAME,
            Key=key,
            Body=content,
            ContentType=content_type,
        )
        return self.public_url_for(key)

    async def _save_locally(self, content: bytes, filename: str, subfolder: str) -> str:
        folder = settings.UPLOAD_DIR / subfolder
        folder.mkdir(parents=True, exist_ok=True)
        name = os.path.basename(self.generate_key(filename, prefix=subfolder))
        await self._run((folder / name).write_bytes, content)
        return f"/uploads/{subfolder}/{name}"

    async def upload_file(
        self,
        data: Union[bytes, str],
        filename: str,
        content_type: str = "application/octet-stream",
        prefix: str = "uploads",
        local_subfolder: str = "materials",
    ) -> Dict[str, str]:
        """
        Store a file and return {"url", "storage", "key"}.

        `data` may be raw bytes or a base64 string (with or without a
        data: URL prefix).
        """
        content = _decode_payload(data)

        if self.is_r2_ready():
            key = self.generate_key(filename, prefix)
            try:
                url = await self._upload_to_r2(content, key, content_type)
                logger.info(f"[Storage] Uploaded to R2: {key} ({len(content)} bytes)")
                return {"url": url, "storage": "r2", "key": key}
            except (ClientError, BotoCoreError) as e:
                logger.log_integration_event("r2", "upload", False, fallback="local", error=str(e))
                if settings.FORCE_R2_STORAGE:
                    raise StorageError(f"R2 upload required but failed: {e}", key=key)
                logger.warning("[Storage] Falling back to local storage")

        try:
            local_path = await self._save_locally(content, filename, local_subfolder)
        except OSError as e:
            logger.error(f"[Storage] Local save failed for {filename}: {e}")
            raise StorageError(f"Failed to upload file: {e}")

        logger.info(f"[Storage] Saved locally: {local_path}")
        return {"url": local_path, "storage": "local", "key": local_path}

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_file(self, url_or_key: Optional[str], storage: Optional[str] = None) -> bool:
        """Best-effort delete; returns False instead of raising"""
        if not url_or_key:
            return False
        storage = storage or self.detect_storage(url_or_key)

        if storage == "r2":
            if not self.is_r2_ready():
                logger.warning(f"[Storage] R2 not configured, cannot delete {url_or_key}")
                return False
            key = self.extract_key(url_or_key)
            try:
                await self._run(self._get_client().delete_object, Bucket=settings.R2_BUCKET_NAME, Key=key)
                logger.info(f"[Storage] Deleted from R2: {key}")
                return True
            except (ClientError, BotoCoreError) as e:
                logger.error(f"[Storage] R2 delete failed for {key}: {e}")
                return False

        path_part = urlparse(url_or_key).path if "://" in url_or_key else url_or_key
        relative = path_part.lstrip("/")
        base = Path.cwd().resolve()
        target = (base / relative).resolve()
        if base not in target.parents:
            logger.warning(f"[Storage] Refusing to delete outside working directory: {url_or_key}")
            return False
        try:
            target.unlink()
            logger.info(f"[Storage] Deleted local file: {relative}")
        except FileNotFoundError:
            logger.info(f"[Storage] Local file already gone: {relative}")
        except OSError as e:
            logger.error(f"[Storage] Local delete failed for {relative}: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_object(self, key: str) -> StoredObject:
        """Fetch an R2 object for the proxy endpoint"""
        if not self.is_r2_ready():
            raise ServiceUnavailableError("R2 storage is not configured", code="STORAGE_NOT_CONFIGURED")

        def _fetch():
            response = self._get_client().get_object(Bucket=settings.R2_BUCKET_NAME, Key=key)
            return response["Body"].read(), response.get("ContentType"), response.get("ContentLength")

        try:
            body, content_type, length = await self._run(_fetch)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise ResourceNotFoundError("File", key)
            logger.error(f"[Storage] R2 read failed for {key}: {e}")
            raise StorageError(f"Failed to read file: {e}", key=key)

        if not content_type or content_type == "application/octet-stream":
            content_type = guess_content_type(key)
        return StoredObject(body=body, content_type=content_type, content_length=length or len(body))


# Singleton instance
storage_service = StorageService()
