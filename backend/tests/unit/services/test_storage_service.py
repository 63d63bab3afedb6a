"""
Unit Tests for the storage service (R2 with local-disk fallback)
"""
import base64
import re
import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError

from app.core.config import settings
from app.core.exceptions import StorageError
from app.services.storage_service import StorageService, PROXY_PATH, guess_content_type


PDF_BYTES = b"%PDF-1.4 test document"


@pytest.fixture
def storage():
    return StorageService()


@pytest.fixture
def r2_settings(monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_DRIVER", "r2")
    monkeypatch.setattr(settings, "R2_ACCOUNT_ID", "account")
    monkeypatch.setattr(settings, "R2_ACCESS_KEY_ID", "key-id")
    monkeypatch.setattr(settings, "R2_SECRET_ACCESS_KEY", "secret")
    monkeypatch.setattr(settings, "R2_BUCKET_NAME", "digidiploma")
    monkeypatch.setattr(settings, "R2_PUBLIC_BASE_URL", "")
    monkeypatch.setattr(settings, "FORCE_R2_STORAGE", False)


class TestKeys:

    def test_generate_key_format(self):
        key = StorageService.generate_key("Unit 1 notes.pdf", prefix="materials")

        assert re.fullmatch(r"materials/\d{13}_Unit_1_notes_[a-z0-9]{6}\.pdf", key)

    def test_generate_key_strips_directories(self):
        key = StorageService.generate_key("../../etc/passwd", prefix="uploads")

        assert key.startswith("uploads/")
        assert ".." not in key

    def test_extract_key_from_proxy_url(self):
        url = f"http://localhost:5000{PROXY_PATH}materials/1_a%20b_x.pdf"

        assert StorageService.extract_key(url) == "materials/1_a b_x.pdf"

    def test_extract_key_from_direct_r2_url(self):
        url = "https://account.r2.cloudflarestorage.com/digidiploma/materials/file.pdf"

        assert StorageService.extract_key(url) == "materials/file.pdf"

    def test_detect_storage(self):
        assert StorageService.detect_storage(f"https://api.example.com{PROXY_PATH}a.pdf") == "r2"
        assert StorageService.detect_storage("/uploads/materials/a.pdf") == "local"
        assert StorageService.detect_storage(None) == "local"

    def test_guess_content_type(self):
        assert guess_content_type("notes.pdf") == "application/pdf"
        assert guess_content_type("no-extension") == "application/octet-stream"


class TestLocalFallback:

    async def test_local_when_r2_credentials_absent(self, storage, monkeypatch):
        monkeypatch.setattr(settings, "STORAGE_DRIVER", "r2")
        monkeypatch.setattr(settings, "R2_ACCESS_KEY_ID", "")

        result = await storage.upload_file(PDF_BYTES, "notes.pdf", "application/pdf", "materials", "materials")

        assert result["storage"] == "local"
        assert result["url"].startswith("/uploads/materials/")
        assert result["key"] == result["url"]
        saved = settings.UPLOAD_DIR / "materials" / result["url"].rsplit("/", 1)[-1]
        assert saved.read_bytes() == PDF_BYTES

    async def test_accepts_base64_data_url(self, storage):
        data_url = "data:application/pdf;base64," + base64.b64encode(PDF_BYTES).decode()

        result = await storage.upload_file(data_url, "notes.pdf", "application/pdf")

        saved = settings.UPLOAD_DIR / "materials" / result["url"].rsplit("/", 1)[-1]
        assert saved.read_bytes() == PDF_BYTES

    async def test_invalid_base64_raises(self, storage):
        with pytest.raises(StorageError):
            await storage.upload_file("abc", "notes.pdf")


class TestR2:

    async def test_upload_to_r2(self, storage, r2_settings):
        client = MagicMock()
        storage._client = client

        result = await storage.upload_file(PDF_BYTES, "notes.pdf", "application/pdf", "materials")

        assert result["storage"] == "r2"
        assert result["key"].startswith("materials/")
        assert result["url"] == f"{settings.public_base_url}{PROXY_PATH}{result['key']}"
        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "digidiploma"
        assert kwargs["Body"] == PDF_BYTES
        assert kwargs["ContentType"] == "application/pdf"

    async def test_public_base_url_used_when_set(self, storage, r2_settings, monkeypatch):
        monkeypatch.setattr(settings, "R2_PUBLIC_BASE_URL", "https://cdn.example.com/")
        storage._client = MagicMock()

        result = await storage.upload_file(PDF_BYTES, "notes.pdf", "application/pdf", "materials")

        assert result["url"] == f"https://cdn.example.com/{result['key']}"

    async def test_r2_failure_falls_back_to_local(self, storage, r2_settings):
        client = MagicMock()
        client.put_object.side_effect = ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        storage._client = client

        result = await storage.upload_file(PDF_BYTES, "notes.pdf", "application/pdf", "materials")

        assert result["storage"] == "local"

    async def test_r2_failure_raises_when_forced(self, storage, r2_settings, monkeypatch):
        monkeypatch.setattr(settings, "FORCE_R2_STORAGE", True)
        client = MagicMock()
        client.put_object.side_effect = ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        storage._client = client

        with pytest.raises(StorageError) as exc:
            await storage.upload_file(PDF_BYTES, "notes.pdf", "application/pdf", "materials")

        assert "R2 upload required" in exc.value.message

    async def test_delete_from_r2(self, storage, r2_settings):
        client = MagicMock()
        storage._client = client

        deleted = await storage.delete_file(f"http://localhost{PROXY_PATH}materials/a.pdf")

        assert deleted is True
        client.delete_object.assert_called_once_with(Bucket="digidiploma", Key="materials/a.pdf")

    async def test_delete_without_url(self, storage):
        assert await storage.delete_file(None) is False
