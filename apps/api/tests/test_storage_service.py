import pytest
from botocore.exceptions import ClientError, NoRegionError

from app.core.config import settings
from app.core.notices import collect_notices
from app.services import storage_service
from app.services.storage_service import UploadItem


class FakeS3:
    def __init__(self, fail_names=()):
        self.objects = {}
        self.deleted = []
        self.fail_names = set(fail_names)

    def put_object(self, Bucket, Key, Body, **kwargs):
        if any(Key.endswith(name) for name in self.fail_names):
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        self.objects[(Bucket, Key)] = Body

    def delete_object(self, Bucket, Key):
        self.deleted.append((Bucket, Key))


@pytest.fixture(autouse=True)
def _public_base(monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_PUBLIC_BASE_URL", "https://files.panchayat.test")


async def test_upload_multiple_files_empty_list_never_builds_client(monkeypatch):
    def no_client():
        raise AssertionError("client should not be created")

    monkeypatch.setattr(storage_service, "get_s3_client", no_client)

    assert await storage_service.upload_multiple_files([]) == []


async def test_upload_multiple_files_reports_client_failure(monkeypatch):
    def broken_client():
        raise NoRegionError()

    monkeypatch.setattr(storage_service, "get_s3_client", broken_client)

    with collect_notices() as notices:
        urls = await storage_service.upload_multiple_files([UploadItem("aadhaar.pdf", b"1")])

    assert urls == []
    assert notices[0].message == "Failed to upload files"


async def test_upload_multiple_files_keeps_order_and_skips_failures():
    s3 = FakeS3(fail_names={"broken.pdf"})
    items = [
        UploadItem("aadhaar.pdf", b"1"),
        UploadItem("broken.pdf", b"2"),
        UploadItem("ration card.jpg", b"3", "image/jpeg"),
    ]

    urls = await storage_service.upload_multiple_files(items, path="citizen-1", client=s3)

    assert len(urls) == 2
    assert urls[0].startswith("https://files.panchayat.test/documents/citizen-1/")
    assert urls[0].endswith("-aadhaar.pdf")
    assert urls[1].endswith("-ration_card.jpg")
    assert len(s3.objects) == 2


def test_upload_file_returns_none_on_error():
    s3 = FakeS3(fail_names={"x.pdf"})

    assert storage_service.upload_file(UploadItem("x.pdf", b""), client=s3) is None


def test_object_keys_are_unique_and_sanitised():
    first = storage_service.build_object_key("../../etc/passwd", "/uploads/")
    second = storage_service.build_object_key("../../etc/passwd", "uploads")

    assert first != second
    assert first.startswith("uploads/")
    assert first.endswith("-passwd")


def test_delete_file_and_url_round_trip():
    s3 = FakeS3()
    url = storage_service.get_public_url("documents", "citizen-1/abc-file.pdf")

    key = storage_service.key_from_public_url(url, "documents")

    assert key == "citizen-1/abc-file.pdf"
    assert storage_service.delete_file(key, client=s3) is True
    assert s3.deleted == [("documents", "citizen-1/abc-file.pdf")]
