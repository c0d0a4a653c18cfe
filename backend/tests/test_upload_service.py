import base64

import pytest

from services.errors import UploadFailed
from services.upload_service import ImageUploader, decode_image_payload

PIXEL = base64.b64encode(b"\x89PNG fake").decode()


class FakeBucket:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = []

    def upload(self, path, file, file_options):
        if self.fail:
            raise RuntimeError("bucket offline")
        self.uploads.append((path, file, file_options))

    def get_public_url(self, path):
        return f"https://storage.test/{path}"


class FakeClient:
    def __init__(self, bucket):
        self.bucket = bucket
        self.storage = self

    def from_(self, name):
        return self.bucket


def test_decode_data_url():
    contents, content_type = decode_image_payload(f"data:image/jpeg;base64,{PIXEL}")
    assert contents == b"\x89PNG fake"
    assert content_type == "image/jpeg"


def test_decode_bare_base64_defaults_to_png():
    assert decode_image_payload(PIXEL) == (b"\x89PNG fake", "image/png")


@pytest.mark.parametrize("raw", ["", "data:text/plain;base64,aGk=", "not base64 at all!"])
def test_decode_rejects_bad_payloads(raw):
    with pytest.raises(UploadFailed):
        decode_image_payload(raw)


def test_upload_returns_public_url():
    bucket = FakeBucket()
    uploader = ImageUploader(bucket="chat-images", client_factory=lambda: FakeClient(bucket))

    result = uploader.upload_image(f"data:image/png;base64,{PIXEL}", "messages/7")

    [(path, contents, options)] = bucket.uploads
    assert path.startswith("messages/7/") and path.endswith(".png")
    assert contents == b"\x89PNG fake"
    assert options == {"content-type": "image/png"}
    assert result == {"url": f"https://storage.test/{path}"}


def test_storage_errors_become_upload_failed():
    uploader = ImageUploader(client_factory=lambda: FakeClient(FakeBucket(fail=True)))
    with pytest.raises(UploadFailed):
        uploader.upload_image(PIXEL)


def test_missing_configuration_becomes_upload_failed():
    def unconfigured():
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

    with pytest.raises(UploadFailed):
        ImageUploader(client_factory=unconfigured).upload_image(PIXEL)
