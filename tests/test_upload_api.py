import io
import os

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from errors import ValidationError
from routers.upload import _read_image

PNG = ("shirt.png", b"\x89PNG small", "image/png")


def test_upload_single_image(client, admin_headers, settings):
    response = client.post("/api/v1/upload/image", files={"image": PNG}, headers=admin_headers)
    assert response.status_code == 200
    url = response.json()["data"]["imageUrl"]
    assert url.startswith("/images/product_") and url.endswith(".png")
    assert os.path.exists(os.path.join(settings.image_dir, os.path.basename(url)))

    # the shared directory is served statically
    assert client.get(url).content == PNG[1]


def test_upload_rejects_non_images_and_large_files(client, admin_headers):
    text = client.post("/api/v1/upload/image", files={"image": ("notes.txt", b"hi", "text/plain")}, headers=admin_headers)
    assert text.status_code == 400
    assert text.json()["error"] == "Only image files are allowed"

    big = client.post("/api/v1/upload/image", files={"image": ("big.png", b"x" * 2048, "image/png")}, headers=admin_headers)
    assert big.status_code == 400

    assert client.post("/api/v1/upload/image", headers=admin_headers).status_code == 400


def test_upload_requires_admin(client, user):
    _, headers = user
    assert client.post("/api/v1/upload/image", files={"image": PNG}, headers=headers).status_code == 403


def test_upload_many_and_delete(client, admin_headers):
    files = [("images", PNG), ("images", ("cap.jpg", b"\xff\xd8 jpeg", "image/jpeg"))]
    urls = client.post("/api/v1/upload/images", files=files, headers=admin_headers).json()["data"]["imageUrls"]
    assert len(urls) == 2

    name = os.path.basename(urls[0])
    assert client.delete(f"/api/v1/upload/image/{name}", headers=admin_headers).status_code == 200
    missing = client.delete(f"/api/v1/upload/image/{name}", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["error"] == "Image file not found"


def test_object_storage_round_trip(client, admin_headers):
    uploaded = client.post("/api/v1/upload/cloud", files={"image": PNG}, headers=admin_headers).json()["data"]
    key = uploaded["key"]
    assert uploaded["imageUrl"] == f"/api/v1/upload/cloud/{key}"

    served = client.get(uploaded["imageUrl"])
    assert served.status_code == 200
    assert served.content == PNG[1]
    assert served.headers["content-type"] == "image/png"

    metadata = client.get(f"/api/v1/upload/cloud/{key}/metadata", headers=admin_headers).json()["data"]
    assert metadata["public"] is True
    assert metadata["size"] == len(PNG[1])

    assert client.delete(f"/api/v1/upload/cloud/{key}", headers=admin_headers).status_code == 200
    assert client.get(uploaded["imageUrl"]).status_code == 404


class CountingStream(io.BytesIO):
    def __init__(self, data):
        super().__init__(data)
        self.requested = []

    def read(self, size=-1):
        self.requested.append(size)
        return super().read(size)


def test_oversize_upload_is_not_read_whole(services):
    stream = CountingStream(b"x" * 10_000)
    upload = UploadFile(stream, filename="huge.png", headers=Headers({"content-type": "image/png"}))
    with pytest.raises(ValidationError):
        _read_image(upload, services)
    assert stream.requested == [services.settings.max_file_size + 1]


def test_upload_at_the_size_limit_is_accepted(client, admin_headers, settings):
    exact = ("edge.png", b"x" * settings.max_file_size, "image/png")
    assert client.post("/api/v1/upload/image", files={"image": exact}, headers=admin_headers).status_code == 200
