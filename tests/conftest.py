"""
Shared fixtures: in-memory test images and a fake GitHub contents API.
"""

import base64
import hashlib
import json
from io import BytesIO

import httpx
import pytest
from PIL import Image

from imageslot.config import Settings
from imageslot.store import ContentStore


def make_image(width: int, height: int, fmt: str = "PNG", mode: str = "RGB", color=(30, 120, 200)) -> bytes:
    """Solid-color image encoded in ``fmt``."""
    if mode == "RGBA" and len(color) == 3:
        color = color + (128,)
    img = Image.new(mode, (width, height), color)
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def make_photo(width: int = 640, height: int = 480, fmt: str = "PNG") -> bytes:
    """Noisy gradient image that compresses like a photograph."""
    noise = Image.effect_noise((width, height), 40).convert("L")
    gradient = Image.linear_gradient("L").resize((width, height))
    img = Image.merge("RGB", (noise, gradient, Image.blend(noise, gradient, 0.5)))
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


class FakeGitHub:
    """
    In-memory contents API for one file.

    Writes must carry the current sha. With ``lag=True`` reads keep
    returning the old version until publish() is called.
    """

    def __init__(self, exists: bool = True, lag: bool = False):
        self.content = b"old-image" if exists else None
        self.sha = hashlib.sha1(self.content).hexdigest() if exists else None
        self.visible_sha = self.sha
        self.visible_size = len(self.content) if exists else 0
        self.lag = lag
        self.requests = []
        self.read_status = None
        self.write_status = None

    def publish(self):
        self.visible_sha = self.sha
        self.visible_size = len(self.content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "GET":
            if self.read_status:
                return httpx.Response(self.read_status, json={"message": "Server Error"})
            if self.visible_sha is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(
                200, json={"name": "image1.jpg", "sha": self.visible_sha, "size": self.visible_size}
            )

        if request.method == "PUT":
            if self.write_status:
                return httpx.Response(self.write_status, json={"message": "Write refused"})
            body = json.loads(request.content)
            if self.sha is not None and body.get("sha") != self.sha:
                return httpx.Response(409, json={"message": f"image1.jpg does not match {body.get('sha')}"})
            created = self.sha is None
            self.content = base64.b64decode(body["content"])
            self.sha = hashlib.sha1(self.content).hexdigest()
            if not self.lag:
                self.publish()
            return httpx.Response(201 if created else 200, json={"content": {"sha": self.sha}})

        return httpx.Response(405)

    @property
    def puts(self):
        return [r for r in self.requests if r.method == "PUT"]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def store(fake_github):
    return ContentStore(
        api_url="https://api.test",
        raw_url="https://raw.test",
        branch="main",
        client=fake_github.client(),
    )


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        api_token="test-token",
        github_token="ghp_testtoken1234",
        repo_path="owner/repo",
        github_api_url="https://api.test",
        raw_content_url="https://raw.test",
        storage_path=tmp_path,
        upload_confirm_delay=0.05,
        reuse_confirm_delay=0.01,
    )
