"""Shared pytest fixtures for Flipbook tests."""

import io
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from flipbook.core.config import PipelineSettings
from flipbook.core.pipeline import FramePipeline
from flipbook.core.retry import RetryPolicy

FAKE_TOKEN = "hf_" + "a" * 34
ENDPOINT_URL = "https://inference.test/models/test/model"


def make_png(color: tuple[int, int, int] = (255, 0, 0), size: int = 8) -> bytes:
    """Render a tiny solid-colour PNG.

    Args:
        color: RGB fill colour
        size: Width and height in pixels

    Returns:
        PNG-encoded bytes
    """
    buffer = io.BytesIO()
    Image.new("RGB", (size, size), color=color).save(buffer, format="PNG")
    return buffer.getvalue()


def image_response(data: bytes, content_type: str = "image/png") -> httpx.Response:
    """Build a successful upstream response carrying image bytes."""
    return httpx.Response(200, content=data, headers={"content-type": content_type})


class FakeUpstream:
    """Scripted stand-in for the inference API.

    Each call pops the next scripted item; the last item is repeated once the
    script runs out.  Items are ``httpx.Response`` objects or exceptions to
    raise from the transport.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def script(self, *responses) -> None:
        """Replace the scripted responses."""
        self.responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        # Fresh copy so a repeated item is never sent through the client twice.
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def client(self) -> httpx.Client:
        """Return an httpx client routed to this fake."""
        return httpx.Client(transport=httpx.MockTransport(self))


class SleepRecorder:
    """Delay function that records requested waits instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def clean_env(monkeypatch) -> None:
    """Remove every credential and FLIPBOOK_ variable from the environment."""
    for name in list(os.environ):
        if name.upper().startswith("FLIPBOOK_") or name.upper() == "HUGGINGFACE_API_TOKEN":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def png_bytes() -> bytes:
    """A valid PNG payload."""
    return make_png()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    """Fresh recording delay function."""
    return SleepRecorder()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Retry policy with the documented default budgets."""
    return RetryPolicy()


@pytest.fixture
def pipeline_settings(retry_policy: RetryPolicy) -> PipelineSettings:
    """Pipeline settings with a fake credential and three frames.

    Returns:
        PipelineSettings instance for testing
    """
    return PipelineSettings(
        api_token=FAKE_TOKEN,
        endpoint_url=ENDPOINT_URL,
        frame_count=3,
        frame_delay_seconds=2.0,
        request_timeout_seconds=25.0,
        retry_policy=retry_policy,
    )


@pytest.fixture
def upstream(png_bytes: bytes) -> FakeUpstream:
    """Fake inference API that succeeds with a PNG on every call."""
    return FakeUpstream(image_response(png_bytes))


@pytest.fixture
def test_client(
    upstream: FakeUpstream,
    pipeline_settings: PipelineSettings,
    sleep_recorder: SleepRecorder,
) -> Generator[TestClient, None, None]:
    """FastAPI test client whose pipelines talk to the fake upstream.

    The pipeline factory dependency is overridden so no real network call
    or real sleep ever happens.
    """
    from flipbook.api.main import app, get_pipeline_factory

    http_client = upstream.client()

    def override() -> object:
        return lambda: FramePipeline(pipeline_settings, http_client, sleep=sleep_recorder)

    app.dependency_overrides[get_pipeline_factory] = override
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
        http_client.close()
