"""Fixtures wiring a ControlPlaneClient to the fake control plane."""

from __future__ import annotations

import httpx
import pytest

from boxops.resources.client import ControlPlaneClient
from boxops.settings import ClientSettings
from fakes import ENDPOINT, FakeControlPlane


@pytest.fixture
def server() -> FakeControlPlane:
    return FakeControlPlane()


@pytest.fixture
def http_client(server: FakeControlPlane) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(server))


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(
        endpoint_url=ENDPOINT,
        username='ci@example.com',
        password='s3cret',
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def client(settings: ClientSettings, http_client: httpx.AsyncClient) -> ControlPlaneClient:
    return ControlPlaneClient.from_settings(settings, http_client=http_client)
