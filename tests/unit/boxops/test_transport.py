"""Tests for the pooled SharedTransport."""

from __future__ import annotations

import logging

import httpx
import pytest

from boxops.http.executor import RequestExecutor
from boxops.http.transport import SharedTransport


@pytest.mark.asyncio
async def test_client_is_created_once_and_reused():
    transport = SharedTransport()
    assert transport.initialized is False

    first = transport.client()
    second = transport.client()

    assert first is second
    assert isinstance(first, httpx.AsyncClient)
    assert transport.initialized is True

    await transport.aclose()
    assert transport.initialized is False
    assert first.is_closed


@pytest.mark.asyncio
async def test_aclose_without_client_is_noop():
    await SharedTransport().aclose()


def test_verification_defaults_on():
    assert SharedTransport().verify is True


def test_ca_bundle_replaces_system_trust():
    assert SharedTransport(ca_bundle='/etc/ssl/corp.pem').verify == '/etc/ssl/corp.pem'


def test_disabling_verification_warns(caplog):
    with caplog.at_level(logging.WARNING, logger='boxops.http.transport'):
        transport = SharedTransport(verify_tls=False, ca_bundle='/ignored.pem')

    assert transport.verify is False
    assert 'TLS certificate verification is disabled' in caplog.text


def test_executors_share_one_pool():
    transport = SharedTransport()
    a = RequestExecutor(endpoint_url='https://a.test', username='u', password='p', transport=transport)
    b = RequestExecutor(endpoint_url='https://b.test', username='u', password='p', transport=transport)

    assert a.transport is b.transport is transport
