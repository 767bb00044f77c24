"""Tests for the boxops command-line entry point."""

from __future__ import annotations

import argparse
import json

import httpx
import pytest

from boxops import cli
from boxops.models import Variable
from fakes import ENDPOINT, instance_doc

VALID_ENV = {
    'BOXOPS_ENDPOINT_URL': ENDPOINT,
    'BOXOPS_USERNAME': 'ci@example.com',
    'BOXOPS_PASSWORD': 's3cret',
}


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch):
    monkeypatch.setattr(cli, 'configure_logging', lambda **kwargs: None)


def _parse(*argv: str) -> argparse.Namespace:
    return cli.build_parser().parse_args(list(argv))


# ── Argument parsing ─────────────────────────────────────────────


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [
        ('PORT=8080', Variable('PORT', '8080')),
        ('db:SIZE=large', Variable('SIZE', 'large', scope='db')),
        ('db.storage:SIZE=10', Variable('SIZE', '10', scope='db.storage')),
        ('URL=a=b', Variable('URL', 'a=b')),
        ('EMPTY=', Variable('EMPTY', '')),
    ],
)
def test_parse_variable(raw, expected):
    assert cli.parse_variable(raw) == expected


@pytest.mark.parametrize('raw', ['PORT', '=8080', 'db:=x'])
def test_parse_variable_rejects_malformed(raw):
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_variable(raw)


def test_deploy_arguments():
    args = _parse(
        'deploy', '--profile', 'p-1', '--workspace', 'ops', '--environment', 'dev',
        '--var', 'PORT=1', '--var', 'db:SIZE=2', '--wait', '15',
    )
    assert args.command == 'deploy'
    assert [v.key for v in args.variables] == [('PORT', ''), ('SIZE', 'db')]
    assert args.wait == 15
    assert args.no_wait is False


def test_wait_and_no_wait_are_exclusive():
    with pytest.raises(SystemExit):
        _parse('shutdown', 'i-1', '--wait', '5', '--no-wait')


# ── run_command ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_instance_command_returns_document(server, client):
    server.route('GET', '/services/instances/i-1', instance_doc(state='processing'))

    result = await cli.run_command(_parse('instance', 'i-1'), client)

    assert result['id'] == 'i-1'
    assert result['state'] == 'processing'


@pytest.mark.asyncio
async def test_operation_without_wait_returns_after_submit(server, client):
    server.route('GET', '/services/instances/i-1', instance_doc())
    server.route('PUT', '/services/instances/i-1/shutdown', {})

    result = await cli.run_command(_parse('shutdown', 'i-1', '--no-wait'), client)

    assert result == {'resource_urls': [f'{ENDPOINT}/services/instances/i-1'], 'completed': False}
    assert len(server.calls('GET')) == 2


@pytest.mark.asyncio
async def test_operation_waits_for_completion(server, client):
    server.route(
        'GET',
        '/services/instances/i-1',
        instance_doc(updated='u1'),
        instance_doc(state='processing', operation='reinstall', updated='u2'),
        instance_doc(state='done', operation='reinstall', updated='u3'),
    )
    server.route('PUT', '/services/instances/i-1/reinstall', {})

    result = await cli.run_command(_parse('reinstall', 'i-1', '--wait', '1'), client)

    assert result['completed'] is True
    assert len(server.calls('GET')) == 3


@pytest.mark.asyncio
async def test_terminate_force_flag(server, client):
    server.route('GET', '/services/instances/i-1', instance_doc())
    server.route('DELETE', '/services/instances/i-1', {})

    await cli.run_command(_parse('terminate', 'i-1', '--force', '--no-wait'), client)

    assert server.calls('DELETE')[0].url.params['operation'] == 'force_terminate'


@pytest.mark.asyncio
async def test_reconfigure_many_instances_filters_overrides_and_waits_for_all(server, client):
    box = {
        'id': 'box-web',
        'variables': [
            {'name': 'PORT', 'type': 'Port', 'value': '80'},
            {'name': 'DEBUG', 'type': 'Text', 'value': 'false'},
        ],
    }
    current = [{'name': 'PORT', 'type': 'Port', 'value': '80'}]
    for iid in ('i-1', 'i-2'):
        path = f'/services/instances/{iid}'
        server.route(
            'GET',
            path,
            instance_doc(iid, updated='u1', variables=current, boxes=[box]),
            instance_doc(iid, updated='u1', variables=current, boxes=[box]),
            instance_doc(iid, state='processing', operation='reconfigure', updated='u2'),
            instance_doc(iid, state='done', operation='reconfigure', updated='u3'),
        )
        server.route('PUT', path, lambda req: httpx.Response(200, content=req.content))
        server.route('PUT', f'{path}/reconfigure', {})

    args = _parse(
        'reconfigure', 'i-1', 'i-2',
        '--var', 'PORT=8080', '--var', 'DEBUG=', '--var', 'GHOST=x', '--wait', '1',
    )
    result = await cli.run_command(args, client)

    assert result == {
        'resource_urls': [
            f'{ENDPOINT}/services/instances/i-1',
            f'{ENDPOINT}/services/instances/i-2',
        ],
        'completed': True,
    }
    for iid in ('i-1', 'i-2'):
        path = f'/services/instances/{iid}'
        body = json.loads(server.calls('PUT', path)[0].content)
        assert [(v['name'], v['value']) for v in body['variables']] == [('PORT', '8080')]
        assert len(server.calls('PUT', f'{path}/reconfigure')) == 1
        assert len(server.calls('GET', path)) == 4


@pytest.mark.asyncio
async def test_reconfigure_without_overrides_skips_box_stack(server, client):
    server.route(
        'GET',
        '/services/instances/i-1',
        instance_doc(updated='u1'),
        instance_doc(state='processing', operation='reconfigure', updated='u2'),
    )
    server.route('PUT', '/services/instances/i-1/reconfigure', {})

    await cli.run_command(_parse('reconfigure', 'i-1', '--no-wait'), client)

    assert server.calls('PUT', '/services/instances/i-1') == []
    assert len(server.calls('GET')) == 2


# ── main ─────────────────────────────────────────────────────────


def test_main_rejects_missing_settings():
    assert cli.main(['instance', 'i-1'], env={}) == 2


def test_main_rejects_malformed_settings():
    assert cli.main(['instance', 'i-1'], env={**VALID_ENV, 'BOXOPS_VERIFY_TLS': 'perhaps'}) == 2


def test_main_prints_result_json(monkeypatch, capsys, server, client):
    server.route('DELETE', '/services/instances/i-1', {})
    monkeypatch.setattr(cli.ControlPlaneClient, 'from_settings', lambda settings: client)

    assert cli.main(['delete', 'i-1'], env=VALID_ENV) == 0

    assert json.loads(capsys.readouterr().out) == {'deleted': 'i-1'}


def test_main_reports_operation_failure(monkeypatch, server, client):
    monkeypatch.setattr(cli.ControlPlaneClient, 'from_settings', lambda settings: client)

    assert cli.main(['instance', 'missing'], env=VALID_ENV) == 1


def test_main_reports_malformed_profile_schema(monkeypatch, server, client):
    server.route('GET', '/services/profiles/p-1', {'id': 'p-1', 'schema': 'https://x.test/profile'})
    monkeypatch.setattr(cli.ControlPlaneClient, 'from_settings', lambda settings: client)

    argv = ['deploy', '--profile', 'p-1', '--workspace', 'ops', '--environment', 'staging', '--no-wait']
    assert cli.main(argv, env=VALID_ENV) == 1

    assert server.calls('POST') == []
