"""Variable override merging against instance and box-stack declarations."""

from __future__ import annotations

import logging

from boxops.models import Instance, Variable
from boxops.variables.box_stack import BoxStack, BoxStackEntry
from boxops.variables.merge import (
    apply_overrides,
    drop_empty_values,
    merge_variables,
    remove_invalid_variables,
)


def _var(name: str, value=None, scope: str = '', **extra) -> Variable:
    doc = {'name': name, 'value': value, 'type': 'Text', **extra}
    if scope:
        doc['scope'] = scope
    return Variable.from_json(doc)


def _stack() -> BoxStack:
    return BoxStack(
        (
            BoxStackEntry(
                {
                    'id': 'box-web',
                    'variables': [
                        {'name': 'PORT', 'type': 'Port', 'value': '80', 'scope': ''},
                        {'name': 'DEBUG', 'type': 'Text', 'value': 'false'},
                    ],
                }
            ),
            BoxStackEntry(
                {
                    'id': 'box-db',
                    'variables': [
                        {'name': 'PORT', 'type': 'Port', 'value': '5432'},
                        {'name': 'SIZE', 'type': 'Text', 'value': 'small', 'required': True},
                    ],
                },
                scope='db',
            ),
        )
    )


class TestMergeVariables:
    def test_existing_variable_updated_in_place(self):
        current = [_var('PORT', '80'), _var('DEBUG', 'false')]
        result = merge_variables(current, _stack().lookup(), [_var('PORT', '8080')])

        assert [v.value for v in result.variables] == ['8080', 'false']
        assert result.updated == [('PORT', '')]
        assert result.added == []
        # Input list untouched.
        assert current[0].value == '80'

    def test_scope_distinguishes_same_name(self):
        current = [_var('PORT', '80'), _var('PORT', '5432', scope='db')]
        result = merge_variables(
            current, _stack().lookup(), [_var('PORT', '6543', scope='db')]
        )

        assert [(v.scope, v.value) for v in result.variables] == [('', '80'), ('db', '6543')]

    def test_stack_declaration_cloned_and_appended(self):
        current = [_var('PORT', '80')]
        result = merge_variables(
            current, _stack().lookup(), [_var('SIZE', 'large', scope='db')]
        )

        assert len(result.variables) == 2
        added = result.variables[-1]
        assert added.key == ('SIZE', 'db')
        assert added.value == 'large'
        assert added.type == 'Text'
        assert added.to_json()['required'] is True
        assert result.added == [('SIZE', 'db')]

    def test_cloned_unscoped_declaration_has_no_scope_marker(self):
        result = merge_variables([], _stack().lookup(), [_var('DEBUG', 'true')])

        doc = result.variables[0].to_json()
        assert 'scope' not in doc
        assert doc['value'] == 'true'

    def test_root_declaration_with_empty_scope_is_matched_unscoped(self):
        result = merge_variables([], _stack().lookup(), [_var('PORT', '443')])

        assert result.variables[0].key == ('PORT', '')
        assert 'scope' not in result.variables[0].to_json()

    def test_undeclared_override_is_discarded(self, caplog):
        current = [_var('PORT', '80')]
        with caplog.at_level(logging.WARNING):
            result = merge_variables(current, _stack().lookup(), [_var('NOPE', 'x')])

        assert result.variables == current
        assert result.discarded == [('NOPE', '')]
        assert result.changed is False
        assert 'Discarding override' in caplog.text

    def test_wrong_scope_is_discarded(self):
        result = merge_variables([], _stack().lookup(), [_var('SIZE', 'large')])

        assert result.variables == []
        assert result.discarded == [('SIZE', '')]

    def test_repeated_override_of_new_variable_appends_once(self):
        result = merge_variables(
            [],
            _stack().lookup(),
            [_var('DEBUG', 'true'), _var('DEBUG', 'verbose')],
        )

        assert len(result.variables) == 1
        assert result.variables[0].value == 'verbose'
        assert result.added == [('DEBUG', '')]
        assert result.updated == []


def test_apply_overrides_returns_updated_instance_copy():
    instance = Instance.from_json(
        {
            'id': 'i-1',
            'state': 'done',
            'operation': 'deploy',
            'updated': 'u1',
            'variables': [{'name': 'PORT', 'type': 'Port', 'value': '80'}],
            'service': {'id': 'svc-1'},
        }
    )

    updated, result = apply_overrides(instance, _stack(), [_var('DEBUG', 'true')])

    assert len(instance.variables) == 1
    assert [v.name for v in updated.variables] == ['PORT', 'DEBUG']
    doc = updated.to_json()
    assert doc['service'] == {'id': 'svc-1'}
    assert doc['variables'][1]['value'] == 'true'
    assert result.changed is True


def test_remove_invalid_variables_keeps_declared_only():
    overrides = [_var('PORT', '1'), _var('GHOST', '2'), _var('SIZE', '3', scope='db')]

    valid = remove_invalid_variables(overrides, _stack())

    assert [v.key for v in valid] == [('PORT', ''), ('SIZE', 'db')]


def test_drop_empty_values():
    overrides = [_var('A', ''), _var('B', None), _var('C', 'x')]
    assert [v.name for v in drop_empty_values(overrides)] == ['C']
