"""Tests for deno.lock parsing and reference handling."""

import json

import pytest

from depselect.errors import LockfileFormatError
from depselect.lockfile import (
    dependency_token,
    find_deno_lock,
    iter_registry_keys,
    parse_lock_document,
    unwrap_rebind,
)


class TestParseLockDocument:
    """Tests for turning lock JSON into a LockDocument."""

    def test_parse_registries_and_specifiers(self):
        document = parse_lock_document(json.dumps({
            "version": "4",
            "specifiers": {"npm:lodash@^4.0.0": "4.17.21"},
            "npm": {"lodash@4.17.21": {"integrity": "sha512-x", "dependencies": ["a@1.0.0"], "bin": True}},
            "jsr": {"@std/path@1.0.0": {"integrity": "sha256-y"}},
            "remote": {"https://deno.land/x/mod.ts": "abc"},
        }))

        assert document.version == "4"
        assert document.specifiers == {"npm:lodash@^4.0.0": "4.17.21"}
        assert set(document.registries) == {"npm", "jsr"}
        entry = document.registries["npm"]["lodash@4.17.21"]
        assert entry.integrity == "sha512-x"
        assert entry.dependencies == ["a@1.0.0"]
        assert entry.bin is True
        assert document.registries["jsr"]["@std/path@1.0.0"].dependencies == []

    def test_optional_fields_default(self):
        document = parse_lock_document('{"npm": {"a@1.0.0": {"integrity": "x"}}}')

        assert document.version == ""
        assert document.specifiers == {}
        assert document.members == {}

    def test_workspace_members(self):
        document = parse_lock_document(json.dumps({"workspace": {"members": {
            "packages/a": {"packageJson": {"dependencies": ["npm:x@^1.0.0"]}},
            "packages/b": {},
        }}}))

        assert document.members["packages/a"].dependencies == ["npm:x@^1.0.0"]
        assert document.members["packages/b"].dependencies == []

    def test_single_root_workspace(self):
        document = parse_lock_document(json.dumps({"workspace": {"packageJson": {"dependencies": ["npm:x@1"]}}}))

        assert list(document.members) == ["."]
        assert document.members["."].dependencies == ["npm:x@1"]

    def test_workspace_without_package_json_has_no_members(self):
        document = parse_lock_document(json.dumps({"workspace": {"dependencies": ["jsr:@std/path@^1.0.0"]}}))

        assert document.members == {}

    @pytest.mark.parametrize('content', [
        'not json',
        '[]',
        '{"specifiers": []}',
        '{"npm": []}',
        '{"npm": {"a@1.0.0": "sha"}}',
        '{"npm": {"a@1.0.0": {"dependencies": "b@1.0.0"}}}',
        '{"workspace": {"members": []}}',
    ])
    def test_malformed_documents(self, content):
        with pytest.raises(LockfileFormatError):
            parse_lock_document(content)

    def test_iter_registry_keys_order(self):
        document = parse_lock_document(json.dumps({
            "jsr": {"@std/path@1.0.0": {}},
            "npm": {"b@1.0.0": {}, "a@1.0.0": {}},
        }))

        assert iter_registry_keys(document) == [
            ("npm", "b@1.0.0"),
            ("npm", "a@1.0.0"),
            ("jsr", "@std/path@1.0.0"),
        ]


class TestReferences:
    """Tests for dependency reference handling."""

    def test_unwrap_rebind(self):
        assert unwrap_rebind("alias@npm:real@1.0.0") == "npm:real@1.0.0"

    def test_unwrap_scoped_alias(self):
        assert unwrap_rebind("@scope/alias@npm:@scope/real@1.0.0") == "npm:@scope/real@1.0.0"

    def test_plain_references_are_unchanged(self):
        assert unwrap_rebind("real@1.0.0") == "real@1.0.0"
        assert unwrap_rebind("npm:real@1.0.0") == "npm:real@1.0.0"
        assert unwrap_rebind("jsr:@std/path@1.0.0") == "jsr:@std/path@1.0.0"

    def test_dependency_token_uses_parent_registry(self):
        assert dependency_token("real@1.0.0", "jsr") == "jsr:real@1.0.0"
        assert dependency_token("npm:real@1.0.0", "jsr") == "npm:real@1.0.0"
        assert dependency_token("alias@npm:real@1.0.0", "jsr") == "npm:real@1.0.0"


class TestFindDenoLock:
    """Tests for the upward lock file search."""

    def test_find_in_same_directory(self, tmp_path):
        (tmp_path / 'deno.lock').write_text('{}')

        assert find_deno_lock(str(tmp_path)) == str(tmp_path / 'deno.lock')

    def test_find_in_ancestor(self, tmp_path):
        (tmp_path / 'deno.lock').write_text('{}')
        nested = tmp_path / 'a' / 'b' / 'c'
        nested.mkdir(parents=True)

        assert find_deno_lock(str(nested)) == str(tmp_path / 'deno.lock')

    def test_nearest_lock_wins(self, tmp_path):
        (tmp_path / 'deno.lock').write_text('{}')
        inner = tmp_path / 'inner'
        inner.mkdir()
        (inner / 'deno.lock').write_text('{}')

        assert find_deno_lock(str(inner)) == str(inner / 'deno.lock')

    def test_not_found(self, tmp_path):
        assert find_deno_lock(str(tmp_path)) is None
