"""Tests for package label and lock key parsing."""

import pytest
from depselect.errors import LockfileFormatError
from depselect.version_parser import VersionParser, LabelInfo


class TestParseLabel:
    """Tests for strict name@range parsing."""

    def test_parse_exact_version(self):
        """Test parsing a label with an exact version."""
        info = VersionParser.parse("left-pad@1.2.3")

        assert isinstance(info, LabelInfo)
        assert info.name == "left-pad"
        assert info.version == "1.2.3"
        assert info.original_string == "left-pad@1.2.3"
        assert info.is_range is False

    def test_parse_caret_range(self):
        """Test parsing a label with a caret range."""
        info = VersionParser.parse("left-pad@^1.2.3")

        assert info.name == "left-pad"
        assert info.version == "^1.2.3"
        assert info.is_range is True

    def test_parse_scoped_name(self):
        """Test that the leading @ of a scope is not taken as the separator."""
        info = VersionParser.parse("@types/node@18.0.0")

        assert info.name == "@types/node"
        assert info.version == "18.0.0"

    def test_parse_rejects_non_semver_specifier(self):
        """Test that git and file specifiers fail strict parsing."""
        with pytest.raises(ValueError):
            VersionParser.parse("foo@github:user/repo")

    def test_parse_rejects_missing_version(self):
        """Test that a bare name fails strict parsing."""
        with pytest.raises(ValueError):
            VersionParser.parse("foo")


class TestCleanName:
    """Tests for name extraction with fallback."""

    def test_clean_name_semver(self):
        assert VersionParser.clean_name("lodash@~4.17.0") == "lodash"

    def test_clean_name_falls_back_for_git_specifier(self):
        """Test that unparsable specifiers are stripped from the first @ onward."""
        assert VersionParser.clean_name("foo@github:user/repo") == "foo"

    def test_clean_name_falls_back_for_scoped_file_specifier(self):
        assert VersionParser.clean_name("@scope/pkg@file:../pkg") == "@scope/pkg"

    def test_clean_name_without_version(self):
        assert VersionParser.clean_name("plain") == "plain"


class TestIsRange:
    """Tests for the caret/tilde range heuristic."""

    def test_caret_and_tilde_are_ranges(self):
        assert VersionParser.is_range("left-pad@^1.2.3")
        assert VersionParser.is_range("left-pad@~1.2.3")

    def test_exact_and_comparator_are_not_ranges(self):
        assert not VersionParser.is_range("left-pad@1.2.3")
        assert not VersionParser.is_range("left-pad@>=1.2.3")


class TestSplitPackageAtVersion:
    """Tests for splitting [registry:]name@version."""

    def test_split_plain(self):
        assert VersionParser.split_package_at_version("lodash@4.17.21") == ("lodash", "4.17.21")

    def test_split_scoped(self):
        assert VersionParser.split_package_at_version("@types/node@18.0.0") == ("@types/node", "18.0.0")

    def test_split_keeps_registry_prefix_in_name(self):
        assert VersionParser.split_package_at_version("npm:@types/node@^18.0.0") == ("npm:@types/node", "^18.0.0")
        assert VersionParser.split_package_at_version("npm:lodash@^4.0.0") == ("npm:lodash", "^4.0.0")

    def test_split_without_version(self):
        assert VersionParser.split_package_at_version("lodash") == ("lodash", None)
        assert VersionParser.split_package_at_version("npm:@std/path") == ("npm:@std/path", None)

    def test_split_empty_version_is_error(self):
        with pytest.raises(LockfileFormatError):
            VersionParser.split_package_at_version("lodash@")


class TestSplitMultiPackageAtVersion:
    """Tests for splitting lock keys that merge several packages."""

    def test_split_two_packages(self):
        assert VersionParser.split_multi_package_at_version("fdir@6.4.6_picomatch@4.0.2") == [
            "fdir@6.4.6",
            "picomatch@4.0.2",
        ]

    def test_single_package_is_returned_as_is(self):
        assert VersionParser.split_multi_package_at_version("is-number@7.0.0") == ["is-number@7.0.0"]

    def test_underscore_in_name_is_not_a_separator(self):
        assert VersionParser.split_multi_package_at_version("string_utils@1.0.0") == ["string_utils@1.0.0"]

    def test_underscore_in_final_version_is_kept(self):
        assert VersionParser.split_multi_package_at_version("foo@1.2.3-alpha_4") == ["foo@1.2.3-alpha_4"]

    def test_split_three_packages(self):
        assert VersionParser.split_multi_package_at_version("a@1.0.0_b@2.0.0_@scope/c@3.0.0") == [
            "a@1.0.0",
            "b@2.0.0",
            "@scope/c@3.0.0",
        ]

    def test_missing_underscore_is_error(self):
        with pytest.raises(LockfileFormatError):
            VersionParser.split_multi_package_at_version("a@1.0.0@2.0.0")

    def test_trailing_empty_version_is_error(self):
        with pytest.raises(LockfileFormatError):
            VersionParser.split_multi_package_at_version("a@1.0.0_b@")
