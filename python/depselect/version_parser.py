"""Parsing utilities for "name@version" package labels."""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from semantic_version import NpmSpec

from .errors import LockfileFormatError


@dataclass
class LabelInfo:
    """
    Parsed package label.

    Attributes:
        name: Package name, including any @scope/ prefix
        version: The specifier following the name (exact version or range)
        original_string: The label as-is
        is_range: Whether the specifier is a caret or tilde range
    """
    name: str
    version: str
    original_string: str
    is_range: bool = False


class VersionParser:
    """Parser for package labels and lockfile version strings."""

    # name@specifier, where name may carry a leading @scope/
    LABEL_PATTERN = re.compile(r'^(@[^/@]+/[^@]+|[^@]+)@(.+)$')

    # Fallback: keep everything before the first version-separating @
    FALLBACK_PATTERN = re.compile(r'^(@?[^@]+)@.*$')

    # Caret or tilde immediately after the version separator
    RANGE_PATTERN = re.compile(r'@[\^~]')

    @classmethod
    def parse(cls, label: str) -> LabelInfo:
        """
        Strictly parse a "name@range" label.

        Args:
            label: Label such as "left-pad@^1.2.3" or "@types/node@18.0.0"

        Returns:
            LabelInfo with the name and specifier split apart

        Raises:
            ValueError: If the label has no version or the version is not a valid npm range
        """
        match = cls.LABEL_PATTERN.match(label)
        if not match:
            raise ValueError(f"Invalid package label: '{label}'")

        name, version = match.group(1), match.group(2)
        NpmSpec(version)  # raises ValueError for anything that is not a semver range

        return LabelInfo(
            name=name,
            version=version,
            original_string=label,
            is_range=cls.is_range(label),
        )

    @classmethod
    def clean_name(cls, label: str) -> str:
        """Return the package name of a label, tolerating non-semver specifiers."""
        try:
            return cls.parse(label).name
        except ValueError:
            return cls.FALLBACK_PATTERN.sub(r'\1', label)

    @classmethod
    def is_range(cls, label: str) -> bool:
        """True when the label's specifier starts with ^ or ~."""
        return bool(cls.RANGE_PATTERN.search(label))

    @staticmethod
    def split_package_at_version(package_at_version: str) -> Tuple[str, Optional[str]]:
        """
        Split "[registry:]name@version" into name and version.

        The registry prefix stays part of the name. A leading scope "@" is
        skipped when looking for the separator.

        Returns:
            (name, version), where version is None when there is no separator

        Raises:
            LockfileFormatError: If the separator is followed by an empty version
        """
        colon_offset = package_at_version.find(':')
        initial_offset = colon_offset + 1
        if package_at_version[initial_offset:initial_offset + 1] == '@':
            initial_offset += 1

        cut_point = package_at_version.find('@', initial_offset)
        if cut_point == -1:
            return package_at_version, None

        name = package_at_version[:cut_point]
        version = package_at_version[cut_point + 1:]
        if not version:
            raise LockfileFormatError(f"Invalid package@version format: '{package_at_version}'")
        return name, version

    @classmethod
    def split_multi_package_at_version(cls, package_at_version: str) -> List[str]:
        """
        Split a lock key that merges several packages into one entry.

        Deno joins packages with underscores inside the version suffix, so
        "fdir@6.4.6_picomatch@4.0.2" yields ["fdir@6.4.6", "picomatch@4.0.2"].
        This cannot be a plain split on "_" since both package names and
        versions may contain underscores.
        """
        produced = []
        remaining = package_at_version
        for _ in range(len(package_at_version)):
            name, version_tail = cls.split_package_at_version(remaining)
            if version_tail is None or '@' not in version_tail:
                produced.append(remaining)
                return produced

            # Another package follows inside the version suffix
            if '_' not in version_tail:
                raise LockfileFormatError(
                    f"Invalid multi-package version string: {package_at_version}. "
                    f"Expected an underscore to separate packages in version suffix '{version_tail}'"
                )
            version, remaining = version_tail.split('_', 1)
            produced.append(f"{name}@{version}")

        raise LockfileFormatError(
            f"Exceeded iteration limit while splitting multi-package version string: {package_at_version}"
        )
