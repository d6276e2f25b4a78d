"""Output formatters for dependency selections."""

import json
import logging
from datetime import datetime, timezone
from typing import Dict
from uuid import uuid4

from packageurl import PackageURL
from cyclonedx.model import ExternalReference, ExternalReferenceType, Property, XsUri
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType
from cyclonedx.output.json import JsonV1Dot6

from .models import Package, Selection

logger = logging.getLogger(__name__)

PATH_PROPERTY = 'depselect:path'


class OutputFormatter:
    """Formatter for various output formats."""

    @staticmethod
    def format_as_list(selection: Selection) -> str:
        """Format paths as a flat list (one per line)."""
        return ''.join(f"{path}\n" for path in selection)

    @staticmethod
    def format_as_json(selection: Selection) -> str:
        """Format paths as a JSON array."""
        return json.dumps(selection.paths, indent=2) + '\n'

    @staticmethod
    def format_as_sbom(selection: Selection, command_line: str = None) -> str:
        """Generate a CycloneDX SBOM listing every selected package with a known identity."""
        from . import __version__

        bom = Bom()
        bom.serial_number = uuid4()

        tool_purl = PackageURL(type='pypi', name='depselect', version=__version__)
        tool_component = Component(
            name='depselect',
            version=__version__,
            type=ComponentType.APPLICATION,
            purl=tool_purl,
            bom_ref=tool_purl.to_string(),
            external_references=[
                ExternalReference(
                    type=ExternalReferenceType.DISTRIBUTION,
                    url=XsUri(f"https://pypi.org/project/depselect/{__version__}/"),
                )
            ],
        )
        bom.metadata.tools.components.add(tool_component)
        bom.metadata.timestamp = datetime.now(timezone.utc).replace(microsecond=0)
        if command_line:
            bom.metadata.properties.add(Property(name='commandLine', value=command_line))

        seen_refs: Dict[str, int] = {}
        for pkg in selection.packages:
            bom.components.add(OutputFormatter._package_to_component(pkg, seen_refs))

        logger.info(f"Generating SBOM with {len(bom.components)} components")
        return JsonV1Dot6(bom).output_as_string(indent=2)

    @staticmethod
    def _package_to_component(pkg: Package, seen_refs: Dict[str, int]) -> Component:
        """Convert a Package to a CycloneDX Component."""
        purl = pkg.purl
        purl_str = purl.to_string()

        # The same package@version may be installed in several directories
        bom_ref = purl_str
        count = seen_refs.get(purl_str, 0)
        if count:
            bom_ref = f"{purl_str}#{count}"
        seen_refs[purl_str] = count + 1

        return Component(
            name=purl.name,
            group=purl.namespace,
            version=pkg.version or None,
            type=ComponentType.LIBRARY,
            purl=purl,
            bom_ref=bom_ref,
            properties=[Property(name=PATH_PROPERTY, value=pkg.path)] if pkg.path else None,
        )
