"""npm: dependencies come straight from `npm list --parseable`."""

import logging
import os
import re
from typing import List, Optional

from ..errors import IncompatibleToolVersionError
from ..models import Selection
from .base import PackageManagerDefinition
from .exec import CancellationToken, exec_command, parse_stdout

logger = logging.getLogger(__name__)

# npm releases that cannot list dependencies correctly
BROKEN_NPM_VERSION = re.compile(r'^3\.7\.[0123]$')

LIST_COMMAND = ['npm', 'list', '--production', '--parseable', '--depth=99999', '--loglevel=error']


def check_npm(cancellation_token: Optional[CancellationToken] = None) -> str:
    """
    Verify the installed npm is usable.

    Returns:
        The npm version string

    Raises:
        IncompatibleToolVersionError: For npm releases known to be broken
    """
    version = parse_stdout(exec_command(['npm', '-v'], cancellation_token=cancellation_token)).strip()
    logger.debug(f"npm version: {version}")

    if BROKEN_NPM_VERSION.match(version):
        raise IncompatibleToolVersionError(
            f"npm@{version} doesn't work with depselect. Please update npm: npm install -g npm"
        )
    return version


class Npm(PackageManagerDefinition):
    """The default package manager; used whenever nothing more specific is detected."""

    name = 'npm'

    def task_run(self, task: str) -> List[str]:
        return ['npm', 'run', task]

    def detect(self, cwd: str) -> bool:
        return True

    def get_dependencies(
        self,
        cwd: str,
        packaged_dependencies: Optional[List[str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Selection:
        # npm has no notion of selecting dependencies; the allow-list is ignored
        if packaged_dependencies is not None:
            logger.debug("npm lists all production dependencies; ignoring packaged dependency list")

        cwd = os.path.abspath(cwd)
        check_npm(cancellation_token)
        result = exec_command(LIST_COMMAND, cwd=cwd, cancellation_token=cancellation_token)

        selection = Selection()
        for line in result.stdout.splitlines():
            line = line.strip()
            if os.path.isabs(line):
                selection.add(line)
        selection.add(cwd)

        logger.info(f"npm reported {len(selection)} dependency directories")
        return selection
