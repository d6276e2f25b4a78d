"""Tests for running external commands."""

import sys
import threading

import pytest

from depselect.errors import OperationCancelledError, ToolInvocationError
from depselect.managers.exec import CancellationToken, CommandResult, exec_command, parse_stdout


class TestExecCommand:
    """Tests for exec_command, using the running Python as the external tool."""

    def test_captures_stdout(self, tmp_path):
        result = exec_command([sys.executable, '-c', 'import os; print(os.getcwd())'], cwd=str(tmp_path))

        assert result.stdout.strip() == str(tmp_path.resolve())

    def test_env_is_added_to_current_environment(self):
        result = exec_command(
            [sys.executable, '-c', 'import os; print(os.environ["DEPSELECT_TEST_VAR"], "PATH" in os.environ)'],
            env={'DEPSELECT_TEST_VAR': 'hello'},
        )

        assert result.stdout.split() == ['hello', 'True']

    def test_non_zero_exit(self):
        with pytest.raises(ToolInvocationError) as exc_info:
            exec_command([sys.executable, '-c', 'import sys; sys.stderr.write("boom"); sys.exit(3)'])

        assert exc_info.value.returncode == 3
        assert exc_info.value.stderr == 'boom'
        assert 'boom' in str(exc_info.value)

    def test_undecodable_output_is_preserved(self):
        result = exec_command([sys.executable, '-c', 'import sys; sys.stdout.buffer.write(b"/x/\\xff\\n")'])

        assert result.stdout.encode('utf-8', 'surrogateescape') == b'/x/\xff\n'

    def test_missing_executable(self):
        with pytest.raises(ToolInvocationError):
            exec_command(['depselect-no-such-program-xyz'])

    def test_cancelled_before_start(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            exec_command([sys.executable, '-c', 'import time; time.sleep(30)'], cancellation_token=token)

    def test_cancel_running_command(self):
        token = CancellationToken()
        timer = threading.Timer(0.3, token.cancel)
        timer.start()
        try:
            with pytest.raises(OperationCancelledError):
                exec_command([sys.executable, '-c', 'import time; time.sleep(30)'], cancellation_token=token)
        finally:
            timer.cancel()

        assert token.is_cancelled


class TestParseStdout:
    """Tests for reading the first line of output."""

    def test_first_non_empty_line(self):
        assert parse_stdout(CommandResult(stdout='\n10.2.4\nextra\n', stderr='')) == '10.2.4'

    def test_empty_output(self):
        assert parse_stdout(CommandResult(stdout='', stderr='')) == ''
