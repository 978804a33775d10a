"""Public API tests: run_capture, run_inherited, system, Shell."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import anyio
import pytest

from shellrun import (
    ExitStatusError,
    ProcessResult,
    Shell,
    ShellError,
    SpawnFailed,
    run_capture,
    run_capture_async,
    run_inherited,
    run_inherited_async,
    system,
)
from shellrun.errors import AbnormalTermination
from shellrun.runtime.launcher import IS_WINDOWS, SubprocessLauncher

posix_only = pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")


def _minimal_env(**extra: str) -> dict[str, str]:
    env = dict(extra)
    if "SYSTEMROOT" in os.environ:
        env["SYSTEMROOT"] = os.environ["SYSTEMROOT"]
    return env


# =============================================================================
# run_capture Tests
# =============================================================================


@posix_only
class TestRunCaptureEcho:
    """Test run_capture against the system echo."""

    def test_single_argument(self):
        assert run_capture("echo", ["A"]).output[0] == "A"

    def test_separate_arguments(self):
        assert run_capture("echo", ["A", "B"]).output[0] == "A B"

    def test_argument_with_space_is_one_entry(self):
        assert run_capture("echo", ["a  b"]).output == ("a  b",)

    def test_status_zero(self):
        result = run_capture("echo", ["hello"])
        assert result.status == 0
        assert result.success
        assert not result.has_error

    def test_newline_only_output(self):
        assert run_capture("echo").output == ()

    def test_idempotent(self):
        assert run_capture("echo", ["same"]).output == run_capture("echo", ["same"]).output


class TestRunCapture:
    """Test run_capture with the fake CLI."""

    def test_nul_byte_raises_spawn_failed(self):
        with pytest.raises(SpawnFailed):
            run_capture("ec\x00ho", ["A"])
        with pytest.raises(SpawnFailed):
            run_capture("echo", ["A\x00"])


    def test_two_lines(self, fake_cli: list[str]):
        result = run_capture(fake_cli[0], [*fake_cli[1:], "--line", "one", "--line", "two"])
        assert len(result.output) == 2

    def test_nonexistent_absolute_path(self, tmp_path: Path):
        with pytest.raises(SpawnFailed):
            run_capture(str(tmp_path / "none"))

    def test_nonexistent_bare_name(self):
        with pytest.raises(SpawnFailed):
            run_capture("shellrun-none-xyz")

    def test_subprocess_launcher(self, fake_cli: list[str]):
        result = run_capture(
            fake_cli[0],
            [*fake_cli[1:], "--line", "via popen", "--err", "err"],
            launcher=SubprocessLauncher(),
        )
        assert result.output == ("via popen", "err")

    def test_concurrent_sessions_do_not_mix(self, fake_cli: list[str]):
        def run(tag: str) -> ProcessResult:
            lines = []
            for i in range(50):
                lines += ["--line", f"{tag}-{i}"]
            return run_capture(fake_cli[0], [*fake_cli[1:], *lines, "--bulk", "20000"])

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(run, ["a", "b", "c", "d"]))

        for tag, result in zip("abcd", results):
            expected = [f"{tag}-{i}" for i in range(50)]
            assert list(result.output[:50]) == expected
            assert result.output[50] == "x" * 20000
            assert len(result.output) == 51


# =============================================================================
# run_inherited / system Tests
# =============================================================================


class TestRunInherited:
    """Test the boolean entry point."""

    def test_success(self, fake_cli: list[str]):
        assert run_inherited(fake_cli[0], [*fake_cli[1:], "--line", "discarded"]) is True

    def test_nonzero_exit(self, fake_cli: list[str]):
        assert run_inherited(fake_cli[0], [*fake_cli[1:], "--exit-code", "1"]) is False

    def test_missing_executable(self, tmp_path: Path):
        assert run_inherited(str(tmp_path / "none")) is False

    def test_environment_override(self, fake_cli: list[str]):
        args = [*fake_cli[1:], "--expect-env", "FAKE_CLI_MARK=yes", "--expect-unset", "HOME"]
        env = _minimal_env(FAKE_CLI_MARK="yes")
        assert run_inherited(fake_cli[0], args, env) is True

    def test_environment_inherited_by_default(
        self, fake_cli: list[str], monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("FAKE_CLI_MARK", "parent")
        args = [*fake_cli[1:], "--expect-env", "FAKE_CLI_MARK=parent"]
        assert run_inherited(fake_cli[0], args) is True

    def test_stdout_discarded(self, fake_cli: list[str], capfd: pytest.CaptureFixture[str]):
        run_inherited(fake_cli[0], [*fake_cli[1:], "--line", "hidden", "--err", "visible"])
        captured = capfd.readouterr()
        assert "hidden" not in captured.out
        assert "visible" in captured.err

    @posix_only
    def test_equals_in_env_name(self, fake_cli: list[str]):
        assert run_inherited(fake_cli[0], fake_cli[1:], {"A=B": "x"}) is False

    def test_non_str_env_value(self, fake_cli: list[str]):
        assert run_inherited(fake_cli[0], fake_cli[1:], {"A": 1}) is False

    def test_nul_in_argument(self, fake_cli: list[str]):
        assert run_inherited(fake_cli[0], [*fake_cli[1:], "--line", "A\x00"]) is False

    def test_nul_in_executable(self):
        assert run_inherited("ec\x00ho", ["A"]) is False


class TestSystem:
    """Test the raising form of run_inherited."""

    def test_exit_status_error(self, fake_cli: list[str]):
        with pytest.raises(ExitStatusError) as exc_info:
            system([*fake_cli, "--exit-code", "4"])
        assert exc_info.value.status == 4
        assert exc_info.value.command[-2:] == ["--exit-code", "4"]

    @posix_only
    def test_signal(self, fake_cli: list[str]):
        with pytest.raises(AbnormalTermination):
            system([*fake_cli, "--signal", "SIGTERM"])

    def test_success_returns_none(self, fake_cli: list[str]):
        assert system(fake_cli) is None


# =============================================================================
# Shell Tests
# =============================================================================


class TestShell:
    """Test the object form."""

    def test_start(self, fake_cli: list[str]):
        shell = Shell(fake_cli[0], [*fake_cli[1:], "--line", "A", "--exit-code", "2"])
        result = shell.start()
        assert result.status == 2
        assert result.has_error
        assert result.output == ("A",)

    def test_start_system(self, fake_cli: list[str]):
        assert Shell(fake_cli[0], fake_cli[1:]).start_system() is True
        assert Shell(fake_cli[0], [*fake_cli[1:], "--exit-code", "3"]).start_system() is False

    def test_start_raises(self, tmp_path: Path):
        with pytest.raises(ShellError):
            Shell(str(tmp_path / "none")).start()

    def test_attributes(self):
        shell = Shell("prog", ["a", "b"])
        assert shell.executable == "prog"
        assert shell.arguments == ("a", "b")
        assert repr(shell) == "Shell('prog', ['a', 'b'])"

    def test_error_all_lines(self):
        result = ProcessResult(status=1, output=("first", "second"))
        assert result.error_all_lines == "first\nsecond"
        assert ProcessResult(status=0).error_all_lines == ""

    def test_result_output_frozen(self):
        lines = ["a", "b"]
        result = ProcessResult(0, lines)
        lines.append("c")
        assert result.output == ("a", "b")
        assert isinstance(result.output, tuple)
        assert hash(result) == hash(ProcessResult(0, ("a", "b")))


# =============================================================================
# Async Tests
# =============================================================================


class TestAsync:
    """Test the worker-thread wrappers."""

    @pytest.mark.asyncio
    async def test_run_capture_async(self, fake_cli: list[str]):
        result = await run_capture_async(fake_cli[0], [*fake_cli[1:], "--line", "async"])
        assert result.output == ("async",)

    @pytest.mark.asyncio
    async def test_run_inherited_async(self, fake_cli: list[str]):
        assert await run_inherited_async(fake_cli[0], fake_cli[1:]) is True

    @pytest.mark.asyncio
    async def test_concurrent_async_sessions(self, fake_cli: list[str]):
        results: dict[str, ProcessResult] = {}

        async def run(tag: str) -> None:
            results[tag] = await run_capture_async(
                fake_cli[0], [*fake_cli[1:], "--line", tag, "--bulk", "10000"]
            )

        async with anyio.create_task_group() as tg:
            for tag in ("left", "right"):
                tg.start_soon(run, tag)

        for tag in ("left", "right"):
            assert results[tag].output == (tag, "x" * 10000)
