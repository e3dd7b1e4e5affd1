# tests/test_kernel.py
"""
Kernel tests with dependency injection.
Kernel only routes commands and updates session state - pip, imports and
process spawning are delegated to the package manager.
"""
from __future__ import annotations

from pathlib import Path

import tryrepl.kernel as kernel_mod
from tryrepl.config import UI_CLEAR
from tryrepl.kernel import Kernel

# ----------------------------------------------------------------
# Boundary tests (hard gates)
# ----------------------------------------------------------------


def test_kernel_module_does_not_spawn_processes_or_build_pip_argv() -> None:
    """
    HARD BOUNDARY:
    - Kernel must not call subprocess directly.
    - Kernel must not know pip's command line.
    """
    text = Path(kernel_mod.__file__).read_text(encoding="utf-8")

    forbidden_substrings = [
        "import subprocess",
        "subprocess.",
        '"pip"',
        "--target",
        "importlib.import_module",
    ]

    hits = [s for s in forbidden_substrings if s in text]
    assert not hits, f"Kernel must delegate to the package manager. Found: {hits}"


# ----------------------------------------------------------------
# .install
# ----------------------------------------------------------------


def test_install_success_records_and_binds(kernel: Kernel, fake_pm, spinner_log):
    response = kernel.handle_command(".install chalk")

    assert fake_pm.installs == ["chalk"]
    assert response == "Module has been loaded as `chalk`"
    assert kernel.console.namespace["chalk"].origin == "chalk"
    assert ("start", "Installing chalk") in spinner_log
    assert ("succeed", "chalk has been installed successfully!") in spinner_log
    assert kernel.registry.drain_all() == ["chalk"]


def test_install_binds_hyphenated_name_as_camel_case(kernel: Kernel):
    response = kernel.handle_command(".install left-pad")

    assert "`leftPad`" in response
    assert "leftPad" in kernel.console.namespace
    assert "left-pad" not in kernel.console.namespace


def test_install_twice_spawns_once(kernel: Kernel, fake_pm):
    kernel.handle_command(".install left-pad")
    response = kernel.handle_command(".install left-pad")

    assert fake_pm.installs == ["left-pad"]
    assert "already loaded" in response
    assert "leftPad" in response
    assert kernel.registry.drain_all() == ["left-pad"]


def test_install_failure_does_not_record_or_bind(kernel: Kernel, fake_pm, spinner_log):
    fake_pm.install_code = 1

    response = kernel.handle_command(".install chalk")

    assert "Error installing module" in response
    assert "exit code: 1" in response
    assert "chalk" not in kernel.console.namespace
    assert fake_pm.loads == []
    assert not kernel.registry.is_installed("chalk")
    assert not any(event == "succeed" for event, _ in spinner_log)
    assert ("stop", "Installing chalk") in spinner_log


def test_install_can_be_retried_after_failure(kernel: Kernel, fake_pm):
    fake_pm.install_code = 1
    kernel.handle_command(".install chalk")

    fake_pm.install_code = 0
    response = kernel.handle_command(".install chalk")

    assert fake_pm.installs == ["chalk", "chalk"]
    assert "`chalk`" in response


def test_install_streams_stdout_chunks_verbatim(kernel: Kernel, fake_pm, output):
    fake_pm.install_stdout = ["Collecting chalk\n", "Installing collected packages\n"]

    kernel.handle_command(".install chalk")

    assert "Collecting chalk\n" in output
    assert "Installing collected packages\n" in output


def test_install_stderr_chunks_each_mark_spinner_failed(kernel: Kernel, fake_pm, spinner_log):
    fake_pm.install_stderr = ["WARNING: one\n", "WARNING: two\n"]

    kernel.handle_command(".install chalk")

    fails = [text for event, text in spinner_log if event == "fail"]
    assert fails == ["WARNING: one\n", "WARNING: two\n"]
    # exit code still decides the outcome
    assert kernel.registry.is_installed("chalk")


def test_install_with_version_specifier_binds_bare_name(kernel: Kernel, fake_pm):
    response = kernel.handle_command(".install rich>=13")

    assert fake_pm.installs == ["rich>=13"]
    assert fake_pm.loads == ["rich"]
    assert response == "Module has been loaded as `rich`"
    assert kernel.console.namespace["rich"].origin == "rich"
    assert "rich>=13" not in kernel.console.namespace
    assert kernel.registry.is_installed("rich")


def test_install_with_extras_then_plain_name_is_a_duplicate(kernel: Kernel, fake_pm):
    kernel.handle_command(".install left-pad[extra]==1.3")
    response = kernel.handle_command(".install left-pad")

    assert fake_pm.installs == ["left-pad[extra]==1.3"]
    assert "already loaded" in response
    assert "leftPad" in response
    assert kernel.registry.drain_all() == ["left-pad"]


def test_install_rejects_names_that_cannot_be_bound(kernel: Kernel, fake_pm):
    kernel.handle_command("def f():")

    response = kernel.handle_command(".install zope.interface")

    assert "Cannot bind zope.interface" in response
    assert fake_pm.installs == []
    assert len(kernel.registry) == 0
    assert not kernel.console.needs_more


def test_install_rejects_keyword_symbol(kernel: Kernel, fake_pm):
    response = kernel.handle_command(".install async")

    assert "Cannot bind async" in response
    assert fake_pm.installs == []


def test_install_without_name_shows_usage(kernel: Kernel, fake_pm):
    response = kernel.handle_command(".install")

    assert response == "Usage: .install <package>"
    assert fake_pm.installs == []


def test_install_clears_buffered_input_on_success(kernel: Kernel):
    kernel.handle_command("def f():")
    assert kernel.console.needs_more

    kernel.handle_command(".install chalk")

    assert not kernel.console.needs_more


def test_install_clears_buffered_input_on_failure(kernel: Kernel, fake_pm):
    fake_pm.install_code = 2
    kernel.handle_command("def f():")

    kernel.handle_command(".install chalk")

    assert not kernel.console.needs_more


def test_duplicate_install_clears_buffered_input(kernel: Kernel):
    kernel.handle_command(".install chalk")
    kernel.handle_command("def f():")

    kernel.handle_command(".install chalk")

    assert not kernel.console.needs_more


def test_install_import_failure_keeps_record_without_binding(kernel: Kernel, fake_pm):
    fake_pm.load_error = ImportError("no module named chalk")

    response = kernel.handle_command(".install chalk")

    assert "could not be imported" in response
    assert "ImportError" in response
    assert "chalk" not in kernel.console.namespace
    assert kernel.registry.is_installed("chalk")


# ----------------------------------------------------------------
# .repo
# ----------------------------------------------------------------


def test_repo_success_returns_nothing(kernel: Kernel, fake_pm, output):
    fake_pm.repo_stdout = ["https://github.com/psf/requests\n"]

    response = kernel.handle_command(".repo requests")

    assert fake_pm.repos == ["requests"]
    assert response == ""
    assert "https://github.com/psf/requests\n" in output


def test_repo_failure_reports_exit_code(kernel: Kernel, fake_pm, output):
    fake_pm.repo_code = 1
    fake_pm.repo_stderr = ["Package not found on PyPI: nope\n"]

    response = kernel.handle_command(".repo nope")

    assert "Error opening repo" in response
    assert "exit code: 1" in response
    assert "Package not found on PyPI: nope\n" in output


def test_repo_does_not_touch_registry(kernel: Kernel):
    kernel.handle_command(".repo requests")

    assert len(kernel.registry) == 0


def test_repo_without_name_shows_usage(kernel: Kernel, fake_pm):
    assert kernel.handle_command(".repo") == "Usage: .repo <package>"
    assert fake_pm.repos == []


# ----------------------------------------------------------------
# Teardown
# ----------------------------------------------------------------


def test_shutdown_uninstalls_all_modules_in_one_request(kernel: Kernel, fake_pm, spinner_log):
    kernel.handle_command(".install chalk")
    kernel.handle_command(".install left-pad")

    code = kernel.shutdown()

    assert code == 0
    assert fake_pm.uninstalls == [["chalk", "left-pad"]]
    assert ("start", "Cleaning up before exit") in spinner_log
    assert ("stop", "Cleaning up before exit") in spinner_log
    assert not kernel.running


def test_shutdown_with_empty_registry_issues_empty_request(kernel: Kernel, fake_pm):
    code = kernel.shutdown()

    assert code == 0
    assert fake_pm.uninstalls == [[]]


def test_shutdown_skips_failed_installs(kernel: Kernel, fake_pm):
    fake_pm.install_code = 1
    kernel.handle_command(".install broken")
    fake_pm.install_code = 0
    kernel.handle_command(".install chalk")

    kernel.shutdown()

    assert fake_pm.uninstalls == [["chalk"]]


def test_shutdown_failure_reports_and_returns_code(kernel: Kernel, fake_pm, output):
    fake_pm.uninstall_code = 3
    kernel.handle_command(".install chalk")

    code = kernel.shutdown()

    assert code == 3
    assert any("Error deleting modules, exit code: 3" in s for s in output)


def test_shutdown_runs_once(kernel: Kernel, fake_pm):
    kernel.shutdown()
    kernel.shutdown()

    assert fake_pm.uninstalls == [[]]


def test_shutdown_exception_writes_crash_log(kernel: Kernel, fake_pm, output, tmp_path, monkeypatch):
    monkeypatch.setenv("TRYREPL_DATA_HOME", str(tmp_path))

    def boom(names):
        raise OSError("disk gone")

    fake_pm.uninstall = boom

    code = kernel.shutdown()

    assert code == 1
    log = tmp_path / "tryrepl" / "logs" / "crash.log"
    assert log.exists()
    assert "OSError: disk gone" in log.read_text(encoding="utf-8")
    assert any("disk gone" in s for s in output)


# ----------------------------------------------------------------
# Other commands
# ----------------------------------------------------------------


def test_modules_lists_installed_packages(kernel: Kernel):
    kernel.handle_command(".install left-pad")

    response = kernel.handle_command(".modules")

    assert "left-pad" in response
    assert "leftPad" in response


def test_modules_empty(kernel: Kernel):
    assert "(none)" in kernel.handle_command(".modules")


def test_help_lists_commands(kernel: Kernel):
    response = kernel.handle_command(".help")

    assert ".install <package>" in response
    assert ".repo <package>" in response
    assert kernel.handle_command("?") == response


def test_clear_triggers_return_ui_clear(kernel: Kernel):
    assert kernel.handle_command(".clear") == UI_CLEAR
    assert kernel.handle_command("cls") == UI_CLEAR
    assert kernel.handle_command("\x0c") == UI_CLEAR


def test_exit_stops_kernel(kernel: Kernel):
    response = kernel.handle_command(".exit")

    assert kernel.running is False
    assert "Bye!" in response


def test_start_returns_welcome_and_prompt(kernel: Kernel):
    out = kernel.start()

    assert "Welcome to TryREPL" in out
    assert ">" in out
    assert kernel.running


# ----------------------------------------------------------------
# Python evaluation
# ----------------------------------------------------------------


def test_python_statements_run_in_session_namespace(kernel: Kernel):
    assert kernel.handle_command("x = 40 + 2") == ""

    assert kernel.console.namespace["x"] == 42


def test_python_expression_output_goes_through_console(kernel: Kernel, output):
    kernel.handle_command("1 + 1")

    assert "".join(output).strip() == "2"


def test_trigger_like_python_is_evaluated(kernel: Kernel):
    kernel.handle_command("cls = 3")

    assert kernel.console.namespace["cls"] == 3


def test_installed_module_is_usable_from_python(kernel: Kernel):
    kernel.handle_command(".install left-pad")
    kernel.handle_command("name = leftPad.origin")

    assert kernel.console.namespace["name"] == "left-pad"


def test_prompt_switches_to_continuation(kernel: Kernel):
    primary = kernel.prompt()

    kernel.handle_command("if True:")

    assert kernel.prompt() != primary
    assert "." in kernel.prompt()
    assert ">" in primary


