"""
pytest integration.

Enabled with `--single-cov`: records coverage with coverage.py while the
test session runs and audits the declarations of the collected test modules
when it ends. Runs that select only some tests (`-k`, `-m`, `--lf`,
`--deselect`, node ids) are left alone. Runs distributed with pytest-xdist
are not audited either; the controller says so in the terminal summary.
"""

from pathlib import Path

import pytest
import structlog

from singlecov.config import ConfigLoader
from singlecov.coverage.adapters import collect
from singlecov.enforcement.auditor import AuditResult, snapshot_loaded_modules
from singlecov.logs import configure_logging
from singlecov.session import SingleCov, get_session

log = structlog.get_logger()

PLUGIN_NAME = "singlecov_plugin"

DISTRIBUTED_RUN_NOTICE = (
    "singlecov audit skipped: tests are distributed over pytest-xdist workers, "
    "run without -n to enforce coverage"
)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("singlecov", "per-file coverage enforcement")
    group.addoption(
        "--single-cov",
        action="store_true",
        default=False,
        dest="single_cov",
        help="Fail the run when declared files gain uncovered lines or branches.",
    )
    group.addoption(
        "--single-cov-config",
        default=None,
        dest="single_cov_config",
        help="Path to singlecov.yaml (default: nearest to the rootdir).",
    )
    group.addoption(
        "--single-cov-report",
        default=None,
        dest="single_cov_report",
        help="Write the coverage of declared files to this JSON file.",
    )


def running_subset_of_tests(config: pytest.Config) -> bool:
    """Whether the run selects only part of the collected tests."""
    option = config.option
    if getattr(option, "keyword", "") or getattr(option, "markexpr", ""):
        return True
    if getattr(option, "lf", False) or getattr(option, "deselect", None):
        return True
    return any("::" in str(arg) for arg in config.args)


def is_xdist_worker(config: pytest.Config) -> bool:
    return hasattr(config, "workerinput")


def is_distributed(config: pytest.Config) -> bool:
    """Whether this process hands the tests to pytest-xdist workers."""
    option = config.option
    return bool(getattr(option, "numprocesses", None)) or getattr(option, "dist", "no") != "no"


class SingleCovPlugin:
    """Coverage recording and end-of-session audit for one pytest process."""

    def __init__(self, session: SingleCov, report_path: str | None = None):
        from coverage import Coverage

        self.session = session
        self.report_path = report_path
        self.result: AuditResult | None = None
        self.cov = Coverage(branch=session.config.branches, data_file=None)

    def start(self) -> None:
        self.session.registry.claim()
        # conftest and plugin imports happen before this point
        self.session.set_preload_check(snapshot_loaded_modules())
        self.cov.start()

    @pytest.hookimpl(trylast=True)
    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        self.cov.stop()
        # failing tests already fail the run and leave coverage incomplete
        if exitstatus != 0 or not self.session.registry.is_owner():
            return

        raw = collect(self.cov, self.session.declared_paths())
        self.session.write_report(raw, self.report_path)
        self.result = self.session.audit(raw)
        if not self.result.passed:
            session.exitstatus = pytest.ExitCode.TESTS_FAILED

    def pytest_terminal_summary(self, terminalreporter: pytest.TerminalReporter) -> None:
        if self.result is None or not self.result.diagnostics:
            return
        terminalreporter.section("singlecov")
        for diagnostic in self.result.diagnostics:
            if diagnostic.is_warning:
                terminalreporter.write_line(diagnostic.message, yellow=True)
            else:
                terminalreporter.write_line(diagnostic.message, red=True)


class SkippedAuditNotice:
    """Tells the user why a run with --single-cov was not audited."""

    def __init__(self, message: str):
        self.message = message

    def pytest_terminal_summary(self, terminalreporter: pytest.TerminalReporter) -> None:
        terminalreporter.section("singlecov")
        terminalreporter.write_line(self.message, yellow=True)


def pytest_configure(config: pytest.Config) -> None:
    if not config.getoption("single_cov"):
        return
    if not structlog.is_configured():
        configure_logging(stream_handler=False)
    if is_xdist_worker(config):
        log.debug("run_is_worker")
        return
    if is_distributed(config):
        log.warning("run_is_distributed")
        config.pluginmanager.register(SkippedAuditNotice(DISTRIBUTED_RUN_NOTICE), PLUGIN_NAME)
        return
    if running_subset_of_tests(config):
        log.info("run_is_subset", args=list(config.args))
        return

    config_path = config.getoption("single_cov_config")
    if config_path:
        settings = ConfigLoader.from_yaml(config_path)
    else:
        settings = ConfigLoader.discover(Path(config.rootpath))

    session = get_session()
    session.configure(settings)
    plugin = SingleCovPlugin(session, report_path=config.getoption("single_cov_report"))
    config.pluginmanager.register(plugin, PLUGIN_NAME)
    plugin.start()
