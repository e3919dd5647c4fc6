"""
Tests for the Build Invoker: toolchain selection, scoped environment, exit status.
"""

from __future__ import annotations

import asyncio
import os

import pytest

from config.settings import BuildConfig
from provisioner.core.build_invoker import BuildInvoker
from provisioner.errors import BuildInvocationError, ConfigurationError, ExitCode
from provisioner.models.tool import ResolvedToolchain, ToolSpec

from conftest import python_command


def _toolchain(**versions) -> ResolvedToolchain:
    return ResolvedToolchain(tools={name: ToolSpec(name=name, version=v) for name, v in versions.items()})


def _invoke(invoker: BuildInvoker, toolchain: ResolvedToolchain, args=()):
    return asyncio.run(invoker.invoke(toolchain, list(args)))


class TestSelection:

    def test_primary_tool_selected_explicitly(self):
        invoker = BuildInvoker(BuildConfig(command=["build"], primary_tool="compiler", selector_env_var="TOOLCHAIN"))
        invocation = invoker.build_invocation(_toolchain(fuzzer="0.5.52", compiler="1.8.14"), ["--release"])
        assert invocation.selected_tool == "compiler"
        assert invocation.selected_version == "1.8.14"
        assert invocation.env_overlay == {"TOOLCHAIN": "1.8.14"}
        assert invocation.command == ["build", "--release"]

    def test_no_primary_means_no_selector(self):
        invoker = BuildInvoker(BuildConfig(command=["build"], selector_env_var="TOOLCHAIN"))
        invocation = invoker.build_invocation(_toolchain(compiler="1.8.14"), [])
        assert invocation.selected_tool is None
        assert invocation.env_overlay == {}

    def test_empty_toolchain_runs_without_selector(self):
        invoker = BuildInvoker(BuildConfig(command=["build"], primary_tool="compiler"))
        invocation = invoker.build_invocation(ResolvedToolchain(), [])
        assert invocation.selected_tool is None
        assert invocation.command == ["build"]

    def test_missing_primary_is_configuration_error(self):
        invoker = BuildInvoker(BuildConfig(command=["build"], primary_tool="compiler"))
        with pytest.raises(ConfigurationError):
            invoker.build_invocation(_toolchain(fuzzer="0.5.52"), [])

    def test_selector_argument_after_executable(self):
        config = BuildConfig(command=["cargo", "build-bpf"], primary_tool="rust",
                             selector_arg="+{version}", selector_env_var=None)
        invocation = BuildInvoker(config).build_invocation(_toolchain(rust="1.59.0"), ["--", "--nocapture"])
        assert invocation.command == ["cargo", "+1.59.0", "build-bpf", "--", "--nocapture"]
        assert invocation.env_overlay == {}


class TestInvoke:

    def test_exit_status_passed_through(self):
        invoker = BuildInvoker(BuildConfig(command=python_command("import sys; sys.exit(7)")))
        assert _invoke(invoker, ResolvedToolchain()) == 7

    def test_success(self):
        invoker = BuildInvoker(BuildConfig(command=python_command("pass")))
        assert _invoke(invoker, ResolvedToolchain()) == 0

    def test_pass_through_arguments_reach_child(self):
        code = "import sys; sys.exit(0 if sys.argv[1:] == ['--features', 'test-bpf'] else 9)"
        invoker = BuildInvoker(BuildConfig(command=python_command(code)))
        assert _invoke(invoker, ResolvedToolchain(), ["--features", "test-bpf"]) == 0

    def test_overlay_visible_to_child_only(self):
        code = "import os, sys; sys.exit(0 if os.environ.get('PROVISIONER_TEST_TOOLCHAIN') == '1.8.14' else 3)"
        config = BuildConfig(command=python_command(code), primary_tool="compiler",
                             selector_env_var="PROVISIONER_TEST_TOOLCHAIN")
        before = dict(os.environ)
        assert _invoke(BuildInvoker(config), _toolchain(compiler="1.8.14")) == 0
        assert "PROVISIONER_TEST_TOOLCHAIN" not in os.environ
        assert dict(os.environ) == before

    def test_ambient_selector_shadowed_not_mutated(self):
        code = "import os, sys; sys.exit(0 if os.environ['SEL'] == '1.8.14' else 4)"
        config = BuildConfig(command=python_command(code), primary_tool="compiler", selector_env_var="SEL")
        ambient = dict(os.environ, SEL="1.7.0")
        assert _invoke(BuildInvoker(config, environ=ambient), _toolchain(compiler="1.8.14")) == 0
        assert ambient["SEL"] == "1.7.0"

    def test_missing_executable(self):
        invoker = BuildInvoker(BuildConfig(command=["definitely-not-a-real-build-tool"]))
        with pytest.raises(BuildInvocationError) as exc_info:
            _invoke(invoker, ResolvedToolchain())
        assert exc_info.value.exit_code == ExitCode.BUILD_NOT_FOUND

    def test_non_executable_build(self, not_executable):
        invoker = BuildInvoker(BuildConfig(command=[not_executable]))
        with pytest.raises(BuildInvocationError) as exc_info:
            _invoke(invoker, ResolvedToolchain())
        assert exc_info.value.exit_code == ExitCode.BUILD_NOT_EXECUTABLE

    def test_timeout(self):
        config = BuildConfig(command=python_command("import time; time.sleep(30)"), timeout_seconds=0.5)
        with pytest.raises(BuildInvocationError) as exc_info:
            _invoke(BuildInvoker(config), ResolvedToolchain())
        assert exc_info.value.exit_code == ExitCode.BUILD_TIMEOUT

    def test_dry_run_does_not_execute(self):
        invoker = BuildInvoker(BuildConfig(command=["definitely-not-a-real-build-tool"]), dry_run=True)
        assert _invoke(invoker, ResolvedToolchain()) == 0
