import pytest
from conftest import FakeExecutor

from shipwright.services.doctor import CheckStatus, Doctor
from shipwright.shared.domain.exceptions import EnvironmentMissing
from shipwright.shared.infrastructure.config import Settings


@pytest.fixture
def tool_settings():
    return Settings(
        compile_command=["msbuild", "{project}"],
        sign_command=["signtool", "{file}"],
        repo_tool_executable="gh",
    )


def test_all_tools_present(make_config, tool_settings):
    doc = Doctor(make_config(), tool_settings, FakeExecutor())
    assert all(r.status == CheckStatus.SUCCESS for r in doc.run_all())


def test_missing_git_is_an_error(make_config, tool_settings):
    doc = Doctor(make_config(), tool_settings, FakeExecutor(available=("msbuild", "signtool", "gh")))
    status, msg = doc.check_git()
    assert status == CheckStatus.ERROR
    assert "'git' not found" in msg


def test_missing_compiler_is_an_error_only_when_building(make_config, tool_settings):
    executor = FakeExecutor(available=("git",))
    status, _ = Doctor(make_config(), tool_settings, executor).check_compiler()
    assert status == CheckStatus.ERROR

    no_builds = make_config(flags={"build_native": False, "build_cli": False, "build_gui": False})
    status, _ = Doctor(no_builds, tool_settings, executor).check_compiler()
    assert status == CheckStatus.SKIPPED


def test_missing_signer_is_a_warning(make_config, tool_settings):
    doc = Doctor(make_config(), tool_settings, FakeExecutor(available=("git", "msbuild", "gh")))
    status, msg = doc.check_signer()
    assert status == CheckStatus.WARNING
    assert "unsigned" in msg


def test_disabled_stages_are_skipped(make_config, tool_settings):
    config = make_config(publish=None, flags={"sign": False, "auto_publish": False})
    doc = Doctor(config, tool_settings, FakeExecutor(available=("git", "msbuild")))
    assert doc.check_signer()[0] == CheckStatus.SKIPPED
    assert doc.check_repo_tool()[0] == CheckStatus.SKIPPED


def test_missing_repo_tool_is_a_warning(make_config, tool_settings):
    doc = Doctor(make_config(), tool_settings, FakeExecutor(available=("git", "msbuild", "signtool")))
    assert doc.check_repo_tool()[0] == CheckStatus.WARNING


def test_ensure_ready_raises_on_errors(make_config, tool_settings):
    doc = Doctor(make_config(), tool_settings, FakeExecutor(available=("signtool",)))
    with pytest.raises(EnvironmentMissing) as exc_info:
        doc.ensure_ready()
    assert exc_info.value.context["checks"] == ["Version control", "Compiler"]


def test_ensure_ready_tolerates_warnings(make_config, tool_settings):
    doc = Doctor(make_config(), tool_settings, FakeExecutor(available=("git", "msbuild")))
    results = doc.ensure_ready()
    assert {r.status for r in results} == {CheckStatus.SUCCESS, CheckStatus.WARNING}
