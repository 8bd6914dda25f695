"""Tests for shared types module."""

from appbuild.types import (
    DEFAULT_PROJECT_TYPE,
    HookPhase,
    HookStage,
    OperationResult,
    PathKind,
    UnitState,
)


class TestEnums:
    """Test enum definitions."""

    def test_hook_stage_values(self) -> None:
        """HookStage should have expected values."""
        assert HookStage.COMPILE.value == "compile"
        assert HookStage.SOURCE_COMPILE.value == "source_compile"
        assert HookStage.APP_COMPILE.value == "app_compile"

    def test_hook_phase_values(self) -> None:
        """HookPhase should have expected values."""
        assert HookPhase("pre") is HookPhase.PRE
        assert HookPhase("post") is HookPhase.POST

    def test_unit_state_terminal_values(self) -> None:
        """UnitState should include the terminal states."""
        assert UnitState.DONE.value == "done"
        assert UnitState.FAILED.value == "failed"

    def test_path_kinds(self) -> None:
        """PathKind should cover every code path group."""
        assert {k.value for k in PathKind} == {"deps", "plugins", "project_apps", "extras"}


class TestOperationResult:
    """Test OperationResult dataclass."""

    def test_defaults(self) -> None:
        """Should default to an empty message and details."""
        result = OperationResult(success=True)
        assert result.message == ""
        assert result.code is None
        assert result.details == {}

    def test_default_project_type(self) -> None:
        """The default project type tag should be 'default'."""
        assert DEFAULT_PROJECT_TYPE == "default"
