"""Tests for error definitions."""

from pathlib import Path

from appbuild.errors import (
    AppBuildError,
    BadProjectBuilderError,
    CycleError,
    FinalizeFailureError,
    MissingArtifactError,
    UnknownProjectTypeError,
    format_error,
)


class TestErrorMessages:
    """Test the user-facing messages of fatal errors."""

    def test_unknown_project_type(self) -> None:
        """Should name the application and the unregistered type."""
        error = UnknownProjectTypeError("web", "plugin")
        assert error.code == "unknown_project_type"
        assert error.unit_name == "web"
        assert "Error building application web" in error.message
        assert "No project builder is configured for type plugin" in error.message

    def test_bad_project_builder(self) -> None:
        """Should name the builder reference."""
        error = BadProjectBuilderError("web", "plugin", "mybuild:Builder")
        assert error.code == "bad_project_builder"
        assert "mybuild:Builder.build not found" in error.message

    def test_missing_artifact(self) -> None:
        """Should name the missing path."""
        error = MissingArtifactError(Path("/out/api/ebin/api.app"), unit_name="api")
        assert error.message == "Missing artifact /out/api/ebin/api.app"
        assert error.path == Path("/out/api/ebin/api.app")

    def test_finalize_failure_keeps_reason(self) -> None:
        """The finalize error message should be the reason, unchanged."""
        error = FinalizeFailureError("api", "bad resource file")
        assert error.message == "bad resource file"

    def test_cycle_error_lists_members(self) -> None:
        """Should list the applications of each cycle."""
        error = CycleError([["a", "b"]])
        assert error.code == "dependency_cycle"
        assert error.cycles == [["a", "b"]]
        assert "a, b" in error.message


class TestContext:
    """Test attaching unit and stage context."""

    def test_with_context_sets_missing_fields(self) -> None:
        """Should fill in unit and stage."""
        error = AppBuildError("boom").with_context("api", "build")
        assert error.unit_name == "api"
        assert error.stage == "build"

    def test_with_context_keeps_existing_unit(self) -> None:
        """Should not overwrite a unit set at raise time."""
        error = UnknownProjectTypeError("web", "plugin").with_context("other", "build")
        assert error.unit_name == "web"
        assert error.stage == "build"

    def test_to_dict(self) -> None:
        """Should include code, message and context."""
        error = AppBuildError("boom", code="x").with_context("api", "verify")
        assert error.to_dict() == {
            "code": "x",
            "message": "boom",
            "unit": "api",
            "stage": "verify",
        }

    def test_to_dict_without_context(self) -> None:
        """Should omit unset context keys."""
        assert AppBuildError("boom").to_dict() == {
            "code": "appbuild_error",
            "message": "boom",
        }


class TestFormatError:
    """Test format_error function."""

    def test_with_unit_and_stage(self) -> None:
        """Should prefix the application and stage."""
        error = AppBuildError("boom").with_context("api", "finalize")
        assert format_error(error) == "[application api, stage finalize] boom"

    def test_without_context(self) -> None:
        """Should return the bare message."""
        assert format_error(AppBuildError("boom")) == "boom"
