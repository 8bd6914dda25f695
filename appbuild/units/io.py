"""Project file loading.

This module provides helpers for loading a project file from YAML or JSON
and validating it against the project schema.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from appbuild.errors import ProjectFileError
from appbuild.units.schema import ProjectSchema


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the content is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed JSON content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the content is not an object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def parse_project_data(data: dict[str, Any]) -> ProjectSchema:
    """Parse and validate project data using the schema.

    Raises:
        pydantic.ValidationError: If data does not match schema.
    """
    return ProjectSchema.model_validate(data)


def load_project(path: Path) -> ProjectSchema:
    """Load and validate a project file (YAML or JSON).

    File format is determined by extension (.yaml, .yml for YAML,
    .json for JSON).

    Args:
        path: Path to the project file.

    Returns:
        Validated ProjectSchema instance.

    Raises:
        ProjectFileError: If the file is missing, unparsable or invalid.
    """
    suffix = path.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            data = load_yaml(path)
        elif suffix == ".json":
            data = load_json(path)
        else:
            raise ProjectFileError(
                f"Unsupported file extension '{suffix}'. Use .yaml, .yml, or .json"
            )
        return parse_project_data(data)
    except FileNotFoundError:
        raise ProjectFileError(f"Project file not found: {path}") from None
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ProjectFileError(f"Parse error in {path}: {e}") from e
    except ValidationError as e:
        raise ProjectFileError(f"Validation error in {path}: {e}") from e
    except ValueError as e:
        raise ProjectFileError(f"{path}: {e}") from e


__all__ = [
    "load_json",
    "load_project",
    "load_yaml",
    "parse_project_data",
]
