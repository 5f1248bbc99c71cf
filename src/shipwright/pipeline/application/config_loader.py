"""
Pipeline configuration loading.

Reads ``shipwright.yaml``, resolves relative paths against the file's
directory, applies command-line overrides and validates everything into a
frozen PipelineConfig.

Example file::

    source:
      url: https://github.com/example/upstream.git
      branch: main
      subdir: upstream
    paths:
      source_root: work/src
      build_root: work/build
      install_root: dist
      repo_root: .
    build:
      profile: Release
      targets:
        - {name: driver, kind: native, project: driver/driver.vcxproj}
    flags:
      sign: false
    publish:
      owner: example
      repo: upstream-builds
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from shipwright.pipeline.domain.models import PipelineConfig, WorkspaceLayout
from shipwright.shared.domain.exceptions import ConfigurationError
from shipwright.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_NAME = "shipwright.yaml"

KNOWN_SECTIONS = {"source", "paths", "build", "flags", "publish"}
PATH_KEYS = ("source_root", "build_root", "install_root", "repo_root")


def _section(data: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return dict(value)


def read_config_file(path: Path) -> Dict[str, Any]:
    """Parse the YAML file into a mapping. Empty files are an error."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in {path}: {e}") from e

    if data is None:
        raise ConfigurationError(f"{path} is empty")
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a YAML mapping")

    unknown = sorted(set(data) - KNOWN_SECTIONS)
    if unknown:
        logger.warning("config_unknown_sections", sections=unknown, path=str(path))
    return data


def to_config_fields(data: Mapping[str, Any], base_dir: Path) -> Dict[str, Any]:
    """Flatten the sectioned file layout into PipelineConfig fields."""
    source = _section(data, "source")
    paths = _section(data, "paths")
    build = _section(data, "build")

    fields: Dict[str, Any] = {}
    if "url" in source:
        fields["source_url"] = source["url"]
    if "branch" in source:
        fields["source_branch"] = source["branch"]
    if "subdir" in source:
        fields["source_subdir"] = source["subdir"]

    for key in PATH_KEYS:
        if key in paths:
            candidate = Path(str(paths[key])).expanduser()
            fields[key] = candidate if candidate.is_absolute() else base_dir / candidate

    if "profile" in build:
        fields["build_profile"] = build["profile"]
    if "targets" in build:
        fields["targets"] = build["targets"]

    if data.get("flags") is not None:
        fields["flags"] = _section(data, "flags")
    if data.get("publish") is not None:
        fields["publish"] = _section(data, "publish")
    return fields


def load_pipeline_config(
    path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> PipelineConfig:
    """
    Build the PipelineConfig for one invocation.

    Args:
        path: Config file; ``None`` means no file, everything from overrides.
        overrides: Field values taking precedence over the file. ``flags``
            and ``publish`` are merged key by key; ``None`` values are ignored.

    Raises:
        ConfigurationError: unreadable file or failed validation.
    """
    fields: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        fields = to_config_fields(read_config_file(path), path.resolve().parent)

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key in ("flags", "publish") and isinstance(value, Mapping):
            merged = dict(fields.get(key) or {})
            merged.update({k: v for k, v in value.items() if v is not None})
            if merged:
                fields[key] = merged
        else:
            fields[key] = value

    # Paths not given anywhere default to the current directory layout
    cwd = Path.cwd()
    fields.setdefault("repo_root", cwd)
    fields.setdefault("source_root", cwd / "src")
    fields.setdefault("build_root", cwd / "build")
    fields.setdefault("install_root", cwd / "install")

    try:
        config = PipelineConfig.model_validate(fields)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid pipeline configuration: {e}") from e

    # Derived layout validates its own containment invariant
    WorkspaceLayout.from_config(config)
    logger.debug("config_loaded", path=str(path) if path else None, source_url=config.source_url)
    return config
