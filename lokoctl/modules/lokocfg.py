"""Loading of ``*.lokocfg`` cluster configuration files.

A configuration is either a single file or every ``*.lokocfg`` file in a
directory, read in name order. Each file is a Jinja2 template rendered with
``var`` bound to the variables file, then parsed as YAML:

    cluster:
      platform: packet
      config:
        cluster_name: {{ var.cluster_name }}
    backend:
      name: s3
      config: {...}
    components:
      - name: external-dns
        config: {...}
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError
from jsonschema import Draft7Validator

from ..errors import ConfigValidationError, Diagnostic, LokoctlError

logger = logging.getLogger("lokoctl.lokocfg")

FILE_SUFFIX = ".lokocfg"

SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "cluster": {
            "type": "object",
            "additionalProperties": False,
            "required": ["platform"],
            "properties": {
                "platform": {"type": "string"},
                "config": {"type": ["object", "null"]},
            },
        },
        "backend": {
            "type": "object",
            "additionalProperties": False,
            "required": ["name"],
            "properties": {
                "name": {"type": "string"},
                "config": {"type": ["object", "null"]},
            },
        },
        "components": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "config": {"type": ["object", "null"]},
                },
            },
        },
    },
}


@dataclass
class LokoConfig:
    """Decoded cluster configuration."""
    platform: Optional[str] = None
    cluster: Dict[str, Any] = field(default_factory=dict)
    backend_name: Optional[str] = None
    backend: Dict[str, Any] = field(default_factory=dict)
    components: List[Dict[str, Any]] = field(default_factory=list)

    def component_names(self) -> List[str]:
        return [c["name"] for c in self.components]

    def component_config(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the config block of a component, or None if it isn't configured."""
        for component in self.components:
            if component["name"] == name:
                return component.get("config") or {}
        return None


def load_variables(path: Union[str, Path]) -> Dict[str, Any]:
    """Load the variables file. A missing file means no variables."""
    path = Path(path)
    if not path.is_file():
        logger.debug(f"Variables file {path} not found, continuing without variables")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(
            [Diagnostic(f"parsing variables file {str(path)!r}", str(e))],
            "Errors found while loading variables",
        ) from e

    if not isinstance(data, dict):
        raise ConfigValidationError(
            [Diagnostic(f"variables file {str(path)!r} must contain a mapping")],
            "Errors found while loading variables",
        )
    return data


def find_files(path: Union[str, Path]) -> List[Path]:
    """Return the configuration files at ``path`` in the order they are read."""
    path = Path(path)
    if path.is_file():
        return [path]
    if path.is_dir():
        return sorted(p for p in path.iterdir() if p.is_file() and p.suffix == FILE_SUFFIX)
    raise LokoctlError(f"configuration path {str(path)!r} does not exist")


def render_file(path: Path, variables: Dict[str, Any]) -> Any:
    """Render one configuration file and parse the result."""
    env = Environment(undefined=StrictUndefined, keep_trailing_newline=True)
    try:
        template = env.from_string(path.read_text())
        rendered = template.render(var=variables)
    except (TemplateSyntaxError, UndefinedError) as e:
        raise ConfigValidationError(
            [Diagnostic(f"rendering {str(path)!r}", str(e))],
            "Errors found while loading configuration",
        ) from e
    except OSError as e:
        raise LokoctlError(f"reading {str(path)!r}: {e}") from e

    try:
        return yaml.safe_load(rendered) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(
            [Diagnostic(f"parsing {str(path)!r}", str(e))],
            "Errors found while loading configuration",
        ) from e


def validate_document(document: Any, source: str) -> List[Diagnostic]:
    validator = Draft7Validator(SCHEMA)
    diagnostics = []
    for error in sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.absolute_path]):
        location = ".".join(str(p) for p in error.absolute_path) or "<root>"
        diagnostics.append(Diagnostic(f"{source}: invalid value at {location!r}", error.message))
    return diagnostics


def merge_documents(documents: List[Dict[str, Any]], sources: List[str]) -> LokoConfig:
    """Merge documents into one configuration.

    ``cluster`` and ``backend`` may each appear in only one file. Component
    lists are concatenated and every component may be configured only once.
    """
    config = LokoConfig()
    diagnostics: List[Diagnostic] = []
    cluster_source = backend_source = None
    seen_components: Dict[str, str] = {}

    for document, source in zip(documents, sources):
        if "cluster" in document:
            if cluster_source:
                diagnostics.append(Diagnostic(
                    "cluster configured more than once",
                    f"found in {cluster_source} and {source}",
                ))
            else:
                cluster_source = source
                config.platform = document["cluster"]["platform"]
                config.cluster = document["cluster"].get("config") or {}

        if "backend" in document:
            if backend_source:
                diagnostics.append(Diagnostic(
                    "backend configured more than once",
                    f"found in {backend_source} and {source}",
                ))
            else:
                backend_source = source
                config.backend_name = document["backend"]["name"]
                config.backend = document["backend"].get("config") or {}

        for component in document.get("components") or []:
            name = component["name"]
            if name in seen_components:
                diagnostics.append(Diagnostic(
                    f"component {name!r} configured more than once",
                    f"found in {seen_components[name]} and {source}",
                ))
                continue
            seen_components[name] = source
            config.components.append({"name": name, "config": component.get("config") or {}})

    if diagnostics:
        raise ConfigValidationError(diagnostics, "Errors found while loading configuration")
    return config


def load(path: Union[str, Path], vars_path: Union[str, Path]) -> LokoConfig:
    """Load, render and validate the configuration at ``path``.

    Raises:
        ConfigValidationError: With all problems found across all files.
    """
    variables = load_variables(vars_path)
    files = find_files(path)
    logger.debug(f"Loading configuration from {[str(f) for f in files]}")

    documents = []
    diagnostics: List[Diagnostic] = []
    for file in files:
        document = render_file(file, variables)
        problems = validate_document(document, str(file))
        if problems:
            diagnostics.extend(problems)
            continue
        documents.append(document)

    if diagnostics:
        raise ConfigValidationError(diagnostics, "Errors found while validating configuration")

    return merge_documents(documents, [str(f) for f in files])
