"""Prepper-backed configuration loader for Skelmerge."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator, Mapping, Tuple

from dotenv import dotenv_values
from prepper import (
    ConfigNotFound,
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import ConfigurationError
from .frameroman import CODEC_NAME, is_frameroman

APP_NAME = "Skelmerge"


class SkelmergeConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    SKELMERGE_DEBUG: bool = Field(
        default=False,
        description="Print every recorded problem to stderr.",
    )
    SKELMERGE_STRICT: bool = Field(
        default=False,
        description="Abort instead of producing a degraded skeleton.",
    )
    SKELMERGE_MIF_CHARSET: str | None = Field(
        default=None,
        description="Charset of MIF string text; detected from the document when unset.",
    )
    SKELMERGE_SEGMENT_SENTENCES: bool = Field(default=False)
    SKELMERGE_OFFICE_COMMAND: str = Field(default="soffice")
    SKELMERGE_TARGET_LANGUAGE: str | None = Field(default=None)

    @model_validator(mode="before")
    def _normalise_charset(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("SKELMERGE_MIF_CHARSET")
            if isinstance(raw_value, str):
                value = raw_value.strip()
                if not value:
                    data["SKELMERGE_MIF_CHARSET"] = None
                else:
                    data["SKELMERGE_MIF_CHARSET"] = CODEC_NAME.upper() if is_frameroman(value) else value
        return data


Layer = Tuple[str, str, Mapping[str, Any]]


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Merge file and environment layers once; later layers win."""

    base_dir = app_dir or Path.cwd()
    provenance = ProvenanceRecorder()
    combined: dict[str, Any] = {}
    try:
        for layer, source, values in (*_file_layers(base_dir), *_env_layers(base_dir)):
            merge_layer(combined, dict(values), provenance=provenance, source=source, layer=layer)
        model = SkelmergeConfig.validate(combined, provenance=provenance)
    except ConfigNotFound as exc:
        raise ConfigurationError(f"Configuration file disappeared while loading: {exc}") from exc
    except IoError as exc:
        raise ConfigurationError(f"Configuration files could not be read: {exc}") from exc
    except SchemaError as exc:
        raise ConfigurationError(f"Configuration schema error: {exc}") from exc
    except ValidationError as exc:
        issues = [_describe_issue(entry) for entry in exc.to_dict()]
        raise ConfigurationError(
            "Invalid Skelmerge settings:\n" + "\n".join(f"- {issue}" for issue in issues)
        ) from exc

    return ConfigInstance(
        model=model,
        provenance=provenance,
        env_prefix=None,
        schema_cls=SkelmergeConfig,
    )


def _file_layers(app_dir: Path) -> Iterator[Layer]:
    """Yield the YAML files found by the usual home and local lookup."""

    for path, label in discover_file_paths(APP_NAME, "yaml", app_dir=app_dir, extra_paths=None):
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(f"{path} must hold a mapping of SKELMERGE_* settings.")
        yield "file", _path_to_source(label, "yaml", path), parsed


def _env_layers(app_dir: Path) -> Iterator[Layer]:
    """Yield one layer per known setting, from .env first and then os.environ."""

    known = SkelmergeConfig.__field_infos__.keys()
    sources: list[tuple[str, Mapping[str, str | None]]] = []
    dotenv_path = app_dir / ".env"
    if dotenv_path.is_file():
        sources.append((".env", dotenv_values(dotenv_path)))
    sources.append(("process", os.environ))

    for origin, values in sources:
        for key in sorted(known):
            value = values.get(key)
            if value is not None:
                yield "env", f"env:{origin}:{key}", {key: value}


def _describe_issue(entry: Mapping[str, Any]) -> str:
    path = entry.get("path")
    if isinstance(path, (list, tuple)):
        path = ".".join(str(part) for part in path if part)
    message = entry.get("message") or entry.get("msg") or "Invalid value"
    described = f"{path}: {message}" if path else str(message)
    source = entry.get("source")
    return f"{described} (from {source})" if source else described


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> SkelmergeConfig:
    """Return the validated schema model for typed access.

    Without any configuration source every option keeps its default.
    """

    return get_config(app_dir=app_dir).model()
