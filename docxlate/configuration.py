"""Prepper-backed configuration loader for docxlate."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

from dotenv import dotenv_values
from prepper import (
    ConfigNotFound,
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    model_validator,
)
from prepper import ValidationError as SchemaValidationError
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import ConfigurationError
from .structures import HostedApiConfig, LocalModelConfig, TranslationConfig

APP_NAME = "docxlate"

_BACKEND_SYNONYMS = {
    "local": "local_model",
    "ollama": "local_model",
    "hosted": "hosted_api",
    "api": "hosted_api",
    "deepseek": "hosted_api",
}


class DocxlateConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    TRANSLATION_BACKEND: Literal["local_model", "hosted_api"] = Field(
        default="local_model",
        description="Which chat-completion backend translates the segments.",
    )
    LOCAL_MODEL_ENDPOINT: str = Field(default="http://localhost:11434")
    LOCAL_MODEL_NAME: str | None = Field(default=None)
    HOSTED_API_KEY: str | None = Field(default=None, secret=True)
    HOSTED_API_BASE_URL: str = Field(default="https://api.deepseek.com")
    HOSTED_API_MODEL: str = Field(default="deepseek-chat")
    DOCXLATE_SOURCE_LANGUAGE: str = Field(default="auto")
    DOCXLATE_TARGET_LANGUAGE: str | None = Field(default=None)
    DOCXLATE_SPLIT_SENTENCES: bool = Field(default=False)
    DOCXLATE_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_backend(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("TRANSLATION_BACKEND")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("-", "_")
                normalized = _BACKEND_SYNONYMS.get(normalized, normalized)
                if normalized not in {"local_model", "hosted_api"}:
                    normalized = "local_model"
                data["TRANSLATION_BACKEND"] = normalized
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Merge every configuration layer once and cache the validated result."""

    root = app_dir or Path.cwd()
    recorder = ProvenanceRecorder()
    merged: dict[str, Any] = {}
    try:
        _apply_yaml_layers(merged, root, recorder)
        for label, values in _env_layers(root):
            _apply_env_layer(merged, values, label, recorder)
        if not merged:
            raise ConfigNotFound("nothing to load")
        model = DocxlateConfig.validate(merged, provenance=recorder)
    except ConfigNotFound as exc:
        raise ConfigurationError(
            "No docxlate settings found. Use a docxlate YAML file, a .env file "
            "next to the document, or environment variables."
        ) from exc
    except IoError as exc:
        raise ConfigurationError(f"Configuration files could not be read: {exc}") from exc
    except SchemaError as exc:
        raise ConfigurationError(f"Configuration schema error: {exc}") from exc
    except SchemaValidationError as exc:
        raise ConfigurationError(_describe_issues(exc.to_dict())) from exc

    return ConfigInstance(
        model=model,
        provenance=recorder,
        env_prefix=None,
        schema_cls=DocxlateConfig,
    )


def _apply_yaml_layers(merged: dict[str, Any], root: Path, recorder: ProvenanceRecorder) -> None:
    """Merge discovered YAML files, lowest precedence first."""

    for path, label in discover_file_paths(APP_NAME, "yaml", app_dir=root, extra_paths=None):
        content = _parse_file(path, "yaml")
        if not isinstance(content, Mapping):
            raise IoError(f"{path} must contain a mapping of settings.")
        merge_layer(
            merged,
            content,
            provenance=recorder,
            source=_path_to_source(label, "yaml", path),
            layer="file",
        )


def _env_layers(root: Path) -> list[tuple[str, dict[str, str]]]:
    """The .env file (when present) followed by the process environment."""

    layers: list[tuple[str, dict[str, str]]] = []
    dotenv_path = root / ".env"
    if dotenv_path.exists():
        values = dotenv_values(dotenv_path)
        layers.append((".env", {key: value for key, value in values.items() if value is not None}))
    layers.append(("process", dict(os.environ)))
    return layers


def _apply_env_layer(
    merged: dict[str, Any],
    values: Mapping[str, str],
    label: str,
    recorder: ProvenanceRecorder,
) -> None:
    known = DocxlateConfig.__field_infos__
    for key in sorted(values):
        if key not in known:
            continue
        merge_layer(
            merged,
            {key: values[key]},
            provenance=recorder,
            source=f"env:{label}:{key}",
            layer="env",
        )


def _describe_issues(entries: Sequence[dict[str, Any]]) -> str:
    lines = ["Invalid docxlate settings:"]
    for entry in entries:
        where = entry.get("path") or ""
        if isinstance(where, (list, tuple)):
            where = ".".join(str(part) for part in where if part)
        text = entry.get("message") or entry.get("msg") or "Invalid value"
        line = f"- {where}: {text}" if where else f"- {text}"
        if entry.get("source"):
            line += f" (from {entry['source']})"
        lines.append(line)
    return "\n".join(lines)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> DocxlateConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()


def build_translation_config(
    settings: DocxlateConfig,
    *,
    backend: str | None = None,
    model: str | None = None,
    endpoint: str | None = None,
    api_key: str | None = None,
) -> TranslationConfig:
    """Turn validated settings plus command-line overrides into a backend config."""

    if (backend or settings.TRANSLATION_BACKEND) == "hosted_api":
        return HostedApiConfig(
            api_key=api_key or settings.HOSTED_API_KEY or "",
            base_url=endpoint or settings.HOSTED_API_BASE_URL,
            model=model or settings.HOSTED_API_MODEL,
        )
    return LocalModelConfig(
        endpoint=endpoint or settings.LOCAL_MODEL_ENDPOINT,
        model=model or settings.LOCAL_MODEL_NAME or "",
    )
