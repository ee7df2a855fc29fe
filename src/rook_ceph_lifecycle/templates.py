"""Render Kubernetes manifests from the Jinja2 templates shipped with the package."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape

from .errors import SerializationError

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

NGINX_CONFIG_TEMPLATE = "nginx-config.yaml.j2"
NGINX_DEPLOYMENT_TEMPLATE = "nginx-deploy.yaml.j2"


class ManifestRenderer:
    """Turn a named template and a context into a manifest mapping."""

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=select_autoescape(enabled_extensions=()),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def render_text(self, name: str, context: Mapping[str, Any]) -> str:
        try:
            return self._env.get_template(name).render(**context)
        except TemplateError as exc:
            raise SerializationError(f"failed to render template {name!r}: {exc}") from exc

    def render(self, name: str, context: Mapping[str, Any]) -> Dict[str, Any]:
        text = self.render_text(name, context)
        try:
            manifest = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SerializationError(f"failed to parse template {name!r}: {exc}") from exc
        if not isinstance(manifest, dict):
            raise SerializationError(f"template {name!r} did not render to a mapping")
        return manifest
