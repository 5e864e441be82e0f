#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Schema generation utilities."""

from __future__ import annotations

import json
from pathlib import Path

import yaml

from .models import Config


def generate_config_schema(project_root: Path) -> Path:
    """Generate ddc.schema.json from the Pydantic model."""
    schema_path = project_root / ".vscode" / "ddc.schema.json"
    schema_path.parent.mkdir(parents=True, exist_ok=True)

    config_schema = Config.model_json_schema()
    config_schema.setdefault("$schema", "https://json-schema.org/draft/2020-12/schema")
    schema_path.write_text(
        json.dumps(config_schema, indent=2, ensure_ascii=True) + "\n",
        encoding="utf-8",
    )

    return schema_path


def default_config_yaml() -> str:
    """Render the default configuration, ignoring the current environment."""
    defaults = Config.model_construct().model_dump(mode="json", exclude_none=True)
    return yaml.safe_dump(defaults, sort_keys=False, allow_unicode=True)
