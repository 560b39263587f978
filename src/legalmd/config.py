"""Application configuration: settings schema and legalmd.yaml loader"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

from legalmd.core.models import ResolveOptions


CONFIG_FILE = "legalmd.yaml"


class Settings(BaseModel):
    strict:           bool = Field(default=False, description="Fail on malformed root frontmatter and on error diagnostics")
    missing_mode:     str  = Field(default="keep", pattern="^(keep|empty)$", description="keep or empty for unresolved {{fields}}")
    import_tracing:   bool = Field(default=False, description="Wrap imported content in trace comments")
    validate_types:   bool = Field(default=True,  description="Drop imported values with incompatible types")
    merge_metadata:   bool = Field(default=True,  description="Merge imported frontmatter into the document")
    max_import_depth: int  = Field(default=10, ge=1, description="Max nested import depth")
    field_tracking:   bool = Field(default=True,  description="Build the field tracking report")
    output_dir:       str  = Field(default="dist", description="Directory for resolved documents and sidecars")
    export_format:    str  = Field(default="json", pattern="^(yaml|json)$", description="yaml or json sidecar")

    def resolve_options(self, today: Optional[str] = None) -> ResolveOptions:
        """Per-call pipeline options built from these settings."""
        return ResolveOptions(
            strict=self.strict,
            missing_mode=self.missing_mode,
            import_tracing=self.import_tracing,
            merge_metadata=self.merge_metadata,
            validate_types=self.validate_types,
            max_import_depth=self.max_import_depth,
            enable_field_tracking=self.field_tracking,
            today=today,
        )


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from legalmd.yaml, then LEGALMD_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping")

    for name in Settings.model_fields:
        if val := os.getenv(f"LEGALMD_{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
