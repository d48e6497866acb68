"""
TASKTREE - Workflow Settings
============================
Per-document workflow settings stored next to the task file:

    ~/.todos.json  ->  ~/.todos.workflow.json

    {"enabled": true, "preset": "todo", "custom": null}

`custom` (a full WorkflowConfig) wins over `preset`. With `enabled: false`
the minimal completion-only workflow is used.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ValidationError

from .errors import ConfigInvalid
from .presets import PRESETS, get_preset
from .workflow import StatusDimension, VisibilityRule, WorkflowConfig

logger = logging.getLogger("tasktree.config")

DEFAULT_PRESET = "todo"

# Used when workflow features are switched off
MINIMAL_WORKFLOW = WorkflowConfig(
    dimensions=(StatusDimension(name="completion", values=("pending", "done"), default_value="pending"),),
    visibility={
        "active": (VisibilityRule(context="active", dimension="completion", include=("pending",)),),
        "all": (VisibilityRule(context="all", dimension="completion", include=("pending", "done")),),
    },
)


def settings_path(data_path: Union[str, Path]) -> Path:
    """<dir>/<stem>.workflow.json for a task file <dir>/<stem>.<ext>"""
    data_path = Path(data_path)
    return data_path.with_name(f"{data_path.stem}.workflow.json")


class WorkflowSettings(BaseModel):
    """Contents of the settings file"""
    enabled: bool = True
    preset: str = DEFAULT_PRESET
    custom: Optional[WorkflowConfig] = None

    # ========================================
    # EFFECTIVE CONFIG
    # ========================================

    def effective_config(self) -> WorkflowConfig:
        if not self.enabled:
            return MINIMAL_WORKFLOW
        if self.custom is not None:
            return self.custom
        return get_preset(self.preset)

    def validate_settings(self) -> None:
        """Raise ConfigInvalid when the selected workflow cannot be used"""
        self.effective_config().validate_rules()

    def enable(self, preset: str) -> None:
        if preset not in PRESETS:
            raise ConfigInvalid(f"invalid preset name: {preset}. Valid presets are: {sorted(PRESETS)}")
        self.enabled = True
        self.preset = preset
        self.custom = None

    def disable(self) -> None:
        self.enabled = False

    @property
    def description(self) -> str:
        if not self.enabled:
            return "disabled (completion only)"
        if self.custom is not None:
            return "custom"
        return self.preset

    # ========================================
    # PERSISTENCE
    # ========================================

    @classmethod
    def load(cls, path: Union[str, Path]) -> "WorkflowSettings":
        """Settings from path; defaults when the file does not exist"""
        path = Path(path)
        if not path.exists():
            return cls()

        try:
            settings = cls.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ConfigInvalid(f"cannot parse {path}: {e}") from e

        config = settings.effective_config()
        for warning in config.lint():
            logger.warning(f"⚠️ {path}: {warning}")
        return settings

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding="utf-8") as f:
            json.dump(self.model_dump(mode='json', by_alias=True, exclude_none=True), f, indent=2)
        logger.info(f"✅ Saved workflow settings: {path} ({self.description})")


def load_workflow(data_path: Union[str, Path]) -> WorkflowConfig:
    """Effective, validated WorkflowConfig for a task file"""
    settings = WorkflowSettings.load(settings_path(data_path))
    settings.validate_settings()
    return settings.effective_config()
