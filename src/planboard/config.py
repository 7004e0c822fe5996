"""Load optional planboard configuration from a YAML file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_CONFIG_FILE = "planboard.yaml"
ENV_CONFIG = "PLANBOARD_CONFIG"
ENV_LOG_LEVEL = "PLANBOARD_LOG_LEVEL"


class ActionPlanConfig(BaseModel):
    auto_analysis_enabled: bool = True
    analysis_frequency_hours: float = Field(default=6, gt=0)
    notification_channels: list[str] = Field(default_factory=lambda: ["in_app", "email"])
    backup_retention_days: int = 30
    # stand-in for provider latency during run_ai_analysis
    analysis_delay_seconds: float = Field(default=0.0, ge=0)


class NotificationSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notify_new_items: bool = True
    notify_ai_analysis: bool = True
    notify_status_changes: bool = True
    notify_approvals: bool = True
    channels: list[str] = Field(default_factory=lambda: ["in_app"])
    recipients: list[str] = Field(default_factory=list)


class IntegrationSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sync_with_action_plan: bool = True
    auto_create_tasks: bool = True
    connect_related_items: bool = True
    export_formats: list[str] = Field(default_factory=lambda: ["json", "csv"])


class BacklogConfig(BaseModel):
    # unknown keys are errors, including in PATCH bodies
    model_config = ConfigDict(extra="forbid")

    auto_analysis_enabled: bool = True
    analysis_frequency_hours: float = Field(default=2, gt=0)
    auto_move_approved: bool = True
    require_approval_for_execution: bool = False
    max_items_per_column: int = Field(default=50, ge=1)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    integration: IntegrationSettings = Field(default_factory=IntegrationSettings)


class QueueConfig(BaseModel):
    batch_size: int = Field(default=5, ge=1)
    timeout_per_item: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=1)
    analysis_delay_seconds: float = Field(default=0.0, ge=0)


class Settings(BaseModel):
    action_plan: ActionPlanConfig = Field(default_factory=ActionPlanConfig)
    backlog: BacklogConfig = Field(default_factory=BacklogConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    log_level: str = "INFO"
    seed: Optional[int] = None
    seed_sample_data: bool = False


def _load_yaml_with_error(path: Path) -> tuple[dict[str, Any], str | None]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        return {}, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except yaml.YAMLError as exc:
        return {}, f"{path.name}: YAMLError: {exc}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"{path.name}: expected object, got {type(data).__name__}"
    return data, None


def load_settings(path: Optional[Path] = None) -> tuple[Settings, str | None]:
    """Load and validate the configuration file.

    Args:
        path: Config file. Defaults to ``$PLANBOARD_CONFIG`` or ``planboard.yaml``
            in the working directory.

    Returns:
        A tuple of ``(settings, error_message)``. A missing file yields defaults
        and no error; an unreadable or invalid file yields defaults and the error.
    """
    if path is None:
        path = Path(os.environ.get(ENV_CONFIG) or DEFAULT_CONFIG_FILE)
    path = Path(path)
    if not path.exists():
        return _apply_env(Settings()), None
    data, err = _load_yaml_with_error(path)
    if err:
        return _apply_env(Settings()), err
    try:
        settings = Settings.model_validate(data)
    except ValidationError as exc:
        return _apply_env(Settings()), f"{path.name}: {exc.error_count()} validation error(s): {exc}"
    return _apply_env(settings), None


def _apply_env(settings: Settings) -> Settings:
    level = os.environ.get(ENV_LOG_LEVEL)
    if level:
        settings = settings.model_copy(update={"log_level": level.upper()})
    return settings
