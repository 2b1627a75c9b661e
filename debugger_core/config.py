"""Evaluator configuration with YAML support."""

from __future__ import annotations

from pathlib import Path

import yaml

from debugger_core.schemas import EvaluatorConfig


def load_config(yaml_path: str | Path) -> EvaluatorConfig:
    """Load evaluator configuration from YAML file.

    Args:
        yaml_path: Path to YAML configuration file

    Returns:
        EvaluatorConfig instance

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValueError: If YAML is invalid or has invalid fields
    """
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    with open(yaml_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return EvaluatorConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML file: {yaml_path}")

    try:
        return EvaluatorConfig.from_dict(data)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {yaml_path}: {e}") from e


def save_config(config: EvaluatorConfig, yaml_path: str | Path) -> None:
    """Save evaluator configuration to YAML file.

    Args:
        config: EvaluatorConfig to save
        yaml_path: Path where to save YAML file
    """
    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)


def load_context(yaml_path: str | Path) -> dict[str, object]:
    """Load a mapping of variable names to values used as an evaluation context."""
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Context file not found: {yaml_path}")

    with open(yaml_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Context file must contain a mapping: {yaml_path}")
    return {str(key): value for key, value in data.items()}
