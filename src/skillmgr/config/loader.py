"""
Cargador de configuración del skill manager.

Las rutas (raíz de skills del usuario, skills core, logs) se resuelven una
sola vez al arrancar. Capas, de menor a mayor prioridad:

    defaults Pydantic < YAML < variables de entorno < flags de la CLI

Cada capa es un dict parcial; se combinan con deep_merge y el resultado
se valida de una vez con AppConfig.
"""

import os
from pathlib import Path
from typing import Any

import yaml

from .schema import AppConfig

# Variable de entorno -> (sección, campo)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SKILL_FOLDER": ("skills", "skill_folder"),
    "SKILLMGR_CORE_DIR": ("skills", "core_dir"),
    "SKILLMGR_DEFAULT_OWNER": ("skills", "default_owner"),
    "SKILLMGR_LOGS_DIR": ("supervisor", "logs_dir"),
    "SKILLMGR_LOG_LEVEL": ("logging", "level"),
    "SKILLMGR_BUS_PORT": ("bus", "listen_port"),
}

# Argumento de la CLI -> (sección, campo)
CLI_OVERRIDES: dict[str, tuple[str, str]] = {
    "skill_folder": ("skills", "skill_folder"),
    "core_dir": ("skills", "core_dir"),
    "logs_dir": ("supervisor", "logs_dir"),
    "log_level": ("logging", "level"),
    "log_file": ("logging", "file"),
    "verbose": ("logging", "verbose"),
    "bus_port": ("bus", "listen_port"),
}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Combina dos dicts de configuración sin mutar ninguno.

    Las secciones anidadas se combinan clave a clave; en las hojas gana
    override.

    Example:
        >>> deep_merge({"skills": {"skill_folder": "a", "core_dir": "b"}},
        ...            {"skills": {"skill_folder": "c"}})
        {'skills': {'skill_folder': 'c', 'core_dir': 'b'}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _nest(pairs: dict[tuple[str, str], Any]) -> dict[str, Any]:
    nested: dict[str, Any] = {}
    for (section, field), value in pairs.items():
        nested.setdefault(section, {})[field] = value
    return nested


def load_yaml_config(config_path: Path | None) -> dict[str, Any]:
    """Lee el archivo YAML, o devuelve {} si no se indicó ninguno.

    Raises:
        FileNotFoundError: Si config_path no existe.
    """
    if config_path is None:
        return {}

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Archivo de configuración no encontrado: {path}")

    with path.open(encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Overrides desde el entorno (ver ENV_OVERRIDES).

    Las variables vacías se ignoran. El nivel de log se normaliza a
    minúsculas para aceptar SKILLMGR_LOG_LEVEL=DEBUG.
    """
    environ = os.environ if environ is None else environ
    pairs: dict[tuple[str, str], Any] = {}
    for var, target in ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        pairs[target] = value.lower() if target == ("logging", "level") else value
    return _nest(pairs)


def apply_cli_overrides(config_dict: dict[str, Any], cli_args: dict[str, Any]) -> dict[str, Any]:
    """Aplica los flags de la CLI que tengan valor (None, "" y 0 no cuentan)."""
    pairs = {
        target: cli_args[arg]
        for arg, target in CLI_OVERRIDES.items()
        if cli_args.get(arg)
    }
    return deep_merge(config_dict, _nest(pairs))


def load_config(
    config_path: Path | None = None,
    cli_args: dict[str, Any] | None = None,
) -> AppConfig:
    """Construye y valida la configuración efectiva.

    Args:
        config_path: YAML opcional.
        cli_args: Flags de la CLI (claves de CLI_OVERRIDES; el resto se ignora).

    Returns:
        AppConfig validado.

    Raises:
        FileNotFoundError: Si config_path no existe.
        ValidationError: Si el resultado no pasa la validación de Pydantic.
    """
    layers = [
        load_yaml_config(config_path),
        load_env_overrides(),
    ]
    merged: dict[str, Any] = {}
    for layer in layers:
        merged = deep_merge(merged, layer)
    merged = apply_cli_overrides(merged, cli_args or {})
    return AppConfig(**merged)
