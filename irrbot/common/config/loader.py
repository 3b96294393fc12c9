"""配置加载。

YAML 配置 + `${VAR}` 占位符；占位符的值可以来自配置目录或工作目录下的 .env/.env.local。
YAML 顶层可以直接是策略字段，也可以包在 `strategy:` 块内。
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from irrbot.common.config.schema import IrrConfig
from irrbot.common.errors import ConfigurationError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")
ENV_FILE_NAMES = (".env", ".env.local")


def read_env_file(env_path: Path) -> dict[str, str]:
    """解析 KEY=VALUE 行（允许 `export ` 前缀与成对引号）；文件不存在时返回空 dict。"""
    if not env_path.is_file():
        return {}
    values: dict[str, str] = {}
    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        values[key] = value
    return values


def apply_env_files(cfg_path: Path) -> dict[str, str]:
    """依次读取配置目录与当前工作目录下的 .env、.env.local。

    后读的文件覆盖先读的；已存在的进程环境变量始终优先，不会被覆盖。
    返回实际写入 os.environ 的键值。
    """
    merged: dict[str, str] = {}
    seen: set[Path] = set()
    for directory in (cfg_path.resolve().parent, Path.cwd()):
        for name in ENV_FILE_NAMES:
            env_path = directory / name
            if env_path in seen:
                continue
            seen.add(env_path)
            merged.update(read_env_file(env_path))

    applied = {k: v for k, v in merged.items() if k not in os.environ}
    os.environ.update(applied)
    return applied


def expand_env(value: Any) -> Any:
    """递归展开 `${VAR}`；变量缺失时报错，避免静默替换为空。"""
    if isinstance(value, str):

        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            if var_name not in os.environ:
                raise ConfigurationError(f"Missing environment variable: {var_name}")
            return os.environ[var_name]

        return _ENV_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    return value


def build_config(raw: dict[str, Any]) -> IrrConfig:
    """把 raw dict 校验为 `IrrConfig`；校验失败统一转为 ConfigurationError。"""
    if not isinstance(raw, dict):
        raise ConfigurationError("Config root must be a dict")
    data = raw.get("strategy", raw)
    if not isinstance(data, dict):
        raise ConfigurationError("config.strategy must be a dict")
    try:
        return IrrConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config: {exc}") from exc


def load_config(path: str | Path, load_env: bool = True) -> IrrConfig:
    """从 YAML 读取并解析配置。

    Parameters
    ----------
    path:
        配置文件路径。
    load_env:
        是否自动加载 .env/.env.local。

    Raises
    ------
    ConfigurationError
        文件不存在、YAML 非法、缺少环境变量或字段校验失败。
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise ConfigurationError(f"Config file not found: {cfg_path}")

    if load_env:
        apply_env_files(cfg_path)

    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            raw_cfg: dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {cfg_path}: {exc}") from exc

    return build_config(expand_env(raw_cfg))
