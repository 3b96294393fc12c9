"""
irrbot 日志。

所有 logger 都挂在 `irrbot` 根 logger 之下（`irrbot.risk`、`irrbot.strategy.irr:BTCUSDT` ...），
只有根 logger 持有 handler，子 logger 通过 propagate 输出，避免重复打印。
"""

from __future__ import annotations

import logging

ROOT_LOGGER = "irrbot"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def resolve_level(level: int | str | None) -> int | None:
    """把 "info"/"DEBUG"/20 之类的配置值转成 logging 级别；None 表示沿用父级。"""
    if level is None or isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    return value


def _root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(ch)
        root.setLevel(logging.INFO)
        root.propagate = False
    return root


def setup_logger(name: str = ROOT_LOGGER, level: int | str | None = None) -> logging.Logger:
    """
    获取 `irrbot` 命名空间下的 logger。

    Parameters
    ----------
    name:
        子名称，例如 "risk" -> `irrbot.risk`；已带 `irrbot` 前缀的名称原样使用。
    level:
        日志级别（int 或级别名）；None 时继承根 logger（默认 INFO）。

    Returns
    -------
    logging.Logger
    """
    root = _root()
    if name == ROOT_LOGGER:
        logger = root
    elif name.startswith(ROOT_LOGGER + "."):
        logger = logging.getLogger(name)
    else:
        logger = logging.getLogger(f"{ROOT_LOGGER}.{name}")

    resolved = resolve_level(level)
    if resolved is not None:
        logger.setLevel(resolved)
    return logger
