"""统一异常类型。"""

from __future__ import annotations


class IrrError(Exception):
    """irrbot 所有异常的基类。"""


class ConfigurationError(IrrError, ValueError):
    """配置缺失或非法（启动阶段致命）。"""


class OutOfRangeError(IrrError, IndexError):
    """序列索引超出已保留的历史长度。"""


class InvalidQuantityError(IrrError, ValueError):
    """拆单输入非法：delta 为 0 或分片数 <= 0。"""


class ExternalIOError(IrrError):
    """下单/撤单/报告写入等外部 I/O 失败。"""
