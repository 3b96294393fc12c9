"""irrbot：基于 alpha 排名的库存再平衡策略核心。

分层：
- common：配置、数据模型、日志、精度工具；
- analysis：滚动序列与累计收益报告；
- strategies：alpha 因子、仓位、风控与决策循环；
- execution：拆单计划与回测撮合；
- core：事件串行化与回测驱动。
"""

__version__ = "0.3.0"
