"""事件串行化：行情与成交可以来自不同的推送通道，但只通过一个队列、
一个消费者交给决策循环，保证 K 线处理与成交处理不会交错修改共享状态。
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Union

from irrbot.common.models.models import Bar, Fill, OrderBookSnapshot
from irrbot.common.utils.logging import setup_logger
from irrbot.strategies.irr import IrrStrategy


@dataclass(frozen=True)
class TickEvent:
    bar: Bar
    book: OrderBookSnapshot | None = None


@dataclass(frozen=True)
class FillEvent:
    fill: Fill


@dataclass(frozen=True)
class DayCloseEvent:
    pass


@dataclass(frozen=True)
class _StopEvent:
    pass


Event = Union[TickEvent, FillEvent, DayCloseEvent, _StopEvent]


class EventDispatcher:
    """单消费者事件队列。

    Notes
    -----
    - `stop()` 只是入队一个停止标记：已在队列里的事件会先处理完，
      正在处理的事件不会被打断；
    - 单个事件处理抛异常只记录日志，不会中断循环。
    """

    def __init__(self, strategy: IrrStrategy, maxsize: int = 0):
        self.strategy = strategy
        self.queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self.logger = setup_logger("dispatcher")
        self.processed = 0
        self.failed = 0
        self.running = False

    async def put_tick(self, bar: Bar, book: OrderBookSnapshot | None = None) -> None:
        await self.queue.put(TickEvent(bar=bar, book=book))

    async def put_fill(self, fill: Fill) -> None:
        await self.queue.put(FillEvent(fill=fill))

    async def put_day_close(self) -> None:
        await self.queue.put(DayCloseEvent())

    def put_tick_nowait(self, bar: Bar, book: OrderBookSnapshot | None = None) -> None:
        self.queue.put_nowait(TickEvent(bar=bar, book=book))

    def put_fill_nowait(self, fill: Fill) -> None:
        self.queue.put_nowait(FillEvent(fill=fill))

    async def stop(self) -> None:
        await self.queue.put(_StopEvent())

    async def run(self) -> dict[str, Any]:
        """消费事件直到收到停止标记，然后调用 `strategy.stop()` 并返回其 summary。"""
        self.running = True
        self.logger.info("Dispatcher started for %s", self.strategy.instance_id())
        try:
            while True:
                event = await self.queue.get()
                try:
                    if isinstance(event, _StopEvent):
                        break
                    self._handle(event)
                    self.processed += 1
                except Exception as exc:
                    self.failed += 1
                    self.logger.error("❌ event %s failed: %s", type(event).__name__, exc, exc_info=True)
                finally:
                    self.queue.task_done()
        finally:
            self.running = False
        summary = self.strategy.stop()
        self.logger.info("Dispatcher stopped: processed=%d failed=%d", self.processed, self.failed)
        return summary

    def _handle(self, event: Event) -> None:
        if isinstance(event, TickEvent):
            self.strategy.on_tick(event.bar, event.book)
        elif isinstance(event, FillEvent):
            self.strategy.on_fill(event.fill)
        elif isinstance(event, DayCloseEvent):
            self.strategy.on_day_close()
