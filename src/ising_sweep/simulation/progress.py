# -*- coding: utf-8 -*-
"""
    多生产者 / 单消费者 进度汇聚

各 worker 每完成一次测量向通道 ``put`` 一个信号（只发送，不等待回执）；
唯一的消费者线程逐个接收信号、推进计数器并刷新显示，收满预期总数后发出完成信号。

实现要点：
    - 计数器只由消费者线程修改，无需加锁
    - 消费者通过单线程 ThreadPoolExecutor 运行，其异常在 join() 时原样抛出
    - stop() 发送停止哨兵；未收满即被停止的消费者在 join() 时抛出 ProgressAborted
    - 串行执行用 queue.Queue；跨进程用 multiprocessing.Manager().Queue()（可被 spawn 子进程 pickle）

显示端只需实现 ``update(n)`` / ``finish()``：
    - TqdmDisplay: 终端进度条（"Running..." → "Finished!"）
    - LogDisplay : 基于 ProgressLogger 的日志进度，适合无终端环境
"""

from __future__ import annotations

import logging
import queue
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

from tqdm import tqdm

from ..utils.logger import ProgressLogger

logger = logging.getLogger(__name__)

__all__ = [
    "ProgressAborted",
    "ProgressAggregator",
    "ProgressSender",
    "TqdmDisplay",
    "LogDisplay",
    "NullDisplay",
]

# 停止哨兵：需可经 Manager 代理 pickle，因此用 None 而非 object()
_STOP = None
_TICK = 1


class ProgressAborted(RuntimeError):
    """消费者在收满预期信号前被停止。"""


# -----------------------------------------------------------------------------
# 显示端：update(n) / finish() / close()；close() 可重复调用，出错路径也会调用
# -----------------------------------------------------------------------------
class NullDisplay:
    def update(self, n: int = 1) -> None:
        pass

    def finish(self) -> None:
        pass

    def close(self) -> None:
        pass


class TqdmDisplay:
    """tqdm 进度条；运行时描述为 "Running..."，完成后改为 "Finished!"。"""

    def __init__(self, total: int, ncols: int = 80, **tqdm_kwargs: Any):
        self.bar = tqdm(total=int(total), ncols=ncols, desc="Running...", unit="meas", **tqdm_kwargs)

    def update(self, n: int = 1) -> None:
        self.bar.update(n)

    def finish(self) -> None:
        self.bar.set_description("Finished!")
        self.bar.close()

    def close(self) -> None:
        self.bar.close()


class LogDisplay(ProgressLogger):
    """日志进度（无终端环境）。"""

    def __init__(self, total: int, log: Optional[logging.Logger] = None,
                 log_every_n: Optional[int] = None, log_every_seconds: Optional[float] = 30.0):
        super().__init__(total, logger=log, log_every_n=log_every_n, log_every_seconds=log_every_seconds)

    def close(self) -> None:
        pass


# -----------------------------------------------------------------------------
# 生产者端
# -----------------------------------------------------------------------------
class ProgressSender:
    """worker 侧的发送句柄：可调用，每调用一次发送一个信号。"""

    __slots__ = ("channel",)

    def __init__(self, channel: Any):
        self.channel = channel

    def __call__(self) -> None:
        self.channel.put(_TICK)


# -----------------------------------------------------------------------------
# 消费者端
# -----------------------------------------------------------------------------
class ProgressAggregator:
    """
    单消费者进度汇聚器。

    用法：
        agg = ProgressAggregator(total, channel=queue.Queue(), display=TqdmDisplay(total))
        agg.start()
        ... workers call agg.sender() ...
        received = agg.join()
    """

    def __init__(self, total: int, channel: Optional[Any] = None, display: Optional[Any] = None):
        self.total = int(total)
        if self.total < 0:
            raise ValueError("total must be non-negative")
        self.channel = channel if channel is not None else queue.Queue()
        self.display = display if display is not None else NullDisplay()
        self.count = 0
        self.finished = False
        self._executor: Optional[ThreadPoolExecutor] = None
        self._future: Optional[Future] = None

    def sender(self) -> ProgressSender:
        return ProgressSender(self.channel)

    def start(self) -> "ProgressAggregator":
        if self._future is not None:
            raise RuntimeError("progress consumer already started")
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="progress")
        self._future = self._executor.submit(self._consume)
        return self

    def _consume(self) -> int:
        while self.count < self.total:
            msg = self.channel.get()
            if msg is _STOP:
                raise ProgressAborted(f"progress stopped after {self.count}/{self.total} signals")
            self.count += 1
            self.display.update(1)
        self.finished = True
        self.display.finish()
        return self.count

    def stop(self) -> None:
        """请求消费者提前结束（用于 worker 失败时解除阻塞）。"""
        self.channel.put(_STOP)

    def join(self) -> int:
        """等待消费者结束并返回收到的信号数；消费者的异常在此抛出。"""
        if self._future is None or self._executor is None:
            raise RuntimeError("progress consumer was never started")
        try:
            return self._future.result()
        finally:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "ProgressAggregator":
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None and self._future is not None and not self._future.done():
            self.stop()
            try:
                self.join()
            except ProgressAborted:
                logger.debug("progress consumer stopped after failure: %d/%d", self.count, self.total)
        return False
