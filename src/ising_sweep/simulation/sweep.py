# -*- coding: utf-8 -*-
"""
    温度扫描驱动器（每个温度一个独立任务，数据并行）

实现功能：
    - TemperatureSequence：由 (start, stop, step) 生成的有序、有限、确定的温度序列
    - 从主种子派生每个温度的子种子（SeedSequence.spawn），每个 worker 独占晶格与随机源
    - 进程池强制使用 ``multiprocessing.get_context("spawn")``；池大小为 1 时在当前进程串行执行
    - 进度信号经 ProgressAggregator 汇聚；返回结果前必须 join 消费者并检查其结果
    - 结果按 T 升序排序；NaN 等无法比较的温度按“小于”处理

主要入口:
- `TemperatureSweep.run`: 执行完整扫描，返回按 T 升序排列的 Record 列表。
- `run_temperature`: 单个温度的完整 热化 → 测量 → 归约。
"""

from __future__ import annotations

import logging
import math
import os
import queue
import time
from collections.abc import Sequence
from functools import cmp_to_key
from multiprocessing import get_context
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from numpy.random import Generator, Philox, SeedSequence

from ..core.cycle import EquilibrationMeasurementCycle
from ..core.lattice import Lattice
from ..core.observables import Record, StatisticsCollector
from ..utils.config import SimulationConfig
from .progress import ProgressAggregator, ProgressSender

logger = logging.getLogger(__name__)

__all__ = [
    "TemperatureSequence",
    "TemperatureSweep",
    "run_temperature",
    "spawn_temperature_seeds",
    "sort_records",
]

# 步数计算的相对容差：(4.0 - 0.2) / 0.1 = 37.999999999999996 也应得到 39 个点
_COUNT_TOL = 1e-9

SeedLike = Union[int, SeedSequence]


# -----------------------------------------------------------------------------
# 温度序列
# -----------------------------------------------------------------------------
class TemperatureSequence(Sequence):
    """
    升序温度序列：第 k 个点为 start + k·step（不累加，避免舍入漂移），
    点数为 floor((stop - start) / step) + 1（带浮点容差），最后一点不超过 stop。
    """

    def __init__(self, start: float, stop: float, step: float):
        start, stop, step = float(start), float(stop), float(step)
        if not (math.isfinite(start) and math.isfinite(stop) and math.isfinite(step)):
            raise ValueError("start/stop/step must be finite")
        if step <= 0.0:
            raise ValueError(f"step must be > 0 (got {step})")
        if stop < start:
            raise ValueError(f"stop must be >= start (got {stop} < {start})")
        self.start = start
        self.stop = stop
        self.step = step
        ratio = (stop - start) / step
        self._n = int(math.floor(ratio + _COUNT_TOL * max(1.0, ratio))) + 1

    @classmethod
    def from_config(cls, sim: SimulationConfig) -> "TemperatureSequence":
        return cls(sim.T_min, sim.T_max, sim.T_step)

    def __len__(self) -> int:
        return self._n

    def __getitem__(self, k):
        if isinstance(k, slice):
            return [self[i] for i in range(*k.indices(self._n))]
        if k < 0:
            k += self._n
        if not 0 <= k < self._n:
            raise IndexError("temperature index out of range")
        return min(self.start + k * self.step, self.stop)

    def __repr__(self) -> str:
        return f"TemperatureSequence(start={self.start}, stop={self.stop}, step={self.step}, n={self._n})"


# -----------------------------------------------------------------------------
# 种子与排序
# -----------------------------------------------------------------------------
def spawn_temperature_seeds(master_seed: Optional[int], n: int) -> List[SeedSequence]:
    """
    为 n 个温度派生互不重叠的子种子。
    master_seed 为 None 时使用系统熵（不可复现）；给定时完全确定。
    """
    ss = SeedSequence(None if master_seed is None else int(master_seed))
    return ss.spawn(int(n))


def _make_generator(seed: SeedLike) -> Generator:
    return Generator(Philox(seed))


def _compare_temperature(a: Record, b: Record) -> int:
    if a.T < b.T:
        return -1
    if a.T > b.T:
        return 1
    if a.T == b.T:
        return 0
    # 无法比较（NaN）：按“小于”处理
    return -1


def sort_records(records: Iterable[Record]) -> List[Record]:
    """按 T 升序排序；无法比较的温度对视为 a < b。"""
    return sorted(records, key=cmp_to_key(_compare_temperature))


# -----------------------------------------------------------------------------
# Worker：单个温度（顶层函数，spawn 友好）
# -----------------------------------------------------------------------------
def run_temperature(
    T: float,
    sim: SimulationConfig,
    seed: SeedLike,
    on_measurement: Optional[Callable[[], None]] = None,
) -> Record:
    """
    在温度 T 下独立完成 热化 → 测量 → 归约。
    晶格与随机源均由本函数创建并独占，给定相同 seed 结果逐位一致。
    """
    rng = _make_generator(seed)
    lattice = Lattice(sim.lattice_size, rng)
    cycle = EquilibrationMeasurementCycle.from_config(lattice, rng, T, sim)
    t0 = time.time()
    samples = cycle.run(on_measurement)
    record = StatisticsCollector.from_config(sim).reduce(T, samples)
    logger.debug(
        "[pid=%d] T=%.4f done in %.2fs | slots=%d proposals=%d accepted=%d (rate=%.3f)",
        os.getpid(), T, time.time() - t0,
        cycle.stats.slots, cycle.stats.proposals, cycle.stats.accepted, cycle.stats.acceptance_rate,
    )
    return record


def _run_task(task: Tuple[float, SimulationConfig, SeedSequence, ProgressSender]) -> Record:
    T, sim, seed, sender = task
    return run_temperature(T, sim, seed, on_measurement=sender)


# -----------------------------------------------------------------------------
# 驱动器
# -----------------------------------------------------------------------------
class TemperatureSweep:
    """
    温度扫描驱动器。

    参数：
      - config: SimulationConfig（只读）
      - display: 进度显示端（实现 update(n) / finish()），None 则不显示
    """

    def __init__(self, config: SimulationConfig, display: Optional[Any] = None):
        self.config = config
        self.display = display
        self.temperatures = TemperatureSequence.from_config(config)

    @property
    def total_measurements(self) -> int:
        return self.config.measurements_per_T * len(self.temperatures)

    def pool_size(self) -> int:
        n = len(self.temperatures)
        if self.config.n_processes is not None:
            return max(1, min(n, int(self.config.n_processes)))
        return max(1, min(n, os.cpu_count() or 1))

    def _tasks(self, sender: ProgressSender) -> List[Tuple[float, SimulationConfig, SeedSequence, ProgressSender]]:
        seeds = spawn_temperature_seeds(self.config.seed, len(self.temperatures))
        return [(float(T), self.config, seeds[k], sender) for k, T in enumerate(self.temperatures)]

    def run(self) -> List[Record]:
        sim = self.config
        n_T = len(self.temperatures)
        procs = self.pool_size()
        total = self.total_measurements
        logger.info(
            "温度扫描开始: %d 个温度点 [%.3f, %.3f], L=%d, 测量总数=%d, 进程数=%d",
            n_T, self.temperatures[0], self.temperatures[-1], sim.lattice_size, total, procs,
        )
        t0 = time.time()

        if procs == 1:
            records, received = self._run_serial(total)
        else:
            records, received = self._run_pool(total, procs)

        if len(records) != n_T:
            raise RuntimeError(f"expected {n_T} records, got {len(records)}")
        if received != total:
            raise RuntimeError(f"expected {total} progress signals, received {received}")

        logger.info("温度扫描完成: %d 条记录, 耗时 %.2fs", len(records), time.time() - t0)
        return sort_records(records)

    def _run_serial(self, total: int) -> Tuple[List[Record], int]:
        with ProgressAggregator(total, channel=queue.Queue(), display=self.display) as agg:
            records = [_run_task(task) for task in self._tasks(agg.sender())]
            received = agg.join()
        return records, received

    def _run_pool(self, total: int, procs: int) -> Tuple[List[Record], int]:
        ctx = get_context("spawn")
        records: List[Record] = []
        with ctx.Manager() as manager:
            with ProgressAggregator(total, channel=manager.Queue(), display=self.display) as agg:
                tasks = self._tasks(agg.sender())
                with ctx.Pool(processes=procs) as pool:
                    for rec in pool.imap_unordered(_run_task, tasks):
                        records.append(rec)
                        logger.debug("收到结果 T=%.4f (%d/%d)", rec.T, len(records), len(tasks))
                # 所有 worker 已结束；等待剩余进度信号被消费完
                received = agg.join()
        return records, received
