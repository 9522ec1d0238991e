# -*- coding: utf-8 -*-
"""
    单温度 热化 → 测量 状态机

`EquilibrationMeasurementCycle` 驱动一个 worker 在固定温度 T 下的全部采样：

    EQUILIBRATING ──(flips_to_skip 个翻转槽后)──▶ MEASURING ──(measurements_per_T 个样本后)──▶ DONE

翻转槽（bounded-attempt flip slot）：
    最多做 ``attempts_per_flip`` 次提议；每次提议随机选一个格点，计算 ΔE 与接受概率 p，
    抽取 u ∈ [0, 1)；若 u < p 则翻转并立即结束本槽，否则继续下一次提议。
    若所有提议均被拒绝，本槽不翻转。

    这不是标准的逐格点 Metropolis sweep（每格点恰好一次提议）。“首次接受即退出”的有界重试
    会改变接受统计；结果表依赖这一语义，不能改写成标准形式。

测量阶段每次先执行 ``flips_per_measurement`` 个翻转槽，再记录
(energy_per_site, order_parameter) 并发出一次进度信号。
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .acceptance import flip_probability
from .lattice import Lattice

__all__ = ["Phase", "Samples", "CycleStats", "EquilibrationMeasurementCycle"]


class Phase(enum.Enum):
    EQUILIBRATING = "equilibrating"
    MEASURING = "measuring"
    DONE = "done"


@dataclass(frozen=True)
class Samples:
    """按时间顺序排列的测量样本。"""
    energies: np.ndarray
    orders: np.ndarray

    def __len__(self) -> int:
        return int(self.energies.size)


@dataclass
class CycleStats:
    slots: int = 0
    proposals: int = 0
    accepted: int = 0

    @property
    def acceptance_rate(self) -> float:
        """被接受的翻转占翻转槽的比例。"""
        return self.accepted / self.slots if self.slots else 0.0


class EquilibrationMeasurementCycle:
    """
    单个温度的采样状态机。

    参数：
      - lattice: worker 独占的晶格（其随机源用于选址）
      - rng: worker 私有的 numpy.random.Generator（用于接受判据的均匀随机数）
      - T, J, K: 温度、耦合常数、热常数
      - flips_to_skip / measurements_per_T / flips_per_measurement / attempts_per_flip: 见模块说明
    """

    def __init__(
        self,
        lattice: Lattice,
        rng: np.random.Generator,
        T: float,
        *,
        J: float,
        K: float,
        flips_to_skip: int,
        measurements_per_T: int,
        flips_per_measurement: int,
        attempts_per_flip: int,
    ):
        self.lattice = lattice
        self.rng = rng
        self.T = float(T)
        self.J = float(J)
        self.K = float(K)
        self.flips_to_skip = int(flips_to_skip)
        self.measurements_per_T = int(measurements_per_T)
        self.flips_per_measurement = int(flips_per_measurement)
        self.attempts_per_flip = int(attempts_per_flip)

        self.phase = Phase.EQUILIBRATING
        self.stats = CycleStats()

    @classmethod
    def from_config(cls, lattice: Lattice, rng: np.random.Generator, T: float, sim) -> "EquilibrationMeasurementCycle":
        """由 SimulationConfig 构造。"""
        return cls(
            lattice, rng, T,
            J=sim.J, K=sim.K,
            flips_to_skip=sim.flips_to_skip,
            measurements_per_T=sim.measurements_per_T,
            flips_per_measurement=sim.flips_per_measurement,
            attempts_per_flip=sim.attempts_per_flip,
        )

    # ------------------------------------------------------------------
    # 翻转槽
    # ------------------------------------------------------------------
    def flip_slot(self) -> bool:
        """执行一个有界重试翻转槽；返回本槽是否发生了翻转。"""
        lattice = self.lattice
        rng = self.rng
        stats = self.stats
        stats.slots += 1
        for _ in range(self.attempts_per_flip):
            stats.proposals += 1
            ix = lattice.random_index()
            p = flip_probability(lattice.energy_delta(ix, self.J), self.T, self.K)
            if rng.random() < p:
                lattice.flip(ix)
                stats.accepted += 1
                return True
        return False

    def _run_slots(self, n: int) -> None:
        for _ in range(n):
            self.flip_slot()

    # ------------------------------------------------------------------
    # 状态推进
    # ------------------------------------------------------------------
    def equilibrate(self) -> None:
        if self.phase is not Phase.EQUILIBRATING:
            raise RuntimeError(f"cannot equilibrate in phase {self.phase.value!r}")
        self._run_slots(self.flips_to_skip)
        self.phase = Phase.MEASURING

    def measure(self, on_measurement: Optional[Callable[[], None]] = None) -> Samples:
        if self.phase is not Phase.MEASURING:
            raise RuntimeError(f"cannot measure in phase {self.phase.value!r}")
        n = self.measurements_per_T
        energies = np.empty(n, dtype=np.float64)
        orders = np.empty(n, dtype=np.float64)
        for k in range(n):
            self._run_slots(self.flips_per_measurement)
            energies[k] = self.lattice.energy_per_site(self.J)
            orders[k] = self.lattice.order_parameter()
            if on_measurement is not None:
                on_measurement()
        self.phase = Phase.DONE
        return Samples(energies=energies, orders=orders)

    def run(self, on_measurement: Optional[Callable[[], None]] = None) -> Samples:
        """完整执行 热化 → 测量，返回全部样本；每记录一个样本调用一次 on_measurement。"""
        self.equilibrate()
        return self.measure(on_measurement)
