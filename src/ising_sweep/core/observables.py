# -*- coding: utf-8 -*-
"""
    单温度样本 → 热力学观测量

将一个温度下按时间顺序采集的 (E/N, |<s>|) 样本归约为一条 `Record`：

    T  : 温度
    dE : 比热型涨落量  Var(E) / (K·T²)
    I  : 序参量均值    mean(|<s>|)
    X  : 磁化率型涨落量，来源序列可选（见下）

X 的来源序列：
    - 'energy': Var(E)，不带温度因子（默认）
    - 'order' : Var(|<s>|) / (K·T)

所有方差均为总体方差（ddof=0）。单样本序列没有涨落，dE = X = 0。
scale_by_sites=True 时两个涨落量再乘以格点数 N（每格点量 → 广延量涨落的常规换算）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict

import numpy as np

from .cycle import Samples

__all__ = [
    "Record",
    "StatisticsCollector",
    "specific_heat",
    "susceptibility_from_energy",
    "susceptibility_from_order",
    "SUSCEPTIBILITY_STRATEGIES",
]


@dataclass(frozen=True)
class Record:
    T: float
    dE: float
    I: float
    X: float

    def as_dict(self) -> Dict[str, float]:
        return {"T": self.T, "dE": self.dE, "I": self.I, "X": self.X}


def _population_variance(series: Any) -> float:
    x = np.asarray(series, dtype=np.float64).ravel()
    if x.size < 2:
        return 0.0
    return float(np.var(x, ddof=0))


def specific_heat(E_series: Any, T: float, K: float) -> float:
    """Var(E) / (K·T²)。"""
    return _population_variance(E_series) / (float(K) * float(T) * float(T))


def susceptibility_from_energy(samples: Samples, T: float, K: float) -> float:
    return _population_variance(samples.energies)


def susceptibility_from_order(samples: Samples, T: float, K: float) -> float:
    return _population_variance(samples.orders) / (float(K) * float(T))


SUSCEPTIBILITY_STRATEGIES: Dict[str, Callable[[Samples, float, float], float]] = {
    "energy": susceptibility_from_energy,
    "order": susceptibility_from_order,
}


class StatisticsCollector:
    """把一个温度的样本归约为 Record。"""

    def __init__(self, K: float, susceptibility_source: str = "energy",
                 scale_by_sites: bool = False, n_sites: int = 1):
        if susceptibility_source not in SUSCEPTIBILITY_STRATEGIES:
            raise ValueError(f"Unknown susceptibility_source: {susceptibility_source!r}. "
                             f"Known: {list(SUSCEPTIBILITY_STRATEGIES)}")
        self.K = float(K)
        self.susceptibility_source = susceptibility_source
        self._susceptibility = SUSCEPTIBILITY_STRATEGIES[susceptibility_source]
        self.scale = float(n_sites) if scale_by_sites else 1.0

    @classmethod
    def from_config(cls, sim) -> "StatisticsCollector":
        return cls(sim.K, susceptibility_source=sim.susceptibility_source,
                   scale_by_sites=sim.scale_by_sites, n_sites=sim.n_sites)

    def reduce(self, T: float, samples: Samples) -> Record:
        if len(samples) == 0:
            raise ValueError("cannot reduce an empty sample series")
        T = float(T)
        dE = self.scale * specific_heat(samples.energies, T, self.K)
        X = self.scale * self._susceptibility(samples, T, self.K)
        I = float(np.mean(samples.orders))
        return Record(T=T, dE=float(dE), I=I, X=float(X))
