# -*- coding: utf-8 -*-
"""
    二维周期性方格 Ising 晶格

本模块实现单个 worker 独占的自旋晶格 `Lattice`：N×N 的 int8 数组，取值仅为 ±1，
上下左右四邻居按周期边界（PBC）相连。

实现功能：
    - 均匀随机初始化（由 worker 私有的 ``numpy.random.Generator`` 驱动）
    - 单点翻转的能量差 ΔE = 2·J·s·Σ邻居（纯函数，不修改状态）
    - 原位翻转（只做取负，保证取值始终在 {+1, -1} 内）
    - 每格点能量（每条键只计一次：右 + 下）与序参量 |<s>|

注意：
    晶格本身不加锁。它与其随机源一起归单个 worker 所有，生命周期与该 worker 相同。
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

__all__ = ["Lattice", "Index"]

Index = Tuple[int, int]


class Lattice:
    """N×N 周期边界 ±1 自旋晶格。"""

    __slots__ = ("_spins", "_size", "_rng")

    def __init__(self, size: int, rng: np.random.Generator):
        size = int(size)
        if size < 1:
            raise ValueError(f"lattice size must be >= 1, got {size}")
        self._size = size
        self._rng = rng
        self._spins = rng.choice(np.array([-1, 1], dtype=np.int8), size=(size, size))

    @classmethod
    def create(cls, size: int, rng: np.random.Generator) -> "Lattice":
        return cls(size, rng)

    @classmethod
    def from_spins(cls, spins, rng: np.random.Generator) -> "Lattice":
        """由给定构型构造晶格（构型被拷贝，需为非空方阵且仅含 ±1）。"""
        arr = np.array(spins, dtype=np.int8, copy=True)
        if arr.ndim != 2 or arr.shape[0] != arr.shape[1] or arr.size == 0:
            raise ValueError(f"spins must be a non-empty square (N,N) array, got shape {arr.shape}")
        if not np.all(np.abs(arr) == 1):
            raise ValueError("spins must only contain +1 / -1")
        obj = cls.__new__(cls)
        obj._size = int(arr.shape[0])
        obj._rng = rng
        obj._spins = np.ascontiguousarray(arr)
        return obj

    # ------------------------------------------------------------------
    # 基本属性
    # ------------------------------------------------------------------
    @property
    def size(self) -> int:
        return self._size

    @property
    def n_sites(self) -> int:
        return self._size * self._size

    @property
    def spins(self) -> np.ndarray:
        """当前构型的只读拷贝。"""
        out = self._spins.copy()
        out.flags.writeable = False
        return out

    def __repr__(self) -> str:
        return f"Lattice(size={self._size}, m={self.magnetization():+.4f})"

    # ------------------------------------------------------------------
    # 随机选址 / 翻转
    # ------------------------------------------------------------------
    def random_index(self) -> Index:
        """在全部 N² 个格点上均匀抽取一个坐标。"""
        k = int(self._rng.integers(self.n_sites))
        return divmod(k, self._size)

    def flip(self, index: Index) -> None:
        i, j = index
        self._spins[i, j] = -self._spins[i, j]

    # ------------------------------------------------------------------
    # 能量 / 观测量
    # ------------------------------------------------------------------
    def energy_delta(self, index: Index, J: float) -> float:
        """翻转 index 处自旋将带来的能量变化 ΔE = 2·J·s·Σneighbors（不修改晶格）。"""
        i, j = index
        L = self._size
        s = self._spins
        neigh = (
            int(s[(i + 1) % L, j]) + int(s[(i - 1) % L, j])
            + int(s[i, (j + 1) % L]) + int(s[i, (j - 1) % L])
        )
        return 2.0 * float(J) * float(s[i, j]) * float(neigh)

    def energy_per_site(self, J: float) -> float:
        """
        E/N = -J · Σ_<ij> s_i s_j / N，每条最近邻键只计一次（右 + 下）。
        使用 int64 累加，避免 int8 溢出。
        """
        a = self._spins.astype(np.int64)
        right = np.roll(a, -1, axis=1)
        down = np.roll(a, -1, axis=0)
        bond_sum = int(np.sum(a * (right + down), dtype=np.int64))
        return -float(J) * float(bond_sum) / float(self.n_sites)

    def magnetization(self) -> float:
        """平均自旋 <s>（带符号）。"""
        return float(np.sum(self._spins, dtype=np.int64)) / float(self.n_sites)

    def order_parameter(self) -> float:
        """序参量 |<s>| ∈ [0, 1]。"""
        return abs(self.magnetization())
