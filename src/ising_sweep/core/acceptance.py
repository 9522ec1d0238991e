# -*- coding: utf-8 -*-
"""
Metropolis 接受判据

    p(ΔE, T, K) = min(1, exp(-ΔE / (K·T)))

ΔE ≤ 0 时直接返回 1.0（不计算 exp，避免大负指数上溢）；ΔE > 0 时随 ΔE 严格递减。
T = 0 或 K = 0 时退化（除零），由配置校验保证 T > 0、K > 0。
"""

from __future__ import annotations

import math

__all__ = ["flip_probability"]


def flip_probability(energy_delta: float, T: float, K: float) -> float:
    if energy_delta <= 0.0:
        return 1.0
    return math.exp(-energy_delta / (K * T))
