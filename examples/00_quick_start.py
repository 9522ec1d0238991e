# examples/quick_start.py
"""
Quick start: 最简单的一次温度扫描

- 使用内置 quick 预设 (L=16, T ∈ [1.0, 3.5], 步长 0.25)
- 固定主种子，结果可复现
- 打印结果表并写入 results/ 下带时间戳的文件
"""

from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for p in (ROOT, ROOT / "src"):
    s = str(p)
    if s not in sys.path:
        sys.path.insert(0, s)

from ising_sweep.data.records_io import format_table, write_table
from ising_sweep.simulation.progress import TqdmDisplay
from ising_sweep.simulation.sweep import TemperatureSweep
from ising_sweep.utils.config import get_preset_config
from ising_sweep.utils.logger import setup_logger


def main():
    setup_logger("ising_sweep")
    cfg = get_preset_config("quick")
    sim = replace(cfg.simulation, seed=42)

    sweep = TemperatureSweep(sim)
    sweep.display = TqdmDisplay(sweep.total_measurements)
    records = sweep.run()

    print(format_table(records), end="")
    path = write_table(records, ROOT / "results")
    print(f"\n结果已写入: {path}")


if __name__ == "__main__":
    main()
