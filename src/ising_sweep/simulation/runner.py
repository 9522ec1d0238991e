# -*- coding: utf-8 -*-
"""
命令行入口：ising-sweep

流程：
    合并配置（预设 < 文件 < 环境变量 < --set）→ 配置日志 → 软性检查
    → TemperatureSweep.run() → 写结果表（带时间戳文件名）→ 可选 HDF5 / 绘图

示例：
    ising-sweep --preset quick --set simulation.seed=42
    python -m ising_sweep.simulation.runner --preset reference --no-bar --log-file out/sweep.log
"""

from __future__ import annotations

import argparse
import logging
import multiprocessing as mp
from dataclasses import asdict, replace
from pathlib import Path
from typing import List, Optional

from ..data.records_io import save_records_hdf5, write_table
from ..utils.config import Config, add_config_arguments, config_from_namespace, validate_config
from ..utils.logger import resolve_level, setup_logger
from .progress import LogDisplay, TqdmDisplay
from .sweep import TemperatureSweep

__all__ = ["build_parser", "run", "main"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ising-sweep",
        description="Parallel Metropolis temperature sweep of the 2D Ising model (spawn-only).",
    )
    add_config_arguments(parser, env_prefix="ISING")
    parser.add_argument("--results-dir", type=str, default=None, help="override output.results_dir")
    parser.add_argument("--hdf5", action="store_true", help="also export records to HDF5")
    parser.add_argument("--plot", action="store_true", help="also save a dE / I / X vs T figure")
    parser.add_argument("--no-bar", action="store_true", help="report progress through the log instead of tqdm")
    parser.add_argument("--log-file", type=str, default=None, help="optional log file")
    parser.add_argument("--log-level", type=str, default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="log level (default: DEBUG if debug, INFO if verbose, else WARNING)")
    return parser


def run(cfg: Config, *, show_bar: bool = True, log: Optional[logging.Logger] = None) -> List[Path]:
    """执行一次完整扫描并落盘，返回写出的文件路径列表（结果表在首位）。"""
    log = log or logging.getLogger("ising_sweep")
    sim = cfg.simulation

    _, issues = validate_config(cfg)
    for msg in issues:
        log.warning("配置检查: %s", msg)

    sweep = TemperatureSweep(sim)
    total = sweep.total_measurements
    display = TqdmDisplay(total) if show_bar else LogDisplay(total, log=log)
    sweep.display = display
    try:
        records = sweep.run()
    finally:
        display.close()

    out = cfg.output
    table_path = write_table(records, out.results_dir, prefix=out.prefix)
    log.info("结果表已写入: %s", table_path)
    written = [table_path]

    if out.save_hdf5:
        h5_path = save_records_hdf5(records, table_path.with_suffix(".h5"), parameters=asdict(sim))
        log.info("HDF5 已写入: %s", h5_path)
        written.append(h5_path)

    if out.plot:
        # 延迟导入：只有需要绘图时才加载 matplotlib
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        from ..visualization.plots import plot_observables_vs_T

        fig = plot_observables_vs_T(records, save_path=table_path.with_suffix(".png"), logger=log)
        plt.close(fig)
        written.append(table_path.with_suffix(".png"))

    return written


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    cfg = config_from_namespace(args)
    out = cfg.output
    if args.results_dir:
        out = replace(out, results_dir=args.results_dir)
    if args.hdf5:
        out = replace(out, save_hdf5=True)
    if args.plot:
        out = replace(out, plot=True)
    cfg = replace(cfg, output=out)

    level = resolve_level(args.log_level, debug=cfg.debug, verbose=cfg.verbose)
    log = setup_logger("ising_sweep", level=level, log_file=args.log_file)

    run(cfg, show_bar=not args.no_bar, log=log)
    return 0


if __name__ == "__main__":
    # Windows/macOS 下被直接执行为脚本时的安全导入主模块保护
    mp.freeze_support()
    main()
