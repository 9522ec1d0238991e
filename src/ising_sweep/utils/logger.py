# -*- coding: utf-8 -*-
"""
日志工具

实现功能：
    - setup_logger：控制台（stderr，真实终端下按级别着色）+ 可选纯文本日志文件
    - resolve_level：由 --log-level / debug / verbose 推出日志级别
    - ProgressLogger：把测量进度按步数或时间间隔写进日志（无终端时替代进度条）

进度条与结果表走 stdout/文件，日志统一走 stderr，两者互不干扰。
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Optional

__all__ = ['setup_logger', 'get_logger', 'resolve_level', 'ProgressLogger', 'ColoredFormatter']

_DATEFMT = '%Y-%m-%d %H:%M:%S'
_ANSI_RESET = '\033[0m'
_LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',
    logging.INFO: '\033[32m',
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
    logging.CRITICAL: '\033[35m',
}


class ColoredFormatter(logging.Formatter):
    """只给级别名着色；着色结果放在 record 的副本上，不影响其它 handler。"""

    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)
        shaded = logging.makeLogRecord(record.__dict__)
        shaded.levelname = f"{color}{record.levelname:<8}{_ANSI_RESET}"
        return super().format(shaded)


def _formatter(*, color: bool, with_name: bool, utc: bool) -> logging.Formatter:
    fields = ['%(asctime)s', '%(levelname)s' if color else '%(levelname)-8s']
    if with_name:
        fields.append('%(name)s')
    fields.append('%(message)s')
    cls = ColoredFormatter if color else logging.Formatter
    fmt = cls(' | '.join(fields), datefmt=_DATEFMT)
    if utc:
        fmt.converter = time.gmtime  # type: ignore[assignment]
    return fmt


def setup_logger(
    name: str = 'ising_sweep',
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    use_color: bool = True,
    utc: bool = False,
) -> logging.Logger:
    """
    配置并返回 logger。重复调用会关闭并替换同名 logger 已有的 handlers。

    文件 handler 接收所有级别（由 logger 自身的 level 决定输出），并记录模块名。
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    color = bool(use_color and getattr(sys.stderr, 'isatty', lambda: False)())
    console.setFormatter(_formatter(color=color, with_name=False, utc=utc))
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path), mode='a', encoding='utf-8')
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(_formatter(color=False, with_name=True, utc=utc))
        logger.addHandler(fh)
    return logger


def get_logger(name: str = 'ising_sweep') -> logging.Logger:
    return logging.getLogger(name)


def resolve_level(level_name: Optional[str] = None, *, debug: bool = False, verbose: bool = True) -> int:
    """显式级别优先；否则 debug → DEBUG，verbose → INFO，安静模式 → WARNING。"""
    if level_name:
        level = logging.getLevelName(str(level_name).upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level_name!r}")
        return level
    if debug:
        return logging.DEBUG
    return logging.INFO if verbose else logging.WARNING


class ProgressLogger:
    """
    测量进度写入日志。

    每累计 ``log_every_n`` 个信号，或距上一行超过 ``log_every_seconds`` 秒，输出一行
    "Running... current/total"；finish() 输出 "Finished!" 与总耗时、吞吐。
    计数被钳制在 total 以内，保证单调且不超出。
    """

    def __init__(self, total: int, logger: Optional[logging.Logger] = None,
                 log_every_n: Optional[int] = None,
                 log_every_seconds: Optional[float] = 30.0,
                 unit: str = 'meas'):
        self.total = max(0, int(total))
        self.logger = logger or get_logger()
        self.log_every_n = max(1, int(log_every_n) if log_every_n is not None else self.total // 20)
        self.log_every_seconds = log_every_seconds
        self.unit = unit
        self.state = 'Running...'
        self.current = 0
        self._t0 = time.monotonic()
        self._last_emit = self._t0

    @property
    def elapsed(self) -> float:
        return max(1e-9, time.monotonic() - self._t0)

    def update(self, n: int = 1) -> None:
        before = self.current
        self.current = min(self.total, self.current + int(n))
        now = time.monotonic()
        crossed = self.current // self.log_every_n > before // self.log_every_n
        overdue = self.log_every_seconds is not None and now - self._last_emit >= self.log_every_seconds
        if crossed or overdue:
            self._last_emit = now
            rate = self.current / self.elapsed
            eta = (self.total - self.current) / rate if rate > 0 else float('inf')
            self.logger.info("%s %d/%d (%.1f%%) | %.1f %s/s | ETA %.0fs",
                             self.state, self.current, self.total,
                             100.0 * self.current / max(1, self.total), rate, self.unit, eta)

    def finish(self) -> None:
        self.state = 'Finished!'
        self.logger.info("%s %d/%d %s in %.2fs (%.1f %s/s)",
                         self.state, self.current, self.total, self.unit,
                         self.elapsed, self.current / self.elapsed, self.unit)
