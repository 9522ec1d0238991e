# -*- coding: utf-8 -*-
"""
扫描结果（Record 序列）的落盘与读取

实现功能：
    - 定宽文本表：表头 T / dE / I / X 右对齐，宽度 5/30/15/20；
      数据行小数位 2/5/5/10；文件以换行结尾
    - 结果文件名带 RFC 3339（秒级，UTC）时间戳：results-parallel-2026-10-19T12:00:00Z.txt
    - 原子写入（临时文件 + os.replace），失败直接抛出，不吞异常
    - HDF5 导出/读取：records 组下 T/dE/I/X 四个数据集，模拟参数写入 attrs
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import h5py
import numpy as np

from ..core.observables import Record

__all__ = [
    "format_table",
    "rfc3339_seconds",
    "results_path",
    "write_table",
    "save_records_hdf5",
    "load_records_hdf5",
]

_HEADER_WIDTHS = (5, 30, 15, 20)
_ROW_PRECISION = (2, 5, 5, 10)


# -----------------------------------------------------------------------------
# 文本表
# -----------------------------------------------------------------------------
def format_table(records: Iterable[Record]) -> str:
    """按固定列宽渲染结果表（含表头，以换行结尾）。"""
    wT, wdE, wI, wX = _HEADER_WIDTHS
    pT, pdE, pI, pX = _ROW_PRECISION
    lines = [f"{'T':>{wT}}{'dE':>{wdE}}{'I':>{wI}}{'X':>{wX}}"]
    for r in records:
        lines.append(
            f"{r.T:>{wT}.{pT}f}{r.dE:>{wdE}.{pdE}f}{r.I:>{wI}.{pI}f}{r.X:>{wX}.{pX}f}"
        )
    return "\n".join(lines) + "\n"


def rfc3339_seconds(now: Optional[datetime] = None) -> str:
    """RFC 3339 秒级 UTC 时间戳，例如 2026-10-19T12:00:00Z。"""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def results_path(results_dir: Union[str, Path], prefix: str = "results-parallel",
                 suffix: str = ".txt", now: Optional[datetime] = None) -> Path:
    return Path(results_dir) / f"{prefix}-{rfc3339_seconds(now)}{suffix}"


def _atomic_write_text(path: Union[str, Path], text: str, encoding: str = "utf-8") -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", encoding=encoding, dir=str(path.parent),
                                     delete=False, newline="\n") as tf:
        tmpname = tf.name
        tf.write(text)
        tf.flush()
        os.fsync(tf.fileno())
    os.replace(tmpname, str(path))


def write_table(records: Sequence[Record], results_dir: Union[str, Path] = "results",
                prefix: str = "results-parallel", now: Optional[datetime] = None) -> Path:
    """把结果表写入 results_dir 下带时间戳的文件，返回文件路径。"""
    path = results_path(results_dir, prefix=prefix, now=now)
    _atomic_write_text(path, format_table(records))
    return path


# -----------------------------------------------------------------------------
# HDF5
# -----------------------------------------------------------------------------
def _records_to_columns(records: Sequence[Record]) -> Dict[str, np.ndarray]:
    return {
        key: np.asarray([getattr(r, key) for r in records], dtype=np.float64)
        for key in ("T", "dE", "I", "X")
    }


def save_records_hdf5(records: Sequence[Record], filepath: Union[str, Path],
                      parameters: Optional[Dict[str, Any]] = None,
                      compression: Optional[str] = "gzip",
                      compression_opts: Optional[int] = 4) -> Path:
    """
    保存到 HDF5：/records/{T,dE,I,X}；parameters（如 SimulationConfig 的 asdict）写入
    /records 的 attrs，非标量值以 JSON 字符串保存。
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    cols = _records_to_columns(records)
    if compression == "lzf":
        compression_opts = None
    with h5py.File(filepath, "w") as f:
        grp = f.create_group("records")
        for key, arr in cols.items():
            if arr.size:
                grp.create_dataset(key, data=arr, compression=compression, compression_opts=compression_opts)
            else:
                grp.create_dataset(key, data=arr)
        grp.attrs["n_records"] = int(len(records))
        grp.attrs["created_at"] = rfc3339_seconds()
        for k, v in (parameters or {}).items():
            if v is None:
                grp.attrs[k] = "null"
            elif isinstance(v, (bool, int, float, str, np.generic)):
                grp.attrs[k] = v
            else:
                grp.attrs[k] = json.dumps(v, ensure_ascii=False)
    return filepath


def load_records_hdf5(filepath: Union[str, Path]) -> Tuple[List[Record], Dict[str, Any]]:
    """读取 save_records_hdf5 写出的文件，返回 (records, attrs)。"""
    with h5py.File(filepath, "r") as f:
        if "records" not in f:
            raise KeyError(f"{filepath}: missing 'records' group")
        grp = f["records"]
        cols = {key: np.asarray(grp[key][...], dtype=np.float64) for key in ("T", "dE", "I", "X")}
        attrs: Dict[str, Any] = {}
        for k, v in grp.attrs.items():
            if isinstance(v, bytes):
                v = v.decode("utf-8")
            if isinstance(v, np.generic):
                v = v.item()
            if v == "null":
                v = None
            attrs[k] = v
    records = [
        Record(T=float(t), dE=float(de), I=float(i), X=float(x))
        for t, de, i, x in zip(cols["T"], cols["dE"], cols["I"], cols["X"])
    ]
    return records, attrs
