# -*- coding: utf-8 -*-
"""
温度扫描配置管理（预设、分层覆盖、构造期硬约束）

实现功能：
    - SimulationConfig：不可变参数对象，所有模拟参数必填，构造时即做合法性检查
    - OutputConfig：结果目录、文件名前缀、HDF5 / 绘图开关
    - YAML / JSON 读写，内置预设（reference / quick）
    - ENV/CLI/YAML 合并，优先级：预设 < 文件 < 环境变量 < CLI --set
    - validate_config() 只返回提示，不抛错

注意：
    非法参数（L < 1、T ≤ 0、步长 ≤ 0、K ≤ 0 等）一律在构造阶段以 ValueError 拒绝，
    任何 worker 启动前即暴露，模拟核心不再做重复检查。
"""

from __future__ import annotations

import os
import sys
import json
import ast
import copy
import math
from dataclasses import MISSING, dataclass, asdict, field, fields, replace
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple

import yaml

__all__ = [
    'Config', 'SimulationConfig', 'OutputConfig',
    'load_config', 'save_config', 'get_preset_config',
    'load_from_env', 'merge_configs', 'validate_config', 'from_args'
]

SUSCEPTIBILITY_SOURCES = ('energy', 'order')


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _deep_merge(d1: Dict[str, Any], d2: Dict[str, Any]) -> Dict[str, Any]:
    """将 d2 深度合并到 d1（原地修改 d1 并返回它）。"""
    for k, v in (d2 or {}).items():
        if k in d1 and isinstance(d1[k], dict) and isinstance(v, dict):
            _deep_merge(d1[k], v)
        else:
            d1[k] = v
    return d1


def _set_by_path(d: Dict[str, Any], path: List[str], value: Any):
    """按照 path（list）在嵌套 dict 中设置 value。"""
    cur = d
    for key in path[:-1]:
        if key not in cur or not isinstance(cur[key], dict):
            cur[key] = {}
        cur = cur[key]
    cur[path[-1]] = value


def _parse_env_value(s: str):
    """将字符串解析为 Python 值（literal_eval 优先，兼容 true/false/none）。"""
    if s is None:
        return None
    try:
        return ast.literal_eval(s)
    except (ValueError, SyntaxError):
        sl = s.strip()
        sl_l = sl.lower()
        if sl_l == 'true':
            return True
        if sl_l == 'false':
            return False
        if sl_l in ('none', 'null'):
            return None
        return sl


def _check_non_negative_int(name: str, v: Any) -> None:
    if isinstance(v, bool) or not (isinstance(v, int) and v >= 0):
        raise ValueError(f"{name} must be a non-negative integer (got {v!r})")


def _check_finite(name: str, v: Any) -> float:
    try:
        x = float(v)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be numeric (got {v!r})") from None
    if not math.isfinite(x):
        raise ValueError(f"{name} must be finite (got {v!r})")
    return x


# -----------------------------------------------------------------------------
# Dataclasses
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class SimulationConfig:
    # 温度扫描
    T_min: float
    T_max: float
    T_step: float

    # 采样
    flips_to_skip: int           # 热化阶段的翻转槽数
    measurements_per_T: int      # 每个温度的测量次数
    flips_per_measurement: int   # 两次测量之间的翻转槽数
    attempts_per_flip: int       # 每个翻转槽最多提议次数

    # 晶格与物理常数
    lattice_size: int
    J: float
    K: float

    # 运行选项（不改变算法本身）
    seed: Optional[int] = None
    n_processes: Optional[int] = None
    susceptibility_source: str = 'energy'   # 'energy' | 'order'
    scale_by_sites: bool = False

    def __post_init__(self):
        t_min = _check_finite('T_min', self.T_min)
        t_max = _check_finite('T_max', self.T_max)
        t_step = _check_finite('T_step', self.T_step)
        if t_min <= 0.0:
            raise ValueError(f"T_min must be > 0 (got {self.T_min})")
        if t_max < t_min:
            raise ValueError(f"T_max must be >= T_min (got {self.T_max} < {self.T_min})")
        if t_step <= 0.0:
            raise ValueError(f"T_step must be > 0 (got {self.T_step})")

        for name in ('flips_to_skip', 'measurements_per_T', 'flips_per_measurement', 'attempts_per_flip'):
            _check_non_negative_int(name, getattr(self, name))
        if self.measurements_per_T < 1:
            raise ValueError("measurements_per_T must be >= 1")

        if isinstance(self.lattice_size, bool) or not (isinstance(self.lattice_size, int) and self.lattice_size >= 1):
            raise ValueError(f"lattice_size must be a positive integer, got {self.lattice_size!r}")

        _check_finite('J', self.J)
        if _check_finite('K', self.K) <= 0.0:
            raise ValueError(f"K must be > 0 (got {self.K})")

        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int) or self.seed < 0):
            raise ValueError("seed must be a non-negative int or None")
        n_proc = self.n_processes
        if n_proc is not None and (isinstance(n_proc, bool) or not isinstance(n_proc, int) or n_proc <= 0):
            raise ValueError("n_processes must be a positive int or None")

        source = str(self.susceptibility_source).strip().lower()
        if source not in SUSCEPTIBILITY_SOURCES:
            raise ValueError(f"susceptibility_source must be one of {SUSCEPTIBILITY_SOURCES}, "
                             f"got {self.susceptibility_source!r}")
        object.__setattr__(self, 'susceptibility_source', source)

        # 统一为 float，方便序列化与比较
        for name in ('T_min', 'T_max', 'T_step', 'J', 'K'):
            object.__setattr__(self, name, float(getattr(self, name)))

    @property
    def n_sites(self) -> int:
        return self.lattice_size * self.lattice_size


@dataclass(frozen=True)
class OutputConfig:
    results_dir: str = 'results'
    prefix: str = 'results-parallel'
    save_hdf5: bool = False
    plot: bool = False

    def __post_init__(self):
        if not str(self.results_dir).strip():
            raise ValueError("results_dir must not be empty")
        if not str(self.prefix).strip():
            raise ValueError("prefix must not be empty")


def _reference_simulation(**overrides) -> SimulationConfig:
    # reference 预设：L=50，T ∈ [0.2, 4.0]，相变约在 T≈2.29
    size = 50
    base = dict(
        T_min=0.2, T_max=4.0, T_step=0.1,
        flips_to_skip=300_000,
        measurements_per_T=2_000,
        flips_per_measurement=size * size,
        attempts_per_flip=20,
        lattice_size=size,
        J=1.0, K=1.0,
    )
    base.update(overrides)
    return SimulationConfig(**base)


@dataclass
class Config:
    simulation: SimulationConfig = field(default_factory=_reference_simulation)
    output: OutputConfig = field(default_factory=OutputConfig)

    verbose: bool = True      # False：默认日志级别降为 WARNING
    debug: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'simulation': asdict(self.simulation),
            'output': asdict(self.output),
            'verbose': self.verbose,
            'debug': self.debug,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Config':
        d = d or {}
        sim_d = dict(d.get('simulation', {}) or {})
        out_d = dict(d.get('output', {}) or {})
        known = {f.name for f in fields(SimulationConfig)}
        unknown = sorted(set(sim_d) - known)
        if unknown:
            raise ValueError(f"Unknown simulation keys: {unknown}")
        missing = sorted(f.name for f in fields(SimulationConfig)
                         if f.name not in sim_d and f.default is MISSING and f.default_factory is MISSING)
        if missing:
            raise ValueError(f"Missing required simulation keys: {missing}")
        return cls(
            simulation=SimulationConfig(**sim_d),
            output=OutputConfig(**out_d),
            verbose=bool(d.get('verbose', True)),
            debug=bool(d.get('debug', False)),
        )

    def add_path_root(self, root: str | Path) -> 'Config':
        """将相对结果目录绑定到项目根（返回新 Config，不修改原对象）。"""
        if root is None:
            return self
        root_p = Path(os.path.expandvars(os.path.expanduser(str(root)))).resolve()
        rd = Path(os.path.expandvars(os.path.expanduser(str(self.output.results_dir))))
        bound = rd.resolve() if rd.is_absolute() else (root_p / rd).resolve()
        return replace(self, output=replace(self.output, results_dir=str(bound)))


# -----------------------------------------------------------------------------
# I/O
# -----------------------------------------------------------------------------
def load_config(filepath: str | Path) -> Config:
    """从 YAML 或 JSON 文件加载配置并返回 Config 对象。"""
    p = Path(filepath)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")
    suf = p.suffix.lower()
    if suf in ('.yaml', '.yml'):
        with open(p, 'r', encoding='utf-8') as f:
            cfg = yaml.safe_load(f) or {}
    elif suf == '.json':
        with open(p, 'r', encoding='utf-8') as f:
            cfg = json.load(f) or {}
    else:
        raise ValueError(f"Unsupported config file extension: {suf}")
    return Config.from_dict(cfg)


def save_config(config: Config, filepath: str | Path, format: Optional[str] = None) -> Path:
    """将 Config 保存为 YAML 或 JSON。默认根据后缀判断格式。"""
    p = Path(filepath)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = config.to_dict()
    fmt = format
    if fmt is None:
        fmt = 'json' if p.suffix.lower() == '.json' else 'yaml'

    if fmt == 'yaml':
        with open(p, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
    elif fmt == 'json':
        with open(p, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
    else:
        raise ValueError(f"Unsupported format: {fmt}")
    return p


# -----------------------------------------------------------------------------
# Presets
# -----------------------------------------------------------------------------
def get_preset_config(name: str) -> Config:
    """返回内置预设配置的副本（deepcopy）。"""
    presets: Dict[str, Config] = {
        'reference': Config(simulation=_reference_simulation()),
        'quick': Config(
            simulation=_reference_simulation(
                T_min=1.0, T_max=3.5, T_step=0.25,
                flips_to_skip=20_000,
                measurements_per_T=200,
                flips_per_measurement=16 * 16,
                attempts_per_flip=20,
                lattice_size=16,
            )
        ),
    }
    if name not in presets:
        raise ValueError(f"Unknown preset: {name}. Available: {list(presets.keys())}")
    return copy.deepcopy(presets[name])


# -----------------------------------------------------------------------------
# Environment variables (nested via sep, e.g., ISING__simulation__lattice_size=64)
# -----------------------------------------------------------------------------
def load_from_env(prefix: str = 'ISING', sep: str = '__') -> Dict[str, Any]:
    """
    从环境变量读取以 prefix 开头、用 sep 分层的键，返回嵌套 dict。
    例： ISING__simulation__lattice_size=64  → {'simulation': {'lattice_size': 64}}
    """
    out: Dict[str, Any] = {}
    pfx = prefix + sep
    for k, v in os.environ.items():
        if not k.startswith(pfx):
            continue
        parts = [p for p in k[len(pfx):].split(sep) if p]
        if not parts:
            continue
        _set_by_path(out, parts, _parse_env_value(v))
    return out


# -----------------------------------------------------------------------------
# Merge & validate
# -----------------------------------------------------------------------------
def merge_configs(base: Config, override: Dict[str, Any]) -> Config:
    """将 override（nested dict）深度合并到 base Config 的字典表示上，并返回新的 Config。"""
    base_dict = base.to_dict()
    _deep_merge(base_dict, override or {})
    return Config.from_dict(base_dict)


def validate_config(cfg: Config) -> Tuple[bool, List[str]]:
    """
    软性检查（仅返回 issues，不抛错；硬约束已在 __post_init__ 完成）。
    """
    issues: List[str] = []
    sim = cfg.simulation

    if sim.flips_to_skip < sim.n_sites:
        issues.append(f"flips_to_skip ({sim.flips_to_skip}) < lattice sites ({sim.n_sites}) -- 热化可能不足")
    if sim.measurements_per_T < 2:
        issues.append("measurements_per_T < 2 -- 涨落量 dE / X 恒为 0")
    if sim.attempts_per_flip == 0:
        issues.append("attempts_per_flip = 0 -- 晶格永远不会翻转")
    if sim.T_step > (sim.T_max - sim.T_min) and sim.T_max > sim.T_min:
        issues.append("T_step 大于温度区间，只会模拟 T_min 一个温度点")

    return len(issues) == 0, issues


# -----------------------------------------------------------------------------
# CLI helpers
# -----------------------------------------------------------------------------
def _parse_cli_overrides(kv_list: List[str]) -> Dict[str, Any]:
    """
    解析 --set key=value（点分路径）列表，返回 nested dict。
    例：--set simulation.lattice_size=64 → {'simulation': {'lattice_size': 64}}
    """
    out: Dict[str, Any] = {}
    for kv in (kv_list or []):
        if '=' not in kv:
            raise ValueError(f"--set expects key=value pairs, got: {kv}")
        key, val = kv.split('=', 1)
        path = [p.strip() for p in key.split('.') if p.strip()]
        if not path:
            continue
        _set_by_path(out, path, _parse_env_value(val))
    return out


def add_config_arguments(ap, env_prefix: str = 'ISING') -> None:
    """向 argparse 解析器注册配置相关参数（供 from_args 与 runner 共用）。"""
    ap.add_argument('--preset', type=str, choices=['reference', 'quick'], default='reference',
                    help='preset name (default: reference)')
    ap.add_argument('--config', type=str, help='config file (yaml|json)')
    ap.add_argument('--env-prefix', type=str, default=env_prefix,
                    help=f'environment variable prefix (default {env_prefix})')
    ap.add_argument('--set', dest='sets', action='append', default=[],
                    help='override key=value (dot notation, can repeat)')
    ap.add_argument('--root', type=str, default=None, help='project root to bind results_dir')


def config_from_namespace(ns) -> Config:
    """按 预设 < 文件 < 环境变量 < --set 的优先级合并出 Config。"""
    cfg = get_preset_config(ns.preset)

    if ns.config:
        cfg = merge_configs(cfg, load_config(ns.config).to_dict())

    env_over = load_from_env(prefix=ns.env_prefix)
    if env_over:
        cfg = merge_configs(cfg, env_over)

    cli_over = _parse_cli_overrides(ns.sets)
    if cli_over:
        cfg = merge_configs(cfg, cli_over)

    if ns.root:
        cfg = cfg.add_path_root(ns.root)
    return cfg


def from_args(args: Optional[List[str]] = None, env_prefix: str = 'ISING') -> Config:
    """
    从命令行加载并合并配置（优先级从低到高）:
      预设 <- 文件 (--config) <- 环境变量 (--env-prefix) <- CLI --set
    """
    import argparse
    ap = argparse.ArgumentParser(description="Load & merge sweep configuration")
    add_config_arguments(ap, env_prefix=env_prefix)
    ns = ap.parse_args(args=args)
    cfg = config_from_namespace(ns)

    ok, issues = validate_config(cfg)
    if not ok:
        print("⚠ Config validation warnings:", file=sys.stderr)
        for it in issues:
            print("  -", it, file=sys.stderr)
    return cfg
