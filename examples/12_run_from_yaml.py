# examples/run_from_yaml.py

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from ising_sweep.simulation.runner import run
from ising_sweep.utils.config import load_config
from ising_sweep.utils.logger import setup_logger


def main():
    # 1. 读取 YAML 配置（软性检查在 run 中以 warning 写入日志）
    cfg = load_config(ROOT / "configs" / "sweep_L32.yaml").add_path_root(ROOT)

    # 2. 日志写到结果目录，进度走 tqdm
    log = setup_logger("ising_sweep", log_file=str(Path(cfg.output.results_dir) / "sweep.log"))

    # 3. 扫描 + 落盘（表格 / HDF5 / 图）
    written = run(cfg, show_bar=True, log=log)
    for p in written:
        print("written:", p)


if __name__ == "__main__":
    main()
