# -*- coding: utf-8 -*-
"""
配置层测试：构造期硬约束、预设、dict/YAML/JSON 往返、环境变量与 --set 覆盖、软性检查。
"""

import os
import sys
import tempfile
import unittest
from dataclasses import asdict
from pathlib import Path
from unittest import mock

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(_ROOT / "src"))

from ising_sweep.utils.config import (
    Config,
    OutputConfig,
    SimulationConfig,
    _parse_cli_overrides,
    from_args,
    get_preset_config,
    load_config,
    load_from_env,
    merge_configs,
    save_config,
    validate_config,
)


def _params(**overrides):
    p = dict(
        T_min=0.5, T_max=1.5, T_step=0.5,
        flips_to_skip=10, measurements_per_T=4, flips_per_measurement=4,
        attempts_per_flip=2, lattice_size=3, J=1.0, K=1.0,
    )
    p.update(overrides)
    return p


class TestSimulationConfig(unittest.TestCase):

    def test_valid(self):
        sim = SimulationConfig(**_params(T_min=1, J=2))
        self.assertIsInstance(sim.T_min, float)
        self.assertIsInstance(sim.J, float)
        self.assertEqual(sim.n_sites, 9)
        self.assertEqual(sim.susceptibility_source, "energy")

    def test_rejects_invalid_values(self):
        bad = [
            dict(lattice_size=0),
            dict(lattice_size=2.5),
            dict(T_min=0.0),
            dict(T_min=-1.0),
            dict(T_max=0.2),
            dict(T_step=0.0),
            dict(T_step=-0.1),
            dict(K=0.0),
            dict(J=float("nan")),
            dict(flips_to_skip=-1),
            dict(measurements_per_T=0),
            dict(attempts_per_flip=True),
            dict(seed=-3),
            dict(n_processes=0),
            dict(n_processes=True),
            dict(susceptibility_source="spin"),
        ]
        for over in bad:
            with self.subTest(**{k: repr(v) for k, v in over.items()}):
                with self.assertRaises(ValueError):
                    SimulationConfig(**_params(**over))

    def test_source_normalised(self):
        sim = SimulationConfig(**_params(susceptibility_source=" Order "))
        self.assertEqual(sim.susceptibility_source, "order")

    def test_zero_attempts_allowed_but_flagged(self):
        cfg = Config(simulation=SimulationConfig(**_params(attempts_per_flip=0)))
        ok, issues = validate_config(cfg)
        self.assertFalse(ok)
        self.assertTrue(any("attempts_per_flip" in s for s in issues))


class TestPresets(unittest.TestCase):

    def test_reference(self):
        sim = get_preset_config("reference").simulation
        self.assertEqual(sim.lattice_size, 50)
        self.assertEqual((sim.T_min, sim.T_max, sim.T_step), (0.2, 4.0, 0.1))
        self.assertEqual(sim.flips_to_skip, 300_000)
        self.assertEqual(sim.measurements_per_T, 2_000)
        self.assertEqual(sim.flips_per_measurement, 2_500)
        self.assertEqual(sim.attempts_per_flip, 20)
        self.assertEqual((sim.J, sim.K), (1.0, 1.0))

    def test_quick(self):
        cfg = get_preset_config("quick")
        self.assertEqual(cfg.simulation.lattice_size, 16)
        ok, _ = validate_config(cfg)
        self.assertTrue(ok)

    def test_unknown(self):
        with self.assertRaises(ValueError):
            get_preset_config("huge")


class TestConfigIO(unittest.TestCase):

    def test_dict_round_trip(self):
        cfg = get_preset_config("quick")
        again = Config.from_dict(cfg.to_dict())
        self.assertEqual(asdict(again.simulation), asdict(cfg.simulation))
        self.assertEqual(again.output, cfg.output)

    def test_missing_and_unknown_keys(self):
        d = get_preset_config("quick").to_dict()
        del d["simulation"]["J"]
        with self.assertRaisesRegex(ValueError, "Missing"):
            Config.from_dict(d)
        d = get_preset_config("quick").to_dict()
        d["simulation"]["temperature"] = 2.0
        with self.assertRaisesRegex(ValueError, "Unknown"):
            Config.from_dict(d)

    def test_yaml_and_json_files(self):
        cfg = get_preset_config("quick")
        with tempfile.TemporaryDirectory() as td:
            for name in ("cfg.yaml", "cfg.json"):
                p = save_config(cfg, Path(td) / name)
                self.assertTrue(p.exists())
                loaded = load_config(p)
                self.assertEqual(asdict(loaded.simulation), asdict(cfg.simulation))
            with self.assertRaises(FileNotFoundError):
                load_config(Path(td) / "none.yaml")
            bad = Path(td) / "cfg.toml"
            bad.write_text("x = 1", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_config(bad)

    def test_output_config(self):
        with self.assertRaises(ValueError):
            OutputConfig(results_dir=" ")
        cfg = Config().add_path_root("/tmp/project")
        self.assertEqual(Path(cfg.output.results_dir), Path("/tmp/project/results").resolve())


class TestOverrides(unittest.TestCase):

    def test_cli_overrides(self):
        over = _parse_cli_overrides(["simulation.lattice_size=8", "simulation.seed=3", "output.plot=true"])
        self.assertEqual(over, {"simulation": {"lattice_size": 8, "seed": 3}, "output": {"plot": True}})
        with self.assertRaises(ValueError):
            _parse_cli_overrides(["simulation.lattice_size"])

    def test_merge_validates(self):
        base = get_preset_config("quick")
        merged = merge_configs(base, {"simulation": {"lattice_size": 8}})
        self.assertEqual(merged.simulation.lattice_size, 8)
        with self.assertRaises(ValueError):
            merge_configs(base, {"simulation": {"lattice_size": 0}})

    def test_env(self):
        env = {"TESTSWEEP__simulation__lattice_size": "12", "TESTSWEEP__output__prefix": "run"}
        with mock.patch.dict(os.environ, env):
            self.assertEqual(load_from_env("TESTSWEEP"),
                             {"simulation": {"lattice_size": 12}, "output": {"prefix": "run"}})

    def test_from_args_precedence(self):
        env = {"TESTSWEEP__simulation__lattice_size": "12", "TESTSWEEP__simulation__seed": "5"}
        with mock.patch.dict(os.environ, env):
            cfg = from_args(["--preset", "quick", "--set", "simulation.lattice_size=10"],
                            env_prefix="TESTSWEEP")
        self.assertEqual(cfg.simulation.lattice_size, 10)
        self.assertEqual(cfg.simulation.seed, 5)
        self.assertEqual(cfg.simulation.T_step, 0.25)

    def test_top_level_flags(self):
        cfg = from_args(["--preset", "quick", "--set", "verbose=false", "--set", "debug=true"])
        self.assertFalse(cfg.verbose)
        self.assertTrue(cfg.debug)
        self.assertFalse(Config.from_dict(cfg.to_dict()).verbose)


if __name__ == "__main__":
    unittest.main(verbosity=2)
