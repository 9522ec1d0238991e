# -*- coding: utf-8 -*-
"""
核心模块单元测试

覆盖范围：
- Lattice：取值不变量、周期边界能量差、每格点能量与序参量
- flip_probability：ΔE ≤ 0 恒为 1、随 ΔE 单调递减
- EquilibrationMeasurementCycle：有界重试翻转槽、阶段顺序、样本数量
"""

import math
import sys
import unittest
from pathlib import Path

import numpy as np

# ----------------------------- 路径适配 -----------------------------
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(_ROOT / "src"))

from ising_sweep.core.acceptance import flip_probability
from ising_sweep.core.cycle import EquilibrationMeasurementCycle, Phase
from ising_sweep.core.lattice import Lattice
from ising_sweep.core.observables import StatisticsCollector
from ising_sweep.simulation.sweep import TemperatureSweep
from ising_sweep.utils.config import SimulationConfig


def _cycle(lattice, rng, T=2.0, **kw):
    params = dict(J=1.0, K=1.0, flips_to_skip=0, measurements_per_T=1,
                  flips_per_measurement=0, attempts_per_flip=1)
    params.update(kw)
    return EquilibrationMeasurementCycle(lattice, rng, T, **params)


class TestLattice(unittest.TestCase):

    def setUp(self):
        self.rng = np.random.default_rng(2024)

    def test_random_init_values(self):
        lat = Lattice(12, self.rng)
        self.assertEqual(lat.spins.shape, (12, 12))
        self.assertTrue(np.all(np.abs(lat.spins) == 1))
        self.assertEqual(lat.n_sites, 144)

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            Lattice(0, self.rng)

    def test_from_spins_validation(self):
        with self.assertRaises(ValueError):
            Lattice.from_spins(np.ones((3, 4)), self.rng)
        with self.assertRaises(ValueError):
            Lattice.from_spins(np.zeros((3, 3)), self.rng)

    def test_spins_view_is_read_only_copy(self):
        lat = Lattice.from_spins(np.ones((4, 4)), self.rng)
        view = lat.spins
        with self.assertRaises(ValueError):
            view[0, 0] = -1
        self.assertEqual(lat.magnetization(), 1.0)

    def test_ordered_state_energy_and_order(self):
        lat = Lattice.from_spins(np.ones((4, 4)), self.rng)
        self.assertAlmostEqual(lat.energy_per_site(1.0), -2.0)
        self.assertAlmostEqual(lat.order_parameter(), 1.0)
        anti = Lattice.from_spins(-np.ones((4, 4)), self.rng)
        self.assertAlmostEqual(anti.order_parameter(), 1.0)
        self.assertAlmostEqual(anti.magnetization(), -1.0)

    def test_checkerboard_energy(self):
        i, j = np.indices((4, 4))
        spins = np.where((i + j) % 2 == 0, 1, -1)
        lat = Lattice.from_spins(spins, self.rng)
        self.assertAlmostEqual(lat.energy_per_site(1.0), 2.0)
        self.assertAlmostEqual(lat.order_parameter(), 0.0)

    def test_energy_delta_uses_periodic_neighbours(self):
        lat = Lattice.from_spins(np.ones((4, 4)), self.rng)
        # 角点的四个邻居都跨越边界
        self.assertAlmostEqual(lat.energy_delta((0, 0), 1.0), 8.0)
        self.assertAlmostEqual(lat.energy_delta((3, 3), 0.5), 4.0)

    def test_energy_delta_matches_total_energy_difference(self):
        lat = Lattice(7, self.rng)
        J = 1.3
        for _ in range(50):
            ix = lat.random_index()
            dE = lat.energy_delta(ix, J)
            before = lat.energy_per_site(J) * lat.n_sites
            lat.flip(ix)
            after = lat.energy_per_site(J) * lat.n_sites
            self.assertAlmostEqual(after - before, dE, places=9)

    def test_double_flip_restores_configuration(self):
        lat = Lattice(6, self.rng)
        before = lat.spins
        e0 = lat.energy_per_site(1.0)
        ix = (2, 5)
        lat.flip(ix)
        self.assertEqual(lat.spins[ix], -before[ix])
        lat.flip(ix)
        np.testing.assert_array_equal(lat.spins, before)
        self.assertEqual(lat.energy_per_site(1.0), e0)

    def test_random_index_in_range(self):
        lat = Lattice(5, self.rng)
        seen = set()
        for _ in range(2000):
            i, j = lat.random_index()
            self.assertTrue(0 <= i < 5 and 0 <= j < 5)
            seen.add((i, j))
        self.assertEqual(len(seen), 25)

    def test_cells_stay_plus_minus_one_after_many_flips(self):
        for L in (1, 2, 3):
            with self.subTest(L=L):
                lat = Lattice(L, self.rng)
                for _ in range(500):
                    lat.flip(lat.random_index())
                    self.assertTrue(set(np.unique(lat.spins).tolist()) <= {-1, 1})
                self.assertEqual(lat.spins.dtype, np.int8)


class TestAcceptance(unittest.TestCase):

    def test_non_positive_delta_always_accepted(self):
        for dE in (0.0, -1.0, -8.0, -1e6):
            self.assertEqual(flip_probability(dE, 0.5, 1.0), 1.0)

    def test_positive_delta(self):
        self.assertAlmostEqual(flip_probability(4.0, 1.0, 1.0), math.exp(-4.0))
        self.assertAlmostEqual(flip_probability(4.0, 2.0, 2.0), math.exp(-1.0))

    def test_strictly_decreasing_and_bounded(self):
        ps = [flip_probability(dE, 2.0, 1.0) for dE in (0.5, 1.0, 2.0, 4.0, 8.0)]
        for a, b in zip(ps, ps[1:]):
            self.assertGreater(a, b)
        self.assertTrue(all(0.0 < p < 1.0 for p in ps))


class TestCycle(unittest.TestCase):

    def setUp(self):
        self.rng = np.random.default_rng(7)

    def test_zero_coupling_flips_every_slot_first_try(self):
        # J = 0 ⇒ ΔE = 0 ⇒ p = 1，每个槽第一次提议即接受
        lat = Lattice(4, self.rng)
        cyc = _cycle(lat, self.rng, J=0.0, attempts_per_flip=20)
        for _ in range(30):
            self.assertTrue(cyc.flip_slot())
        self.assertEqual(cyc.stats.slots, 30)
        self.assertEqual(cyc.stats.proposals, 30)
        self.assertEqual(cyc.stats.accepted, 30)
        self.assertEqual(cyc.stats.acceptance_rate, 1.0)

    def test_rejected_slot_uses_all_attempts(self):
        # 有序态、极低温：所有提议 ΔE = 8，p ≈ exp(-8e4) ≈ 0
        lat = Lattice.from_spins(np.ones((4, 4)), self.rng)
        cyc = _cycle(lat, self.rng, T=1e-4, attempts_per_flip=5)
        self.assertFalse(cyc.flip_slot())
        self.assertEqual(cyc.stats.proposals, 5)
        self.assertEqual(cyc.stats.accepted, 0)
        self.assertEqual(lat.order_parameter(), 1.0)

    def test_zero_attempts_never_flips(self):
        lat = Lattice(3, self.rng)
        before = lat.spins
        cyc = _cycle(lat, self.rng, attempts_per_flip=0, flips_to_skip=10,
                     measurements_per_T=4, flips_per_measurement=5)
        samples = cyc.run()
        np.testing.assert_array_equal(lat.spins, before)
        self.assertEqual(len(samples), 4)
        self.assertTrue(np.all(samples.energies == samples.energies[0]))

    def test_untouched_two_by_two_lattice_record(self):
        lat = Lattice(2, self.rng)
        I0 = lat.order_parameter()
        cyc = _cycle(lat, self.rng, attempts_per_flip=0, measurements_per_T=3, flips_per_measurement=2)
        samples = cyc.run()
        rec = StatisticsCollector(K=1.0).reduce(2.0, samples)
        self.assertEqual(rec.dE, 0.0)
        self.assertEqual(rec.X, 0.0)
        self.assertAlmostEqual(rec.I, I0)

    def test_phases_and_callback(self):
        lat = Lattice(4, self.rng)
        calls = []
        cyc = _cycle(lat, self.rng, flips_to_skip=16, measurements_per_T=6,
                     flips_per_measurement=3, attempts_per_flip=2)
        self.assertIs(cyc.phase, Phase.EQUILIBRATING)
        with self.assertRaises(RuntimeError):
            cyc.measure()
        cyc.equilibrate()
        self.assertIs(cyc.phase, Phase.MEASURING)
        self.assertEqual(cyc.stats.slots, 16)
        with self.assertRaises(RuntimeError):
            cyc.equilibrate()
        samples = cyc.measure(lambda: calls.append(1))
        self.assertIs(cyc.phase, Phase.DONE)
        self.assertEqual(len(calls), 6)
        self.assertEqual(len(samples), 6)
        self.assertEqual(cyc.stats.slots, 16 + 6 * 3)
        self.assertTrue(np.all((samples.orders >= 0.0) & (samples.orders <= 1.0)))

    def test_same_seed_same_samples(self):
        def once():
            rng = np.random.default_rng(99)
            lat = Lattice(6, rng)
            cyc = _cycle(lat, rng, flips_to_skip=50, measurements_per_T=10,
                         flips_per_measurement=12, attempts_per_flip=3)
            return cyc.run()

        a, b = once(), once()
        np.testing.assert_array_equal(a.energies, b.energies)
        np.testing.assert_array_equal(a.orders, b.orders)


class TestSmallestSweep(unittest.TestCase):
    """L=2, J=K=T=1，不热化，单次测量，测量间不翻转，每槽一次提议。"""

    def test_single_measurement_sweep(self):
        sim = SimulationConfig(
            T_min=1.0, T_max=1.0, T_step=1.0,
            flips_to_skip=0, measurements_per_T=1, flips_per_measurement=0,
            attempts_per_flip=1, lattice_size=2, J=1.0, K=1.0,
            seed=11, n_processes=1,
        )
        signals = []

        class _Counter:
            def update(self, n=1):
                signals.append(n)

            def finish(self):
                pass

        records = TemperatureSweep(sim, display=_Counter()).run()
        self.assertEqual(len(records), 1)
        rec = records[0]
        self.assertEqual(rec.T, 1.0)
        self.assertEqual(rec.dE, 0.0)
        self.assertEqual(rec.X, 0.0)
        # 2×2 晶格上 |<s>| 只能取 0、0.5、1
        self.assertIn(rec.I, (0.0, 0.5, 1.0))
        self.assertEqual(sum(signals), 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
