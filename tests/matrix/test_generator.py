"""Tests for RunSpec matrix generation."""

import pytest

from dnsprobe.matrix.generator import generate
from dnsprobe.matrix.spec import ConfigMethod, RunSpec
from dnsprobe.snapshot import FOREVER

M = ConfigMethod


def gen(variants, methods, ttls):
    return generate(variants, methods, ttls, "example.com", 5.0, 30.0)


class TestGenerate:
    def test_no_override_emitted_once_per_variant(self):
        specs = gen(["a", "b"], [M.NO_OVERRIDE, M.SYSTEM_PROPERTY, M.RUNTIME_PROPERTY], [0, 1, 5, 30])
        assert len(specs) == 18
        baseline = [s for s in specs if s.method == M.NO_OVERRIDE]
        assert [(s.variant, s.intended_ttl) for s in baseline] == [("a", None), ("b", None)]

    def test_order_is_variant_method_ttl(self):
        specs = gen(["a", "b"], [M.SYSTEM_PROPERTY, M.SECURITY_FILE], [1, 5])
        assert [(s.variant, s.method, s.intended_ttl) for s in specs] == [
            ("a", M.SYSTEM_PROPERTY, 1),
            ("a", M.SYSTEM_PROPERTY, 5),
            ("a", M.SECURITY_FILE, 1),
            ("a", M.SECURITY_FILE, 5),
            ("b", M.SYSTEM_PROPERTY, 1),
            ("b", M.SYSTEM_PROPERTY, 5),
            ("b", M.SECURITY_FILE, 1),
            ("b", M.SECURITY_FILE, 5),
        ]

    def test_shared_run_parameters(self):
        spec = gen(["local"], [M.SUN_NET_PROPERTY], [5])[0]
        assert spec == RunSpec("local", M.SUN_NET_PROPERTY, 5, "example.com", 5.0, 30.0)

    def test_duplicates_kept(self):
        assert len(gen(["a"], [M.SYSTEM_PROPERTY], [5, 5])) == 2

    def test_accepts_method_strings(self):
        assert gen(["a"], ["no_override"], [])[0].method == M.NO_OVERRIDE

    def test_baseline_only_needs_no_ttls(self):
        assert len(gen(["a", "b"], [M.NO_OVERRIDE], [])) == 2

    @pytest.mark.parametrize("variants,methods,ttls", [
        ([], [M.NO_OVERRIDE], [1]),
        (["a"], [], [1]),
        (["a"], [M.SYSTEM_PROPERTY], []),
    ])
    def test_invalid(self, variants, methods, ttls):
        with pytest.raises(ValueError):
            gen(variants, methods, ttls)


class TestRunSpec:
    def test_names_are_unique(self):
        specs = gen(["a", "b"], list(M), [0, 1, 5, 30])
        assert len({s.name for s in specs}) == len(specs)

    @pytest.mark.parametrize("ttl,suffix", [
        (None, "default"),
        (0, "ttl0"),
        (FOREVER, "ttl-forever"),
        (-5, "ttl-forever"),
    ])
    def test_name(self, ttl, suffix):
        spec = RunSpec("temurin-21", M.SECURITY_FILE, ttl, "example.com", 5.0, 30.0)
        assert spec.name == f"temurin-21_security_file_{suffix}"

    def test_dict_round_trip(self):
        spec = RunSpec("local", M.RUNTIME_PROPERTY, 5, "example.com", 2.0, 15.0)
        assert RunSpec.from_dict(spec.to_dict()) == spec
