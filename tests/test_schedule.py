"""Tests for dependency ordering of generated secrets."""
import sys

import pytest

from conftest import echo_script, make_inventory, make_secret
from secretgen.secrets.domains.errors import CyclicDependency, UnresolvableDependency
from secretgen.secrets.domains.models import Generator, Secret, SecretEntry
from secretgen.secrets.workflows.collect import build_entries
from secretgen.secrets.workflows.schedule import order_entries


def _entry(path, deps=()):
    return SecretEntry(
        storage_path=path,
        secret=None,
        secret_name=path,
        script=("true",),
        dependency_paths=list(deps),
        definitions=[f"host:{path}"],
    )


def _paths(ordered):
    return [entry.storage_path for entry in ordered]


class TestOrderEntries:
    """Test suite for order_entries."""

    def test_dependencies_come_before_dependents(self):
        """Test that every dependency is scheduled before the entry using it."""
        entries = {
            "./c": _entry("./c", ["./b"]),
            "./b": _entry("./b", ["./a"]),
            "./a": _entry("./a"),
            "./d": _entry("./d", ["./a", "./c"]),
        }

        ordered = _paths(order_entries(entries))

        assert sorted(ordered) == sorted(entries)
        for path, entry in entries.items():
            for dep in entry.dependency_paths:
                assert ordered.index(dep) < ordered.index(path)

    def test_independent_entries_keep_encounter_order(self):
        """Test that ties are broken by encounter order."""
        entries = {
            "./z": _entry("./z"),
            "./a": _entry("./a"),
            "./m": _entry("./m"),
        }

        assert _paths(order_entries(entries)) == ["./z", "./a", "./m"]

    def test_shared_dependency_scheduled_once(self):
        """Test that a dependency of several entries appears once."""
        entries = {
            "./x": _entry("./x", ["./root"]),
            "./y": _entry("./y", ["./root"]),
            "./root": _entry("./root"),
        }

        assert _paths(order_entries(entries)) == ["./root", "./x", "./y"]

    def test_two_entry_cycle_is_fatal(self):
        """Test that A -> B -> A raises CyclicDependency naming the cycle."""
        entries = {
            "./a": _entry("./a", ["./b"]),
            "./b": _entry("./b", ["./a"]),
        }

        with pytest.raises(CyclicDependency) as exc_info:
            order_entries(entries)

        assert exc_info.value.cycle == ["./a", "./b", "./a"]
        assert "./a -> ./b -> ./a" in str(exc_info.value)

    def test_self_dependency_is_fatal(self):
        """Test that an entry depending on itself is a cycle."""
        entries = {"./a": _entry("./a", ["./a"])}

        with pytest.raises(CyclicDependency) as exc_info:
            order_entries(entries)

        assert exc_info.value.cycle == ["./a", "./a"]

    def test_cycle_reported_without_prefix(self):
        """Test that only the cyclic part of the path is reported."""
        entries = {
            "./start": _entry("./start", ["./a"]),
            "./a": _entry("./a", ["./b"]),
            "./b": _entry("./b", ["./a"]),
        }

        with pytest.raises(CyclicDependency) as exc_info:
            order_entries(entries)

        assert exc_info.value.cycle == ["./a", "./b", "./a"]

    def test_long_chain_is_ordered(self):
        """Test that a chain deeper than the recursion limit is scheduled."""
        length = sys.getrecursionlimit() + 500
        paths = [f"./s{i}" for i in range(length)]
        entries = {}
        for i in reversed(range(length)):
            entries[paths[i]] = _entry(paths[i], [paths[i - 1]] if i else [])

        assert _paths(order_entries(entries)) == paths

    def test_unknown_dependency_path_is_fatal(self):
        """Test that a dependency outside the entries raises UnresolvableDependency."""
        entries = {"./a": _entry("./a", ["./missing"])}

        with pytest.raises(UnresolvableDependency):
            order_entries(entries)


class TestOrderFromInventory:
    """Test ordering on entries built from host declarations."""

    def test_cycle_between_hosts_fails_before_generation(self, root):
        """Test that mutually dependent secrets fail construction."""
        a_file = (root / "secrets/a.age").resolve()
        b_file = (root / "secrets/b.age").resolve()
        a_ref = Secret(id="a", rekey_file=a_file).ref
        b_ref = Secret(id="b", rekey_file=b_file).ref
        a = Secret(id="a", rekey_file=a_file, generator=Generator(script=echo_script("a"), dependencies=(b_ref,)))
        b = Secret(id="b", rekey_file=b_file, generator=Generator(script=echo_script("b"), dependencies=(a_ref,)))
        inventory = make_inventory(root, {"web": {"a": a}, "db": {"b": b}})

        with pytest.raises(CyclicDependency):
            order_entries(build_entries(inventory))

    def test_order_is_deterministic(self, root):
        """Test that repeated construction yields the same schedule."""
        base = make_secret(root, "secrets/base.age", echo_script("base"))
        derived = make_secret(root, "secrets/derived.age", echo_script("d"), dependencies=[base])
        inventory = make_inventory(root, {"web": {"derived": derived}, "db": {"base": base}})

        first = _paths(order_entries(build_entries(inventory)))
        second = _paths(order_entries(build_entries(inventory)))

        assert first == second == ["./secrets/base.age", "./secrets/derived.age"]
