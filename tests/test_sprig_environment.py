import pytest

from sprig.sprig_datatypes import Number
from sprig.sprig_environment import (
    Binding, Cell, Defines, Environment, make_env, merge_envs,
)
from sprig.sprig_errors import UnboundVariable


def test_cell_empty_and_filled():
    cell = Cell()
    assert cell.is_empty
    cell.value = Number(1)
    assert not cell.is_empty
    cell.clear()
    assert cell.is_empty


def test_merge_is_right_biased_and_does_not_touch_inputs():
    left = Environment.from_values({"x": Number(1), "y": Number(2)})
    right = Environment.from_values({"x": Number(10)})
    merged = merge_envs(left, right)
    assert merged["x"].cell.value == Number(10)
    assert merged["y"].cell.value == Number(2)
    assert left["x"].cell.value == Number(1)
    assert len(right) == 1


def test_merge_shares_cells():
    env = make_env([Binding("x", Cell(Number(1)))])
    merged = merge_envs(env, None)
    merged.cell("x").value = Number(5)
    assert env.cell("x").value == Number(5)
    assert merged.cell("missing") is None


def test_defines_resolve_lazily_and_once():
    defines = Defines()
    calls = []

    def producer():
        calls.append(1)
        return Cell(Number(42))

    defines.add("answer", producer)
    assert calls == []
    first = defines.get("answer")
    second = defines.get("answer")
    assert first is second
    assert first.value == Number(42)
    assert calls == [1]


def test_defines_unknown_name_is_none():
    assert Defines().get("nope") is None


def test_defines_forward_references():
    defines = Defines()
    defines.add("a", lambda: Cell(Number(defines.get("b").value.value + 1)))
    defines.add("b", lambda: Cell(Number(1)))
    assert defines.get("a").value == Number(2)


def test_defines_self_reference_while_forcing_is_unbound():
    defines = Defines()
    defines.add("loop", lambda: defines.get("loop"))
    with pytest.raises(UnboundVariable) as excinfo:
        defines.get("loop")
    assert excinfo.value.name == "loop"
    assert "loop -> loop" in str(excinfo.value)


def test_redefinition_discards_cached_cell():
    defines = Defines()
    defines.add("x", lambda: Cell(Number(1)))
    assert defines.get("x").value == Number(1)
    defines.add("x", lambda: Cell(Number(2)))
    assert defines.get("x").value == Number(2)


def test_failed_producer_can_be_retried():
    defines = Defines()
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise UnboundVariable("y")
        return Cell(Number(3))

    defines.add("x", flaky)
    with pytest.raises(UnboundVariable):
        defines.get("x")
    assert defines.get("x").value == Number(3)


def test_debug_tracing(monkeypatch, capsys):
    monkeypatch.setenv("SPRIG_DEBUG", "1")
    defines = Defines()
    defines.add("x", lambda: Cell(Number(1)))
    defines.get("x")
    assert "[DBG] defines force x" in capsys.readouterr().err
