import copy

import pytest

from sprig.sprig_datatypes import (
    hole, is_hole, Number, Bool, String, Symbol, ListLiteral, Lambda, NameBinding, Var,
    Closure, Builtin, Param, is_datum, is_function, value_as_bool,
    list_value_as_vector, get_variadic, datum_equal, make_list,
)


def test_hole_is_a_singleton_through_copies():
    assert copy.copy(hole) is hole
    assert copy.deepcopy(hole) is hole
    tree = Lambda([NameBinding("x")], hole)
    assert copy.deepcopy(tree).body is hole


def test_defaults_are_holes():
    assert is_hole(Lambda().body)
    assert not is_hole(Var("x"))


@pytest.mark.parametrize("value, expected", [
    (Bool(False), False),
    (Bool(True), True),
    (Number(0), True),
    (ListLiteral([]), True),
    (String(""), True),
])
def test_only_false_is_falsy(value, expected):
    assert value_as_bool(value) is expected


def test_list_value_as_vector_flattens_proper_tails():
    nested = ListLiteral([Number(1)], ListLiteral([Number(2)], ListLiteral([])))
    assert list_value_as_vector(nested) == [Number(1), Number(2)]
    assert list_value_as_vector(ListLiteral([Number(1)], Number(2))) is None


def test_get_variadic():
    args = [Number(1), Number(2), Number(3)]
    assert get_variadic(1, args) == [Number(2), Number(3)]
    assert get_variadic(3, args) == []


def test_datum_equal_treats_dotted_and_flat_lists_alike():
    dotted = ListLiteral([Number(1)], ListLiteral([Number(2)]))
    flat = make_list([Number(1), Number(2)])
    assert datum_equal(dotted, flat)
    assert not datum_equal(flat, make_list([Number(1)]))
    assert datum_equal(Number(2), Number(2.0))
    assert not datum_equal(String("a"), Symbol("a"))


def test_data_and_functions_are_disjoint():
    closure = Closure([Param("x")], Var("x"))
    builtin = Builtin("id", [Param("x")], lambda args, ev: args[0])
    assert is_function(closure) and is_function(builtin)
    assert not is_datum(closure)
    assert is_datum(Symbol("s")) and not is_function(Symbol("s"))


def test_closures_compare_by_code_not_environment():
    body = Var("x")
    assert Closure([Param("x")], body, env=object()) == Closure([Param("x")], body, env=None)
