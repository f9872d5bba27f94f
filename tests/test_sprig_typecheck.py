import pytest

from sprig.sprig_datatypes import Number, String, Bool, ListLiteral, Param, Closure, hole
from sprig.sprig_environment import BindingAttributes
from sprig.sprig_errors import ArityMismatch, NotCallable, TypeMismatch
from sprig.sprig_library import InitialEnvironment
from sprig.sprig_typecheck import (
    value_has_tag, check_call_against_signature, check_call_type, binding_type,
    is_assignable, value_type, signature_type,
)
from sprig.sprig_types import (
    VariadicFunctionType, TypeVar, ForallType, Any, Integer, Number as NumberType,
    String as StringType, Boolean, function_of, list_of, forall,
)


@pytest.mark.parametrize("value, tag, expected", [
    (Number(1), "Number", True),
    (Number(1), "Integer", True),
    (Number(1.5), "Integer", False),
    (String("x"), "Number", False),
    (ListLiteral([]), "Null", True),
    (ListLiteral([Number(1)]), "Null", False),
    (Bool(True), "Any", True),
    (Bool(True), "Never", False),
])
def test_value_has_tag(value, tag, expected):
    assert value_has_tag(value, tag) is expected


def test_exact_arity_is_enforced():
    signature = [Param("x"), Param("y")]
    check_call_against_signature([Number(1), Number(2)], signature)
    with pytest.raises(ArityMismatch):
        check_call_against_signature([Number(1)], signature)
    with pytest.raises(ArityMismatch):
        check_call_against_signature([Number(1), Number(2), Number(3)], signature)


def test_variadic_signature_needs_fixed_params_and_honours_max():
    signature = [Param("s", "String"), Param("radix", "Integer", variadic=True)]
    check_call_against_signature([String("10")], signature, max_arg_count=2)
    check_call_against_signature([String("10"), Number(2)], signature, max_arg_count=2)
    with pytest.raises(ArityMismatch):
        check_call_against_signature([], signature, max_arg_count=2)
    with pytest.raises(ArityMismatch, match="at most 2"):
        check_call_against_signature([String("1"), Number(2), Number(3)], signature, max_arg_count=2)


def test_declared_tags_are_checked_for_every_argument():
    signature = [Param("numbers", "Number", variadic=True)]
    with pytest.raises(TypeMismatch, match="argument 2"):
        check_call_against_signature([Number(1), String("2")], signature, name="+")


def test_is_assignable_number_accepts_integer_but_not_the_reverse():
    assert is_assignable(Integer, NumberType)
    assert not is_assignable(NumberType, Integer)
    assert is_assignable(TypeVar("a"), StringType)
    assert is_assignable(StringType, Any)


def test_is_assignable_compares_params_structurally():
    assert is_assignable(list_of(Integer), list_of(NumberType))
    assert not is_assignable(list_of(StringType), list_of(NumberType))


def test_check_call_type_returns_result_type():
    fn = function_of(NumberType, StringType, Boolean)
    assert check_call_type(fn, [Integer, StringType]) == Boolean


def test_check_call_type_arity_and_tags():
    fn = function_of(NumberType, Boolean)
    with pytest.raises(ArityMismatch):
        check_call_type(fn, [])
    with pytest.raises(TypeMismatch):
        check_call_type(fn, [StringType])
    with pytest.raises(NotCallable):
        check_call_type(NumberType, [])


def test_check_call_type_variadic_uses_last_param_for_extra_args():
    fn = VariadicFunctionType([NumberType, NumberType], 1)
    assert check_call_type(fn, [NumberType, Integer, NumberType]) == NumberType
    with pytest.raises(ArityMismatch):
        check_call_type(fn, [])
    with pytest.raises(TypeMismatch):
        check_call_type(fn, [NumberType, StringType])


def test_type_variables_accept_anything():
    identity = forall(["a"], function_of(TypeVar("a"), TypeVar("a")))
    assert check_call_type(identity, [StringType]) == TypeVar("a")


def test_binding_type_from_builtin_attributes():
    attrs = InitialEnvironment["map"].attributes
    t = binding_type(attrs)
    assert isinstance(t, ForallType)
    assert [slot.id for slot in t.forall] == ["Element", "NewElement"]
    assert isinstance(t.body, VariadicFunctionType)
    assert t.body.min_arg_count == 1


def test_binding_type_without_type_variables_is_not_quantified():
    t = binding_type(BindingAttributes(arg_types=[NumberType], ret_type=NumberType))
    assert t == VariadicFunctionType([NumberType, NumberType])


def test_static_check_of_plus():
    plus = binding_type(InitialEnvironment["+"].attributes)
    assert check_call_type(plus, [Integer, NumberType, Integer]) == NumberType
    with pytest.raises(TypeMismatch):
        check_call_type(plus, [StringType])


def test_value_type():
    assert value_type(Number(3)) == Integer
    assert value_type(Number(3.5)) == NumberType
    closure = Closure([Param("x", "Number")], hole)
    assert value_type(closure) == function_of(NumberType, Any)


def test_signature_type_of_variadic_signature():
    t = signature_type([Param("x"), Param("rest", "Number", variadic=True)])
    assert t == VariadicFunctionType([Any, NumberType, Any], min_arg_count=1)


def test_integer_tag_of_values_too_large_for_a_float():
    huge = Number(10 ** 400)
    assert value_has_tag(huge, "Integer")
    assert value_type(huge) == Integer
    assert not value_has_tag(Number(2.5), "Integer")
