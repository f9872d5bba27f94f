import sys

import pytest

from sprig.sprig_datatypes import (
    hole, Number, Bool, String, Symbol, ListLiteral, Var, NameBinding, Call,
    Define, Let, Letrec, Lambda, Sequence, If, Cond, TypeExpr, Closure,
)
from sprig.sprig_environment import Defines, Environment
from sprig.sprig_errors import (
    ArityMismatch, HoleEvaluated, MalformedExpression, NotCallable,
    NotImplementedFeature, RecursionDepthExceeded, TypeMismatch, UnboundVariable,
)
from sprig import sprig_interpreter
from sprig.sprig_interpreter import Evaluator, max_call_depth_from_env, DEFAULT_MAX_CALL_DEPTH
from sprig.sprig_types import Number as NumberType


def call(name, *args):
    return Call(Var(name), list(args))


def lam(params, body):
    return Lambda([NameBinding(p) for p in params], body)


@pytest.fixture
def ev():
    return Evaluator()


def test_literal_data_evaluates_to_itself(ev):
    datum = ListLiteral([
        Number(1), Bool(True), Symbol("abc"), ListLiteral([]), ListLiteral([Number(2), Number(3)]),
    ])
    assert ev.eval(datum) is datum


def test_evaluating_a_hole_fails(ev):
    with pytest.raises(HoleEvaluated):
        ev.eval(hole)
    with pytest.raises(HoleEvaluated):
        ev.eval(call("+", Number(1), hole))


def test_sequence_returns_last_value(ev):
    assert ev.eval(Sequence([Bool(False), String("result")])) == String("result")
    assert ev.eval(Sequence([])) == ListLiteral([])


def test_var_lookup_prefers_lexical_env(ev):
    env = Environment.from_values({"x": Number(1)})
    assert ev.eval(Var("x"), env) == Number(1)
    with pytest.raises(UnboundVariable) as excinfo:
        ev.eval(Var("y"))
    assert excinfo.value.name == "y"


def test_call_builtin(ev):
    assert ev.eval(call("+", Number(1), Number(2), Number(3))) == Number(6)


def test_calling_a_non_function_fails(ev):
    with pytest.raises(NotCallable):
        ev.eval(Call(Number(1), []))


def test_zero_parameter_lambda(ev):
    thunk = ev.eval(Lambda([], Number(5)))
    assert isinstance(thunk, Closure)
    assert ev.call(thunk, []) == Number(5)
    with pytest.raises(ArityMismatch):
        ev.call(thunk, [Number(1)])


def test_lambda_does_not_evaluate_body(ev):
    assert isinstance(ev.eval(Lambda([], hole)), Closure)


def test_closures_capture_their_environment(ev):
    # ((let ((x 10)) (lambda (y) (+ x y))) 5)
    make_adder = Let([(NameBinding("x"), Number(10))], lam(["y"], call("+", Var("x"), Var("y"))))
    assert ev.eval(Call(make_adder, [Number(5)])) == Number(15)


def test_let_is_not_sequential(ev):
    # (let ((x 1)) (let ((x 2) (y x)) y)) -> 1
    expr = Let([(NameBinding("x"), Number(1))],
               Let([(NameBinding("x"), Number(2)), (NameBinding("y"), Var("x"))], Var("y")))
    assert ev.eval(expr) == Number(1)


def test_letrec_mutual_recursion(ev):
    # (letrec ((even? (lambda (n) (if (= n 0) #t (odd? (- n 1)))))
    #          (odd?  (lambda (n) (if (= n 0) #f (even? (- n 1))))))
    #   (even? 10))
    even = lam(["n"], If(call("=", Var("n"), Number(0)), Bool(True), call("odd?", call("-", Var("n"), Number(1)))))
    odd = lam(["n"], If(call("=", Var("n"), Number(0)), Bool(False), call("even?", call("-", Var("n"), Number(1)))))
    expr = Letrec([(NameBinding("even?"), even), (NameBinding("odd?"), odd)], call("even?", Number(10)))
    assert ev.eval(expr) == Bool(True)


def test_letrec_direct_sibling_reference_before_assignment_fails(ev):
    expr = Letrec([(NameBinding("a"), Var("b")), (NameBinding("b"), Number(1))], Var("a"))
    with pytest.raises(UnboundVariable):
        ev.eval(expr)


def test_if_only_false_is_falsy(ev):
    assert ev.eval(If(Number(0), String("yes"), hole)) == String("yes")
    assert ev.eval(If(Bool(False), hole, String("no"))) == String("no")


def test_define_is_lazy_and_supports_forward_reference():
    defines = Defines()
    ev = Evaluator(defines=defines)
    assert ev.eval(Define(NameBinding("a"), call("+", Var("b"), Number(1)))) == ListLiteral([])
    assert ev.eval(Define(NameBinding("b"), Number(41))) == ListLiteral([])
    assert ev.eval(Var("a")) == Number(42)


def test_define_names_its_closure():
    ev = Evaluator()
    ev.eval(Define(NameBinding("id"), lam(["x"], Var("x"))))
    assert ev.eval(Var("id")).name == "id"


def test_define_needs_a_name(ev):
    with pytest.raises(MalformedExpression):
        ev.eval(Define(Var("x"), Number(1)))
    with pytest.raises(MalformedExpression):
        ev.eval(Lambda([Var("x")], Var("x")))


def test_unimplemented_forms(ev):
    with pytest.raises(NotImplementedFeature):
        ev.eval(Cond([(Bool(True), Number(1))]))
    with pytest.raises(NotImplementedError):
        ev.eval(TypeExpr(NumberType))


def test_variadic_parameter_collects_trailing_args(ev):
    fn = Lambda([NameBinding("first"), NameBinding("rest", variadic=True)], Var("rest"))
    assert ev.eval(Call(fn, [Number(1), Number(2), Number(3)])) == ListLiteral([Number(2), Number(3)])
    assert ev.eval(Call(fn, [Number(1)])) == ListLiteral([])
    with pytest.raises(ArityMismatch):
        ev.eval(Call(fn, []))


def test_only_the_last_parameter_may_be_variadic(ev):
    with pytest.raises(MalformedExpression):
        ev.eval(Lambda([NameBinding("xs", variadic=True), NameBinding("y")], hole))


def test_typed_parameter_is_checked(ev):
    fn = Lambda([NameBinding("n", NumberType)], Var("n"))
    assert ev.eval(Call(fn, [Number(2)])) == Number(2)
    with pytest.raises(TypeMismatch):
        ev.eval(Call(fn, [String("two")]))


def test_builtins_can_call_back_into_closures(ev):
    double = lam(["x"], call("*", Var("x"), Number(2)))
    result = ev.eval(call("map", double, ListLiteral([Number(1), Number(2)])))
    assert result == ListLiteral([Number(2), Number(4)])


def test_errors_carry_the_call_stack(ev):
    # ((lambda (x) (undefined x)) 1)
    fn = lam(["x"], call("undefined", Var("x")))
    with pytest.raises(UnboundVariable) as excinfo:
        ev.eval(Call(fn, [Number(1)]))
    assert [frame["name"] for frame in excinfo.value.stacktrace] == ["<lambda>"]
    assert excinfo.value.expr == Var("undefined")
    assert ev.call_stack == []


def test_runaway_recursion_is_capped():
    ev = Evaluator(max_call_depth=20)
    ev.eval(Define(NameBinding("loop"), lam(["n"], call("loop", Var("n")))))
    with pytest.raises(RecursionDepthExceeded):
        ev.eval(call("loop", Number(0)))
    assert ev.call_stack == []


def test_deep_recursion_within_the_default_limit(ev):
    # (define count (lambda (n) (if (= n 0) 0 (+ 1 (count (- n 1))))))
    body = If(call("=", Var("n"), Number(0)), Number(0),
              call("+", Number(1), call("count", call("-", Var("n"), Number(1)))))
    ev.eval(Define(NameBinding("count"), lam(["n"], body)))
    assert ev.eval(call("count", Number(150))) == Number(150)


def test_depth_above_the_host_limit_still_reports_sprig_error(monkeypatch):
    monkeypatch.setenv("SPRIG_MAX_CALL_DEPTH", "2000")
    ev = Evaluator()
    ev.eval(Define(NameBinding("loop"), lam(["n"], call("loop", Var("n")))))
    with pytest.raises(RecursionDepthExceeded):
        ev.eval(call("loop", Number(0)))
    assert ev.call_stack == []


def test_host_stack_exhaustion_becomes_recursion_depth_exceeded(monkeypatch):
    monkeypatch.setattr(sprig_interpreter, "_FRAMES_PER_CALL", 0)
    limit = sys.getrecursionlimit()
    ev = Evaluator(max_call_depth=10 * limit)
    ev.eval(Define(NameBinding("loop"), lam(["n"], call("loop", Var("n")))))
    with pytest.raises(RecursionDepthExceeded, match="host stack") as excinfo:
        ev.eval(call("loop", Number(0)))
    assert excinfo.value.stacktrace
    assert ev.call_stack == []
    assert sys.getrecursionlimit() == limit


def test_zero_depth_rejects_every_call():
    ev = Evaluator(max_call_depth=0)
    assert ev.max_call_depth == 0
    with pytest.raises(RecursionDepthExceeded):
        ev.eval(call("+", Number(1)))


@pytest.mark.parametrize("raw, expected", [
    (None, DEFAULT_MAX_CALL_DEPTH),
    ("250", 250),
    ("lots", DEFAULT_MAX_CALL_DEPTH),
    ("-3", DEFAULT_MAX_CALL_DEPTH),
])
def test_max_call_depth_from_env(monkeypatch, raw, expected):
    if raw is None:
        monkeypatch.delenv("SPRIG_MAX_CALL_DEPTH", raising=False)
    else:
        monkeypatch.setenv("SPRIG_MAX_CALL_DEPTH", raw)
    assert max_call_depth_from_env() == expected
    assert Evaluator().max_call_depth == expected


def test_explicit_depth_overrides_env(monkeypatch):
    monkeypatch.setenv("SPRIG_MAX_CALL_DEPTH", "7")
    assert Evaluator(max_call_depth=30).max_call_depth == 30


def test_debug_tracing(monkeypatch, capsys, ev):
    monkeypatch.setenv("SPRIG_DEBUG", "1")
    ev.eval(call("+", Number(1)))
    assert "[DBG] Evaluator.call + argc 1" in capsys.readouterr().err
