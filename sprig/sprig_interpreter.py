"""
The sprig evaluator: a call-by-value, tree-walking interpreter over
expressions.
"""
import os
import sys
from contextlib import contextmanager
from typing import Any, List, Optional

from sprig.sprig_datatypes import (
    Expr, _Hole, Number, Bool, String, Symbol, ListLiteral, Var, NameBinding,
    Call, Define, Let, Letrec, Lambda, Sequence, If, Cond, TypeExpr,
    Closure, Builtin, FnValue, Param, Value,
    empty_list, is_function, make_list, value_as_bool,
)
from sprig.sprig_environment import (
    Binding, Cell, Defines, Environment, make_env, merge_envs,
)
from sprig.sprig_errors import (
    HoleEvaluated, MalformedExpression, NotCallable, NotImplementedFeature,
    RecursionDepthExceeded, SprigError, UnboundVariable,
)
from sprig.sprig_library import InitialEnvironment
from sprig.sprig_typecheck import check_call_against_signature
from sprig.sprig_types import ConcreteType

DEFAULT_MAX_CALL_DEPTH = 1000

# Host stack frames one nested sprig call may take (call, body, argument).
_FRAMES_PER_CALL = 8


def max_call_depth_from_env() -> int:
    """SPRIG_MAX_CALL_DEPTH, or the default when unset or malformed."""
    raw = os.environ.get("SPRIG_MAX_CALL_DEPTH")
    try:
        depth = int(raw) if raw is not None else DEFAULT_MAX_CALL_DEPTH
    except ValueError:
        return DEFAULT_MAX_CALL_DEPTH
    return depth if depth > 0 else DEFAULT_MAX_CALL_DEPTH


class Evaluator:
    """Call-by-value evaluator.

    Names resolve first in the lexical environment (the base environment
    merged with any enclosing scopes), then in `defines`. Evaluation has no
    side effects on the forest; the only state it touches is `defines` (via
    `define` expressions) and the cells of the scopes it creates.
    """
    def __init__(self, base_env: Optional[Environment] = None, defines: Optional[Defines] = None,
                 max_call_depth: Optional[int] = None):
        self.base_env = base_env if base_env is not None else InitialEnvironment
        self.defines = defines if defines is not None else Defines()
        self.max_call_depth = max_call_depth if max_call_depth is not None else max_call_depth_from_env()
        self.call_stack: List[dict] = []

    def _dbg(self, *parts):
        if os.environ.get("SPRIG_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def eval(self, expr: Expr, env: Optional[Environment] = None) -> Value:
        """Public entry point: evaluate `expr` with `env` layered over the base environment."""
        with self._host_stack():
            return self._eval(expr, merge_envs(self.base_env, env))

    def _eval(self, expr: Expr, env: Environment) -> Value:
        match expr:
            case _Hole():
                # TODO: report which slot is empty once holes carry their location
                raise HoleEvaluated(expr=expr)

            case Number() | Bool() | String() | Symbol() | ListLiteral():
                return expr

            case Var():
                cell = self._lookup(expr.id, env)
                if cell is None or cell.is_empty:
                    raise UnboundVariable(expr.id, expr=expr)
                return cell.value

            case Call():
                called = self._eval(expr.called, env)
                if not is_function(called):
                    raise NotCallable(f"cannot call non-function {self._pformat(called)}", expr=expr)
                args = [self._eval(arg, env) for arg in expr.args]
                return self._call(called, args, expr)

            case Define():
                name = self._binder(expr.name, "define").id
                value_expr = expr.value
                self.defines.add(name, lambda: Cell(self._named(self._eval(value_expr, env), name)))
                return empty_list()

            case Let():
                names = [self._binder(name, "let").id for name, _ in expr.bindings]
                values = [self._named(self._eval(value, env), name)
                          for name, (_, value) in zip(names, expr.bindings)]
                scope = make_env(Binding(name, Cell(value)) for name, value in zip(names, values))
                return self._eval(expr.body, merge_envs(env, scope))

            case Letrec():
                names = [self._binder(name, "letrec").id for name, _ in expr.bindings]
                cells = {name: Cell() for name in names}
                inner = merge_envs(env, make_env(Binding(name, cell) for name, cell in cells.items()))
                for name, (_, value) in zip(names, expr.bindings):
                    cells[name].value = self._named(self._eval(value, inner), name)
                return self._eval(expr.body, inner)

            case Lambda():
                return Closure(self._signature(expr), expr.body, env)

            case Sequence():
                result: Value = empty_list()
                for sub in expr.exprs:
                    result = self._eval(sub, env)
                return result

            case If():
                condition = self._eval(expr.condition, env)
                return self._eval(expr.then if value_as_bool(condition) else expr.else_, env)

            case Cond():
                raise NotImplementedFeature("'cond' is not supported yet", expr=expr)

            case TypeExpr():
                raise NotImplementedFeature("types cannot be evaluated as expressions", expr=expr)

            case NameBinding():
                raise MalformedExpression(f"name-binding '{expr.id}' is not an expression", expr=expr)

        raise TypeError(f"unknown expression kind: {expr!r}")

    def call(self, fn: FnValue, args: List[Value]) -> Value:
        """Call a function value with already-evaluated arguments."""
        with self._host_stack():
            return self._call(fn, args, None)

    def _call(self, fn: FnValue, args: List[Value], call_site: Optional[Expr]) -> Value:
        if not is_function(fn):
            raise NotCallable(f"cannot call non-function {self._pformat(fn)}", expr=call_site)
        if len(self.call_stack) >= self.max_call_depth:
            raise RecursionDepthExceeded(
                f"call depth exceeded {self.max_call_depth} (set SPRIG_MAX_CALL_DEPTH to raise the limit)",
                expr=call_site,
            )

        name = fn.name or "<lambda>"
        self._dbg("Evaluator.call", name, "argc", len(args))
        self.call_stack.append({"name": name, "func": fn, "args": args, "call_site": call_site})
        try:
            check_call_against_signature(args, fn.signature, getattr(fn, "max_arg_count", None), fn.name)

            if isinstance(fn, Builtin):
                return fn.body(args, self)

            bindings = []
            for i, param in enumerate(fn.signature):
                if param.variadic:
                    bindings.append(Binding(param.name, Cell(make_list(args[i:]))))
                elif i < len(args):
                    bindings.append(Binding(param.name, Cell(args[i])))
            call_env = merge_envs(self.base_env, fn.env, make_env(bindings))
            return self._eval(fn.body, call_env)
        except RecursionError:
            err = RecursionDepthExceeded(f"host stack exhausted at call depth {len(self.call_stack)}", expr=call_site)
            err.stacktrace = [dict(frame) for frame in self.call_stack]
            raise err from None
        except SprigError as e:
            if not e.stacktrace:
                e.stacktrace = [dict(frame) for frame in self.call_stack]
            if e.expr is None:
                e.expr = call_site
            raise
        finally:
            self.call_stack.pop()

    @contextmanager
    def _host_stack(self):
        """Raise the interpreter recursion limit to fit `max_call_depth` nested calls."""
        previous = sys.getrecursionlimit()
        if not self.call_stack:
            sys.setrecursionlimit(previous + self.max_call_depth * _FRAMES_PER_CALL)
            try:
                yield
            finally:
                sys.setrecursionlimit(previous)
        else:
            yield

    def _lookup(self, name: str, env: Environment) -> Optional[Cell]:
        binding = env.get(name)
        if binding is not None:
            return binding.cell
        return self.defines.get(name)

    def _binder(self, slot: Expr, form: str) -> NameBinding:
        if not isinstance(slot, NameBinding):
            raise MalformedExpression(f"'{form}' must be given a name", expr=slot)
        return slot

    def _signature(self, expr: Lambda) -> List[Param]:
        signature = []
        for i, slot in enumerate(expr.params):
            binding = self._binder(slot, "lambda")
            if binding.variadic and i != len(expr.params) - 1:
                raise MalformedExpression(f"only the last parameter can be variadic, not '{binding.id}'", expr=slot)
            tag = binding.type.tag if isinstance(binding.type, ConcreteType) and binding.type.tag != "Any" else None
            signature.append(Param(binding.id, tag, binding.variadic))
        return signature

    @staticmethod
    def _named(value: Any, name: str) -> Any:
        if isinstance(value, Closure) and value.name is None:
            value.name = name
        return value

    @staticmethod
    def _pformat(obj: Any) -> str:
        from sprig.sprig_printer import Printer
        return Printer().pformat(obj)
