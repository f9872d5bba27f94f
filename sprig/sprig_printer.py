"""
A pretty-printer for sprig expressions, values and types.
"""
import json

from sprig.sprig_datatypes import (
    _Hole, Number, Bool, String, Symbol, ListLiteral, Var, NameBinding, Call,
    Define, Let, Letrec, Lambda, Sequence, If, Cond, TypeExpr, Closure, Builtin,
)
from sprig.sprig_types import ConcreteType, VariadicFunctionType, TypeVar, TypeVarSlot, ForallType


class Printer:
    """Formats sprig objects as Scheme-style source text."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            _Hole: self._pformat_hole,
            Number: self._pformat_number,
            Bool: self._pformat_bool,
            String: self._pformat_string,
            Symbol: self._pformat_symbol,
            ListLiteral: self._pformat_list,
            Var: self._pformat_var,
            NameBinding: self._pformat_name_binding,
            Call: self._pformat_call,
            Define: self._pformat_define,
            Let: self._pformat_let,
            Letrec: self._pformat_let,
            Lambda: self._pformat_lambda,
            Sequence: self._pformat_sequence,
            If: self._pformat_if,
            Cond: self._pformat_cond,
            TypeExpr: self._pformat_type_expr,
            Closure: self._pformat_procedure,
            Builtin: self._pformat_procedure,
            ConcreteType: self._pformat_concrete_type,
            VariadicFunctionType: self._pformat_variadic_function_type,
            TypeVar: self._pformat_type_var,
            TypeVarSlot: self._pformat_type_var_slot,
            ForallType: self._pformat_forall,
        }

    def _form(self, head, parts, level):
        return "(" + " ".join([head, *(self.pformat(p, level + 1) for p in parts)]) + ")"

    # --- Atoms ---
    def _pformat_hole(self, obj, level):
        return "_"

    def _pformat_number(self, obj, level):
        value = obj.value
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def _pformat_bool(self, obj, level):
        return "#t" if obj.value else "#f"

    def _pformat_string(self, obj, level):
        return json.dumps(obj.value, ensure_ascii=False)

    def _pformat_symbol(self, obj, level):
        return obj.value

    def _pformat_list(self, obj, level):
        heads = list(obj.heads)
        tail = obj.tail
        while isinstance(tail, ListLiteral):
            heads.extend(tail.heads)
            tail = tail.tail
        items = [self.pformat(h, level + 1) for h in heads]
        if tail is not None:
            items += [".", self.pformat(tail, level + 1)]
        return "(" + " ".join(items) + ")"

    def _pformat_var(self, obj, level):
        return obj.id

    def _pformat_name_binding(self, obj, level):
        text = obj.id + ("..." if obj.variadic else "")
        if obj.type is not None:
            text += f": {self.pformat(obj.type, level)}"
        return text

    # --- Special forms ---
    def _pformat_call(self, obj, level):
        return "(" + " ".join(self.pformat(p, level + 1) for p in [obj.called, *obj.args]) + ")"

    def _pformat_define(self, obj, level):
        return self._form("define", [obj.name, obj.value], level)

    def _pformat_let(self, obj, level):
        bindings = " ".join(
            f"({self.pformat(name, level + 1)} {self.pformat(value, level + 1)})" for name, value in obj.bindings
        )
        return f"({obj.kind} ({bindings}) {self.pformat(obj.body, level + 1)})"

    def _pformat_lambda(self, obj, level):
        params = list(obj.params)
        rest = None
        if params and isinstance(params[-1], NameBinding) and params[-1].variadic:
            rest = params.pop()
            rest = NameBinding(rest.id, rest.type)
        fixed = " ".join(self.pformat(p, level + 1) for p in params)
        if rest is None:
            param_text = f"({fixed})"
        elif not params:
            param_text = self.pformat(rest, level + 1)
        else:
            param_text = f"({fixed} . {self.pformat(rest, level + 1)})"
        return f"(lambda {param_text} {self.pformat(obj.body, level + 1)})"

    def _pformat_sequence(self, obj, level):
        return self._form("begin", obj.exprs, level)

    def _pformat_if(self, obj, level):
        return self._form("if", [obj.condition, obj.then, obj.else_], level)

    def _pformat_cond(self, obj, level):
        clauses = " ".join(
            f"({self.pformat(test, level + 1)} {self.pformat(body, level + 1)})" for test, body in obj.clauses
        )
        return f"(cond {clauses})" if clauses else "(cond)"

    def _pformat_type_expr(self, obj, level):
        return self.pformat(obj.type, level)

    # --- Values ---
    def _pformat_procedure(self, obj, level):
        return f"#<procedure {obj.name}>" if obj.name else "#<procedure>"

    # --- Types ---
    def _pformat_params(self, obj, level):
        if not obj.of:
            return ""
        return "[" + ", ".join(self.pformat(p, level + 1) for p in obj.of) + "]"

    def _pformat_concrete_type(self, obj, level):
        return obj.tag + self._pformat_params(obj, level)

    def _pformat_variadic_function_type(self, obj, level):
        lower = obj.min_arg_count or 0
        upper = "" if obj.max_arg_count is None else str(obj.max_arg_count)
        return f"{obj.tag}{self._pformat_params(obj, level)}{{{lower}..{upper}}}"

    def _pformat_type_var(self, obj, level):
        return obj.name

    def _pformat_type_var_slot(self, obj, level):
        return "_" if obj.is_hole else obj.id

    def _pformat_forall(self, obj, level):
        names = " ".join(self.pformat(slot, level) for slot in obj.forall)
        return f"forall {names}. {self.pformat(obj.body, level + 1)}"
