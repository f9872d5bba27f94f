"""
Plain-data form of expressions, values and types, and its text encodings.

Every node becomes a dict tagged by `kind`, holding only lists, strings,
numbers, booleans and None, so the result can be written as JSON or YAML.
"""
import json
from typing import Any, Optional

import yaml

from sprig.sprig_datatypes import (
    Expr, hole, Number, Bool, String, Symbol, ListLiteral, Var, NameBinding,
    Call, Define, Let, Letrec, Lambda, Sequence, If, Cond, TypeExpr,
    Builtin, Closure,
)
from sprig.sprig_environment import Environment
from sprig.sprig_errors import MalformedExpression, NotInjectable, UnboundVariable
from sprig.sprig_types import (
    Type, ConcreteType, VariadicFunctionType, TypeVar, TypeVarSlot, ForallType,
)


# --------------------------
# Types
# --------------------------

def type_to_data(t: Type) -> dict:
    match t:
        case VariadicFunctionType():
            return {
                "kind": "variadic-function",
                "of": [type_to_data(p) for p in t.of],
                "min": t.min_arg_count,
                "max": t.max_arg_count,
            }
        case ConcreteType():
            return {"kind": "concrete", "tag": t.tag, "of": [type_to_data(p) for p in t.of]}
        case TypeVar():
            return {"kind": "type-var", "name": t.name}
        case TypeVarSlot():
            return {"kind": "type-var-slot", "id": t.id}
        case ForallType():
            return {"kind": "forall", "forall": [slot.id for slot in t.forall], "body": type_to_data(t.body)}
    raise TypeError(f"not a type: {t!r}")


def type_from_data(data: dict) -> Type:
    kind = _kind(data)
    match kind:
        case "variadic-function":
            return VariadicFunctionType([type_from_data(p) for p in data.get("of", [])],
                                        data.get("min"), data.get("max"))
        case "concrete":
            return ConcreteType(data["tag"], [type_from_data(p) for p in data.get("of", [])])
        case "type-var":
            return TypeVar(data["name"])
        case "type-var-slot":
            return TypeVarSlot(data.get("id"))
        case "forall":
            return ForallType([TypeVarSlot(name) for name in data["forall"]], type_from_data(data["body"]))
    raise MalformedExpression(f"unknown type kind: {kind!r}")


# --------------------------
# Expressions and values
# --------------------------

def expr_to_data(expr: Any) -> dict:
    """Convert an expression (or a datum value) to tagged plain data."""
    match expr:
        case Number() | Bool() | String() | Symbol():
            return {"kind": expr.kind, "value": expr.value}
        case ListLiteral():
            return {
                "kind": "list",
                "heads": [expr_to_data(h) for h in expr.heads],
                "tail": expr_to_data(expr.tail) if expr.tail is not None else None,
            }
        case Var():
            return {"kind": "var", "id": expr.id}
        case NameBinding():
            return {
                "kind": "name-binding",
                "id": expr.id,
                "type": type_to_data(expr.type) if expr.type is not None else None,
                "variadic": expr.variadic,
            }
        case Call():
            return {"kind": "call", "called": expr_to_data(expr.called), "args": [expr_to_data(a) for a in expr.args]}
        case Define():
            return {"kind": "define", "name": expr_to_data(expr.name), "value": expr_to_data(expr.value)}
        case Let() | Letrec():
            return {
                "kind": expr.kind,
                "bindings": [[expr_to_data(n), expr_to_data(v)] for n, v in expr.bindings],
                "body": expr_to_data(expr.body),
            }
        case Lambda():
            return {"kind": "lambda", "params": [expr_to_data(p) for p in expr.params], "body": expr_to_data(expr.body)}
        case Sequence():
            return {"kind": "sequence", "exprs": [expr_to_data(e) for e in expr.exprs]}
        case If():
            return {
                "kind": "if",
                "condition": expr_to_data(expr.condition),
                "then": expr_to_data(expr.then),
                "else": expr_to_data(expr.else_),
            }
        case Cond():
            return {"kind": "cond", "clauses": [[expr_to_data(t), expr_to_data(b)] for t, b in expr.clauses]}
        case TypeExpr():
            return {"kind": "type", "type": type_to_data(expr.type)}
        case Builtin():
            return {"kind": "builtin", "name": expr.name}
        case Closure():
            raise NotInjectable(f"closure {expr.name or '<lambda>'} has no data form")
    if expr is hole:
        return {"kind": "hole"}
    raise TypeError(f"not an expression: {expr!r}")


def expr_from_data(data: dict) -> Expr:
    """Rebuild an expression from its tagged plain-data form."""
    return _from_data(data, None)


def value_from_data(data: dict, env: Environment) -> Any:
    """Like `expr_from_data`, resolving builtin function references by name in `env`."""
    return _from_data(data, env)


def _kind(data: Any) -> str:
    if not isinstance(data, dict) or "kind" not in data:
        raise MalformedExpression(f"expected a dict tagged by 'kind', got {data!r}")
    return data["kind"]


def _from_data(data: dict, env: Optional[Environment]) -> Any:
    kind = _kind(data)

    def sub(d):
        return _from_data(d, env)

    match kind:
        case "hole":
            return hole
        case "number":
            return Number(data["value"])
        case "bool":
            return Bool(bool(data["value"]))
        case "string":
            return String(data["value"])
        case "symbol":
            return Symbol(data["value"])
        case "list":
            tail = data.get("tail")
            return ListLiteral([sub(h) for h in data.get("heads", [])], sub(tail) if tail is not None else None)
        case "var":
            return Var(data["id"])
        case "name-binding":
            t = data.get("type")
            return NameBinding(data["id"], type_from_data(t) if t is not None else None, bool(data.get("variadic")))
        case "call":
            return Call(sub(data["called"]), [sub(a) for a in data.get("args", [])])
        case "define":
            return Define(sub(data["name"]), sub(data["value"]))
        case "let":
            return Let([(sub(n), sub(v)) for n, v in data.get("bindings", [])], sub(data["body"]))
        case "letrec":
            return Letrec([(sub(n), sub(v)) for n, v in data.get("bindings", [])], sub(data["body"]))
        case "lambda":
            return Lambda([sub(p) for p in data.get("params", [])], sub(data["body"]))
        case "sequence":
            return Sequence([sub(e) for e in data.get("exprs", [])])
        case "if":
            return If(sub(data["condition"]), sub(data["then"]), sub(data["else"]))
        case "cond":
            return Cond([(sub(t), sub(b)) for t, b in data.get("clauses", [])])
        case "type":
            return TypeExpr(type_from_data(data["type"]))
        case "builtin":
            if env is None:
                raise MalformedExpression(f"builtin '{data['name']}' can only be loaded as a value")
            cell = env.cell(data["name"])
            if cell is None or cell.is_empty or not isinstance(cell.value, Builtin):
                raise UnboundVariable(data["name"])
            return cell.value
    raise MalformedExpression(f"unknown expression kind: {kind!r}")


# --------------------------
# Text encodings
# --------------------------

def serialize(data: Any, *, fmt: str = "json", pretty: bool = True) -> str:
    """Encode plain data as text. fmt: 'json' | 'yaml'."""
    f = (fmt or "").lower()
    if f == "json":
        return json.dumps(data, ensure_ascii=False, indent=2 if pretty else None)
    if f == "yaml":
        return yaml.safe_dump(data, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def deserialize(text: str | bytes, *, fmt: str = "json") -> Any:
    """Decode text produced by `serialize`."""
    if isinstance(text, (bytes, bytearray)):
        text = text.decode("utf-8")
    f = (fmt or "").lower()
    if f == "json":
        return json.loads(text)
    if f == "yaml":
        return yaml.safe_load(text)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "type_to_data",
    "type_from_data",
    "expr_to_data",
    "expr_from_data",
    "value_from_data",
    "serialize",
    "deserialize",
]
