"""
The builtin environments: a subset of the Scheme report (R5RS chapter 6)
plus sprig's own extensions, and help cards for their bindings.
"""
import inspect
from functools import reduce
from typing import Any, Callable, List, TYPE_CHECKING

import pystache

from sprig.sprig_datatypes import (
    Builtin, Param, Value, Number, Bool, String, Symbol, ListLiteral,
    Closure, empty_list, get_variadic, is_function, list_value_as_vector,
)
from sprig.sprig_environment import (
    Binding, BindingAttributes, Cell, Environment, make_env, merge_envs,
)
from sprig.sprig_errors import DivisionByZero, NotImplementedFeature, TypeMismatch
from sprig.sprig_types import (
    Any as AnyType, Boolean, Integer, Never, Number as NumberType,
    String as StringType, Symbol as SymbolType, TypeVar,
    ConcreteType, function_of, list_of, promise_of,
)

if TYPE_CHECKING:
    from sprig.sprig_interpreter import Evaluator


def builtin(name: str, *signature: Param, **attributes):
    """Mark a library method as the body of the builtin `name`.

    `attributes` become the binding's BindingAttributes.
    """
    def decorate(func):
        func._sprig_builtin = (name, list(signature), attributes)
        return func
    return decorate


def _chain_compare(numbers: List[Number], compare: Callable[[Any, Any], bool]) -> Bool:
    return Bool(all(compare(a.value, b.value) for a, b in zip(numbers, numbers[1:])))


def _number(value) -> Number:
    if isinstance(value, float) and value.is_integer():
        return Number(int(value))
    return Number(value)


def _columns(name: str, lists: List[ListLiteral]) -> List[List[Value]]:
    rows = [list_value_as_vector(lst) for lst in lists]
    if any(row is None for row in rows):
        raise TypeMismatch(f"one of the lists passed to '{name}' is an improper list")
    if any(len(row) != len(rows[0]) for row in rows):
        raise TypeMismatch(f"lists passed to '{name}' have different length")
    return [list(col) for col in zip(*rows)]


_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _radix(args: List[Value], index: int) -> int:
    if len(args) <= index:
        return 10
    radix = args[index].value
    if radix != int(radix) or not 2 <= radix <= 36:
        raise TypeMismatch(f"radix must be an integer between 2 and 36, got {radix}")
    return int(radix)


def _format_number(value, radix: int = 10) -> str:
    if radix == 10:
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    if value != int(value):
        raise TypeMismatch(f"cannot write non-integer {value} in base {radix}")
    n = abs(int(value))
    digits = ""
    while True:
        n, d = divmod(n, radix)
        digits = _DIGITS[d] + digits
        if n == 0:
            break
    return ("-" if value < 0 else "") + digits


class SchemeReport:
    """Python implementations of the Scheme report builtins."""

    # --- Control ---
    @builtin("apply", Param("function", "Function"), Param("args", "List"),
             doc="Calls `function` with the elements of `args` as arguments.",
             arg_types=[function_of(AnyType, TypeVar("Out")), list_of(AnyType)], ret_type=TypeVar("Out"),
             min_arg_count=2, max_arg_count=2)
    def _apply(self, args, evaluator: 'Evaluator'):
        fn, arg_list = args
        argv = list_value_as_vector(arg_list)
        if argv is None:
            raise TypeMismatch("argument list passed to 'apply' is an improper list")
        return evaluator.call(fn, argv)

    @builtin("map", Param("function", "Function"), Param("lists", "List", variadic=True),
             doc="Applies `function` elementwise to the elements of `lists` and returns a list of the results, in order.",
             arg_types=[function_of(TypeVar("Element"), TypeVar("NewElement")), list_of(TypeVar("Element"))],
             ret_type=list_of(TypeVar("NewElement")), min_arg_count=1,
             heading_arg_count=1)
    def _map(self, args, evaluator):
        fn = args[0]
        lists = get_variadic(1, args)
        if not lists:
            return empty_list()
        return ListLiteral([evaluator.call(fn, col) for col in _columns("map", lists)])

    @builtin("for-each", Param("proc", "Function"), Param("lists", "List", variadic=True),
             doc="Runs `proc` on the elements of `lists`, in order from the first element to the last. "
                 "Any values that `proc` returns are discarded.",
             arg_types=[function_of(TypeVar("Element"), AnyType), list_of(TypeVar("Element"))],
             ret_type=AnyType, min_arg_count=1,
             heading_arg_count=1)
    def _for_each(self, args, evaluator):
        proc = args[0]
        for col in _columns("for-each", get_variadic(1, args)):
            evaluator.call(proc, col)
        return empty_list()

    @builtin("force", Param("promise", "Promise"),
             doc="Continues the delayed computation represented by `promise`.",
             arg_types=[promise_of(TypeVar("Value"))], ret_type=TypeVar("Value"),
             min_arg_count=1, max_arg_count=1)
    def _force(self, args, evaluator):
        raise NotImplementedFeature("'force' is not supported yet")

    @builtin("call-with-current-continuation", Param("next", "Function"),
             doc="Packages the current continuation as an \"escape function\", and transfers control to `next` "
                 "with the escape function as its sole argument. Calling the escape function transfers control "
                 "to the point immediately after `call-with-current-continuation`.",
             arg_types=[function_of(function_of(TypeVar("Result"), Never), TypeVar("Result"))],
             ret_type=TypeVar("Result"), min_arg_count=1, max_arg_count=1)
    def _call_cc(self, args, evaluator):
        raise NotImplementedFeature("'call-with-current-continuation' is not supported yet")

    @builtin("eval", Param("expression"), Param("environment"),
             doc="Evaluates `expression`, using the bindings in `environment` for name resolution.",
             arg_types=[AnyType, AnyType], ret_type=AnyType, min_arg_count=2, max_arg_count=2)
    def _eval(self, args, evaluator):
        raise NotImplementedFeature("'eval' is not supported yet")

    # --- Predicates ---
    @builtin("boolean?", Param("obj"), doc="Determines whether `obj` is a boolean (true or false) value.",
             arg_types=[AnyType], ret_type=Boolean, min_arg_count=1, max_arg_count=1)
    def _boolean_q(self, args, evaluator):
        return Bool(isinstance(args[0], Bool))

    @builtin("symbol?", Param("obj"), doc="Determines whether `obj` is a symbol value.",
             arg_types=[AnyType], ret_type=Boolean, min_arg_count=1, max_arg_count=1)
    def _symbol_q(self, args, evaluator):
        return Bool(isinstance(args[0], Symbol))

    @builtin("number?", Param("obj"), doc="Determines whether `obj` is a number value.",
             arg_types=[AnyType], ret_type=Boolean, min_arg_count=1, max_arg_count=1)
    def _number_q(self, args, evaluator):
        return Bool(isinstance(args[0], Number))

    @builtin("string?", Param("obj"), doc="Determines whether `obj` is a string value.",
             arg_types=[AnyType], ret_type=Boolean, min_arg_count=1, max_arg_count=1)
    def _string_q(self, args, evaluator):
        return Bool(isinstance(args[0], String))

    @builtin("list?", Param("obj"), doc="Determines whether `obj` is a list value.",
             arg_types=[AnyType], ret_type=Boolean, min_arg_count=1, max_arg_count=1)
    def _list_q(self, args, evaluator):
        return Bool(isinstance(args[0], ListLiteral))

    @builtin("procedure?", Param("obj"), doc="Determines whether `obj` is a procedure (function) value.",
             arg_types=[AnyType], ret_type=Boolean, min_arg_count=1, max_arg_count=1)
    def _procedure_q(self, args, evaluator):
        return Bool(is_function(args[0]))

    # --- Conversions ---
    @builtin("string->number", Param("string", "String"), Param("radix", "Integer", variadic=True),
             doc="Parses a number value from `string`, written with `radix` as the base (ten when no `radix` "
                 "is given). Returns false if `string` is not a number.",
             arg_types=[StringType, Integer], ret_type=NumberType, min_arg_count=1, max_arg_count=2)
    def _string_to_number(self, args, evaluator):
        text = args[0].value.strip()
        radix = _radix(args, 1)
        try:
            return Number(int(text, radix))
        except ValueError:
            pass
        if radix == 10:
            try:
                return Number(float(text))
            except ValueError:
                pass
        return Bool(False)

    @builtin("number->string", Param("number", "Number"), Param("radix", "Integer", variadic=True),
             doc="Writes `number` as a string, using `radix` as the base (ten when no `radix` is given).",
             arg_types=[NumberType, Integer], ret_type=StringType, min_arg_count=1, max_arg_count=2)
    def _number_to_string(self, args, evaluator):
        return String(_format_number(args[0].value, _radix(args, 1)))

    @builtin("string->symbol", Param("name", "String"),
             doc="Returns the unique symbol with the given `name`.",
             arg_types=[StringType], ret_type=SymbolType, min_arg_count=1, max_arg_count=1)
    def _string_to_symbol(self, args, evaluator):
        return Symbol(args[0].value)

    @builtin("symbol->string", Param("symbol", "Symbol"),
             doc="Returns the name of `symbol` as a string.",
             arg_types=[SymbolType], ret_type=StringType, min_arg_count=1, max_arg_count=1)
    def _symbol_to_string(self, args, evaluator):
        return String(args[0].value)

    # --- Arithmetic ---
    @builtin("+", Param("numbers", "Number", variadic=True),
             doc="Adds `numbers`. If given no numbers, the result is 0.",
             arg_types=[NumberType], ret_type=NumberType, infix=True)
    def _add(self, args, evaluator):
        return _number(sum(n.value for n in args))

    @builtin("-", Param("number", "Number"), Param("numbers", "Number", variadic=True),
             doc="Subtracts the sum of all subsequent `numbers` from the first one. "
                 "Given one argument, negates it.",
             arg_types=[NumberType], ret_type=NumberType, min_arg_count=1, infix=True)
    def _sub(self, args, evaluator):
        first, rest = args[0].value, get_variadic(1, args)
        if not rest:
            return _number(-first)
        return _number(first - sum(n.value for n in rest))

    @builtin("*", Param("numbers", "Number", variadic=True),
             doc="Multiplies `numbers`. If given no numbers, the result is 1.",
             arg_types=[NumberType], ret_type=NumberType, infix=True)
    def _mul(self, args, evaluator):
        return _number(reduce(lambda acc, n: acc * n.value, args, 1))

    @builtin("/", Param("number", "Number"), Param("numbers", "Number", variadic=True),
             doc="Divides the first `number` by the product of all subsequent ones. "
                 "Given one argument, returns its reciprocal.",
             arg_types=[NumberType], ret_type=NumberType, min_arg_count=1, infix=True)
    def _div(self, args, evaluator):
        first, rest = args[0].value, get_variadic(1, args)
        if not rest:
            first, divisor = 1, first
        else:
            divisor = reduce(lambda acc, n: acc * n.value, rest, 1)
        if divisor == 0:
            raise DivisionByZero(f"cannot divide {_format_number(first)} by zero")
        if isinstance(first, int) and isinstance(divisor, int) and first % divisor == 0:
            return Number(first // divisor)
        return _number(first / divisor)

    @builtin("=", Param("numbers", "Number", variadic=True),
             doc="Returns whether `numbers` are all equal to each other.",
             arg_types=[NumberType], ret_type=Boolean, infix=True)
    def _eq(self, args, evaluator):
        return _chain_compare(args, lambda a, b: a == b)

    @builtin("<", Param("numbers", "Number", variadic=True),
             doc="Returns whether `numbers` are in strictly increasing order.",
             arg_types=[NumberType], ret_type=Boolean, infix=True)
    def _lt(self, args, evaluator):
        return _chain_compare(args, lambda a, b: a < b)

    @builtin(">", Param("numbers", "Number", variadic=True),
             doc="Returns whether `numbers` are in strictly decreasing order.",
             arg_types=[NumberType], ret_type=Boolean, infix=True)
    def _gt(self, args, evaluator):
        return _chain_compare(args, lambda a, b: a > b)

    @builtin("<=", Param("numbers", "Number", variadic=True),
             doc="Returns whether `numbers` are in (non-strictly) increasing order.",
             arg_types=[NumberType], ret_type=Boolean, infix=True)
    def _lte(self, args, evaluator):
        return _chain_compare(args, lambda a, b: a <= b)

    @builtin(">=", Param("numbers", "Number", variadic=True),
             doc="Returns whether `numbers` are in (non-strictly) decreasing order.",
             arg_types=[NumberType], ret_type=Boolean, infix=True)
    def _gte(self, args, evaluator):
        return _chain_compare(args, lambda a, b: a >= b)

    # --- Lists ---
    @builtin("cons", Param("head"), Param("tail"),
             doc="Constructs a pair with `head` as the head and `tail` as the tail. "
                 "If `tail` is a list, the resulting pair is a list.",
             min_arg_count=2, max_arg_count=2)
    def _cons(self, args, evaluator):
        head, tail = args
        return ListLiteral([head], tail)

    @builtin("list", Param("elements", variadic=True),
             doc="Constructs a list from the given `elements`.",
             arg_types=[TypeVar("Element")], ret_type=list_of(TypeVar("Element")))
    def _list(self, args, evaluator):
        return ListLiteral(list(args))

    @builtin("append", Param("lists", "List", variadic=True),
             doc="Constructs a list consisting of the given `lists` concatenated together.",
             arg_types=[list_of(TypeVar("Element"))], ret_type=list_of(TypeVar("Element")))
    def _append(self, args, evaluator):
        raise NotImplementedFeature("'append' is not supported yet")

    @builtin("reverse", Param("list", "List"),
             doc="Constructs a new list consisting of the elements of `list` in reverse order.",
             arg_types=[list_of(TypeVar("Element"))], ret_type=list_of(TypeVar("Element")),
             min_arg_count=1, max_arg_count=1)
    def _reverse(self, args, evaluator):
        raise NotImplementedFeature("'reverse' is not supported yet")

    @builtin("first", Param("pair", "List"),
             doc="Returns the first element of `pair`. (If `pair` is a list, this is the head.)",
             arg_types=[list_of(TypeVar("Element"))], ret_type=TypeVar("Element"),
             min_arg_count=1, max_arg_count=1)
    def _first(self, args, evaluator):
        pair = args[0]
        if not pair.heads:
            raise TypeMismatch("'first' needs a pair, got the empty list")
        return pair.heads[0]

    @builtin("rest", Param("pair", "List"),
             doc="Returns the second element of `pair`. (If `pair` is a list, this is the tail.)",
             arg_types=[list_of(TypeVar("Element"))], ret_type=list_of(TypeVar("Element")),
             min_arg_count=1, max_arg_count=1)
    def _rest(self, args, evaluator):
        pair = args[0]
        if not pair.heads:
            raise TypeMismatch("'rest' needs a pair, got the empty list")
        if len(pair.heads) > 1:
            return ListLiteral(pair.heads[1:], pair.tail)
        return pair.tail if pair.tail is not None else empty_list()

    @builtin("null?", Param("obj"),
             doc="Returns whether `obj` is the empty list.",
             arg_types=[AnyType], ret_type=Boolean, min_arg_count=1, max_arg_count=1)
    def _null_q(self, args, evaluator):
        obj = args[0]
        return Bool(isinstance(obj, ListLiteral) and not obj.heads and obj.tail is None)

    @builtin("length", Param("list", "List"),
             doc="Returns the number of elements in `list`.",
             arg_types=[list_of(TypeVar("Element"))], ret_type=Integer,
             min_arg_count=1, max_arg_count=1)
    def _length(self, args, evaluator):
        vector = list_value_as_vector(args[0])
        if vector is None:
            raise TypeMismatch("argument passed to 'length' is an improper list")
        return Number(len(vector))


class Extensions:
    """Builtins that are not part of the Scheme report."""

    @builtin("null", doc="Returns the empty list.", ret_type=ConcreteType("Null"),
             min_arg_count=0, max_arg_count=0)
    def _null(self, args, evaluator):
        return empty_list()


def library_environment(library: Any) -> Environment:
    """Bind every @builtin method of `library` in a new environment."""
    bindings = []
    for _, member in inspect.getmembers(library):
        marker = getattr(member, "_sprig_builtin", None)
        if marker is None:
            continue
        name, signature, attributes = marker
        attrs = BindingAttributes(**attributes)
        fn = Builtin(name, signature, member, attrs.max_arg_count)
        bindings.append(Binding(name, Cell(fn), attrs))
    return make_env(bindings)


SchemeReportEnvironment = library_environment(SchemeReport())
ExtensionsEnvironment = library_environment(Extensions())
InitialEnvironment = merge_envs(ExtensionsEnvironment, SchemeReportEnvironment)


# =================================================================
# Help
# =================================================================

HELP_TEMPLATE = """\
({{name}}{{#params}} {{.}}{{/params}})
{{#type}}
{{type}}
{{/type}}
{{#doc}}

{{doc}}
{{/doc}}
"""


def binding_help(binding: Binding) -> str:
    """A plain-text help card for `binding`: call shape, declared type and doc."""
    from sprig.sprig_printer import Printer
    from sprig.sprig_typecheck import binding_type

    value = None if binding.cell.is_empty else binding.cell.value
    params = []
    if isinstance(value, (Builtin, Closure)):
        params = [f"{p.name}..." if p.variadic else p.name for p in value.signature]

    attrs = binding.attributes
    type_text = None
    if attrs is not None and (attrs.arg_types or attrs.ret_type):
        type_text = Printer().pformat(binding_type(attrs))

    context = {
        "name": binding.name,
        "params": params,
        "type": type_text,
        "doc": attrs.doc if attrs is not None else None,
    }
    renderer = pystache.Renderer(escape=lambda u: u)
    return renderer.render(HELP_TEMPLATE, context).rstrip("\n")
