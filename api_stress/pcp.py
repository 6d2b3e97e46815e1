"""
PCP expression language.

Programs are JSON text. An array whose first element is a string is a call,
``["name", arg1, arg2, ...]``; any other JSON value is a literal. Example::

    ["==", ["prop", ["getJson"], "errno"], 0]

Functions injected by the caller (``getJson`` for response checks) are looked
up before the built-ins.
"""

import json
import re
from typing import Any, Callable, Dict, List, Protocol


class PcpError(Exception):
    """A program could not be parsed or failed while running."""


class ExpressionEngine(Protocol):
    """Anything that runs a program with injected functions; failures raise PcpError."""

    def execute(self, program: str, functions: Dict[str, Callable[..., Any]]) -> Any:
        ...


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def json_equal(a: Any, b: Any) -> bool:
    """JSON equality: true/false never equal 1/0, 1 equals 1.0."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(json_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(json_equal(x, y) for x, y in zip(a, b))
    if type(a) is not type(b):
        return False
    return a == b


def _arity(name: str, args: List[Any], count: int) -> None:
    if len(args) != count:
        raise PcpError(f"'{name}' expects {count} argument(s), got {len(args)}")


def _numbers(name: str, args: List[Any]) -> List[Any]:
    for a in args:
        if not _is_number(a):
            raise PcpError(f"'{name}' expects numbers, got {a!r}")
    return args


def _compare(name: str, op: Callable[[Any, Any], bool]) -> Callable[..., bool]:
    def fn(*args):
        _arity(name, list(args), 2)
        a, b = args
        if _is_number(a) and _is_number(b):
            return op(a, b)
        if isinstance(a, str) and isinstance(b, str):
            return op(a, b)
        raise PcpError(f"'{name}' cannot compare {a!r} and {b!r}")
    return fn


def _prop(value, *path):
    if not path:
        raise PcpError("'prop' expects at least one key")
    for key in path:
        if isinstance(value, dict):
            if not isinstance(key, str):
                raise PcpError(f"'prop' key for an object must be a string, got {key!r}")
            value = value.get(key)
        elif isinstance(value, list):
            if not isinstance(key, int) or isinstance(key, bool):
                raise PcpError(f"'prop' index for a list must be an integer, got {key!r}")
            if not -len(value) <= key < len(value):
                value = None
            else:
                value = value[key]
        else:
            value = None
    return value


def _subtract(*args):
    if not args:
        raise PcpError("'-' expects at least one argument")
    _numbers("-", list(args))
    if len(args) == 1:
        return -args[0]
    result = args[0]
    for a in args[1:]:
        result -= a
    return result


def _add(*args):
    if args and all(isinstance(a, str) for a in args):
        return "".join(args)
    result = 0
    for a in _numbers("+", list(args)):
        result += a
    return result


def _multiply(*args):
    result = 1
    for a in _numbers("*", list(args)):
        result *= a
    return result


def _divide(*args):
    _arity("/", list(args), 2)
    a, b = _numbers("/", list(args))
    if b == 0:
        raise PcpError("division by zero")
    return a / b


def _equal(*args):
    _arity("==", list(args), 2)
    return json_equal(args[0], args[1])


def _not_equal(*args):
    _arity("!=", list(args), 2)
    return not json_equal(args[0], args[1])


def _not(*args):
    _arity("!", list(args), 1)
    if not isinstance(args[0], bool):
        raise PcpError(f"'!' expects a boolean, got {args[0]!r}")
    return not args[0]


def _dict(*args):
    if len(args) % 2:
        raise PcpError("'Dict' expects key/value pairs")
    out = {}
    for key, value in zip(args[0::2], args[1::2]):
        if not isinstance(key, str):
            raise PcpError(f"'Dict' keys must be strings, got {key!r}")
        out[key] = value
    return out


def _len(*args):
    _arity("len", list(args), 1)
    if not isinstance(args[0], (str, list, dict)):
        raise PcpError(f"'len' expects a string, list or object, got {args[0]!r}")
    return len(args[0])


def _contains(*args):
    _arity("contains", list(args), 2)
    container, item = args
    if isinstance(container, str):
        if not isinstance(item, str):
            raise PcpError("'contains' on a string expects a string")
        return item in container
    if isinstance(container, list):
        return any(json_equal(x, item) for x in container)
    if isinstance(container, dict):
        return item in container
    raise PcpError(f"'contains' expects a string, list or object, got {container!r}")


def _match(*args):
    _arity("match", list(args), 2)
    text, pattern = args
    if not isinstance(text, str) or not isinstance(pattern, str):
        raise PcpError("'match' expects a string and a pattern")
    try:
        return re.search(pattern, text) is not None
    except re.error as e:
        raise PcpError(f"bad pattern {pattern!r}: {e}")


BUILTINS: Dict[str, Callable[..., Any]] = {
    "==": _equal,
    "!=": _not_equal,
    "<": _compare("<", lambda a, b: a < b),
    "<=": _compare("<=", lambda a, b: a <= b),
    ">": _compare(">", lambda a, b: a > b),
    ">=": _compare(">=", lambda a, b: a >= b),
    "!": _not,
    "+": _add,
    "-": _subtract,
    "*": _multiply,
    "/": _divide,
    "prop": _prop,
    "List": lambda *a: list(a),
    "Dict": _dict,
    "len": _len,
    "contains": _contains,
    "match": _match,
}

LAZY_FORMS = ("if", "&&", "||")


class PcpEngine:
    """Evaluates PCP programs against built-ins plus injected functions."""

    def __init__(self, builtins: Dict[str, Callable[..., Any]] = None):
        self.builtins = dict(BUILTINS if builtins is None else builtins)

    def parse(self, program: str) -> Any:
        try:
            return json.loads(program)
        except json.JSONDecodeError as e:
            raise PcpError(f"cannot parse program: {e}")

    def execute(self, program: str, functions: Dict[str, Callable[..., Any]] = None) -> Any:
        """
        Run a program and return its value.

        Args:
            program: Program source (JSON text)
            functions: Extra callables visible to the program, by name

        Returns:
            Whatever the outermost expression evaluates to
        """
        scope = dict(self.builtins)
        scope.update(functions or {})
        return self._eval(self.parse(program), scope)

    def _eval(self, node: Any, scope: Dict[str, Callable[..., Any]]) -> Any:
        if not (isinstance(node, list) and node and isinstance(node[0], str)):
            return node

        name, params = node[0], node[1:]
        if name in LAZY_FORMS and name not in scope:
            return self._eval_lazy(name, params, scope)

        fn = scope.get(name)
        if fn is None:
            raise PcpError(f"unknown function '{name}'")

        args = [self._eval(p, scope) for p in params]
        try:
            return fn(*args)
        except PcpError:
            raise
        except Exception as e:
            raise PcpError(f"'{name}' failed: {e}") from e

    def _eval_lazy(self, name: str, params: List[Any], scope: Dict[str, Callable[..., Any]]) -> Any:
        if name == "if":
            if len(params) not in (2, 3):
                raise PcpError("'if' expects a condition, a then-branch and an optional else-branch")
            cond = self._eval(params[0], scope)
            if not isinstance(cond, bool):
                raise PcpError(f"'if' condition must be a boolean, got {cond!r}")
            if cond:
                return self._eval(params[1], scope)
            return self._eval(params[2], scope) if len(params) == 3 else None

        # && and || short-circuit
        stop_on = name == "||"
        for p in params:
            value = self._eval(p, scope)
            if not isinstance(value, bool):
                raise PcpError(f"'{name}' expects booleans, got {value!r}")
            if value is stop_on:
                return stop_on
        return not stop_on
