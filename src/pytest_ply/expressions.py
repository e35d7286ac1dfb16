"""Restricted expression language for `${...}` placeholders.

Expressions are compiled once into a tree of callables and evaluated
against a `ContextDict`. The language covers what request and
expected-result templates need and nothing more:

- literals: numbers, quoted strings, `true`, `false`, `null`, arrays;
- free variables bound to top-level context keys;
- property access (`a.b`), indexing (`a[0]`, `a['b']`);
- arithmetic, comparison, logical operators and the ternary operator;
- a whitelist of string and array methods plus the `length` property.

There is no attribute access on arbitrary objects and no way to call
anything outside the whitelist, so evaluating an untrusted template can
not execute code.
"""

import operator
from contextlib import contextmanager
from collections.abc import Callable, Mapping
from re import VERBOSE, sub
from re import compile as regexp
from typing import TYPE_CHECKING, NamedTuple

from pytest_ply.errors import ExpressionError
from pytest_ply.names import IDENTIFIER_PATTERN
from pytest_ply.values import stringify

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pytest_ply.context import ContextDict
    from pytest_ply.values import RuntimeValue

#: Compiled expression node. Receives the evaluation context and
#: returns the computed value.
type Node = Callable[['ContextDict'], 'RuntimeValue']

_TOKEN_PATTERN = regexp(rf'''
    (?P<space>\s+)
  | (?P<number>\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<name>{IDENTIFIER_PATTERN.pattern})
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||[-+*/%!<>?:.,\[\]()])
''', flags=VERBOSE)

_ESCAPES = {
    'n': '\n',
    'r': '\r',
    't': '\t',
}

#: Deepest nesting of parentheses, brackets, ternaries and unary operators.
MAX_DEPTH = 64

_CONSTANTS: dict[str, 'RuntimeValue'] = {
    'true': True,
    'false': False,
    'null': None,
    'undefined': None,
}


class Token(NamedTuple):
    """Lexical token of an expression."""

    kind: str
    value: str
    position: int


def tokenize(source: str) -> 'Iterator[Token]':
    """Split an expression into tokens.

    Args:
        source: Expression text without the surrounding `${` and `}`.

    Yields:
        Tokens in source order, whitespace excluded.

    Raises:
        ExpressionError: On a character that starts no token.
    """
    position = 0
    while position < len(source):
        match = _TOKEN_PATTERN.match(source, position)
        if not match or not match.lastgroup:
            raise ExpressionError(f'Unexpected character {source[position]!r} at {position}')
        if match.lastgroup != 'space':
            yield Token(match.lastgroup, match.group(), position)
        position = match.end()


def _unquote(value: str) -> str:
    """Strip quotes and decode escapes of a string literal."""
    return sub(r'\\(.)', lambda match: _ESCAPES.get(match[1], match[1]), value[1:-1])


def _number(value: str) -> int | float:
    """Convert a number literal."""
    if value.isdecimal():
        return int(value)

    return float(value)


def _truthy(value: 'RuntimeValue') -> bool:
    """Return the truth value used by logical operators."""
    return bool(value)


def _get_member(value: 'RuntimeValue', name: str) -> 'RuntimeValue':
    """Read a property of a value.

    Raises:
        ExpressionError: If the property does not exist.
    """
    if isinstance(value, Mapping):
        if name in value:
            return value[name]
        raise ExpressionError(f'Cannot read {name!r} of object')

    if name == 'length' and isinstance(value, (str, list, tuple)):
        return len(value)

    if value is None:
        raise ExpressionError(f'Cannot read {name!r} of null')

    raise ExpressionError(f'Cannot read {name!r} of {type(value).__name__}')


def _get_item(value: 'RuntimeValue', key: 'RuntimeValue') -> 'RuntimeValue':
    """Index a value.

    Raises:
        ExpressionError: If the key or index does not exist.
    """
    if isinstance(value, Mapping):
        return _get_member(value, stringify(key))

    if isinstance(key, int) and not isinstance(key, bool) and isinstance(value, (str, list, tuple)):
        if 0 <= key < len(value):
            return value[key]
        raise ExpressionError(f'Index {key} is out of range')

    if isinstance(key, str):
        return _get_member(value, key)

    raise ExpressionError(f'Cannot index {type(value).__name__} with {key!r}')


def _substring(value: str, start: int, end: int | None = None) -> str:
    """Substring with clamped and ordered bounds."""
    length = len(value)
    start = min(max(int(start), 0), length)
    end = length if end is None else min(max(int(end), 0), length)
    if start > end:
        start, end = end, start

    return value[start:end]


def _split(value: str, separator: str | None = None) -> list[str]:
    """Split a string, an empty separator splits into characters."""
    if separator is None:
        return [value]

    if separator == '':
        return list(value)

    return value.split(separator)


def _index_of(value: 'RuntimeValue', item: 'RuntimeValue') -> int:
    """Position of an item or substring, `-1` if absent."""
    if isinstance(value, str):
        return value.find(item)

    return next((index for index, other in enumerate(value) if other == item), -1)


_STRING_METHODS: dict[str, Callable[..., 'RuntimeValue']] = {
    'toUpperCase': str.upper,
    'toLowerCase': str.lower,
    'trim': str.strip,
    'startsWith': str.startswith,
    'endsWith': str.endswith,
    'includes': lambda value, item: item in value,
    'indexOf': _index_of,
    'substring': _substring,
    'slice': lambda value, start=None, end=None: value[start:end],
    'split': _split,
    'replace': lambda value, old, new: value.replace(old, new, 1),
}

_SEQUENCE_METHODS: dict[str, Callable[..., 'RuntimeValue']] = {
    'join': lambda value, separator=',': separator.join(stringify(item) for item in value),
    'includes': lambda value, item: item in value,
    'indexOf': _index_of,
    'slice': lambda value, start=None, end=None: list(value[start:end]),
}


def _call_method(value: 'RuntimeValue', name: str, args: list['RuntimeValue']) -> 'RuntimeValue':
    """Call a whitelisted method on a string or sequence.

    Raises:
        ExpressionError: If the method is unknown or fails.
    """
    methods: dict[str, Callable[..., RuntimeValue]] = {}
    if isinstance(value, str):
        methods = _STRING_METHODS
    elif isinstance(value, (list, tuple)):
        methods = _SEQUENCE_METHODS

    if name not in methods:
        raise ExpressionError(f'{type(value).__name__}.{name} is not a function')

    try:
        return methods[name](value, *args)
    except (TypeError, ValueError) as error:
        raise ExpressionError(f'{name}: {error}') from error


def _add(left: 'RuntimeValue', right: 'RuntimeValue') -> 'RuntimeValue':
    """Add numbers or concatenate when either side is a string."""
    if isinstance(left, str) or isinstance(right, str):
        return stringify(left) + stringify(right)

    return left + right


def _multiply(left: 'RuntimeValue', right: 'RuntimeValue') -> 'RuntimeValue':
    """Multiply numbers only, strings and arrays do not repeat."""
    if not all(isinstance(value, (int, float)) and not isinstance(value, bool) for value in (left, right)):
        raise TypeError('unsupported operand')

    return left * right


_BINARY: dict[str, Callable[['RuntimeValue', 'RuntimeValue'], 'RuntimeValue']] = {
    '==': operator.eq,
    '===': operator.eq,
    '!=': operator.ne,
    '!==': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
    '+': _add,
    '-': operator.sub,
    '*': _multiply,
    '/': operator.truediv,
    '%': operator.mod,
}


def _const(value: 'RuntimeValue') -> Node:
    return lambda context: value  # noqa: ARG005


def _lookup(name: str) -> Node:
    return lambda context: context.lookup(name)


def _member(target: Node, name: str) -> Node:
    return lambda context: _get_member(target(context), name)


def _index(target: Node, key: Node) -> Node:
    return lambda context: _get_item(target(context), key(context))


def _method(target: Node, name: str, args: list[Node]) -> Node:
    return lambda context: _call_method(target(context), name, [arg(context) for arg in args])


def _array(items: list[Node]) -> Node:
    return lambda context: [item(context) for item in items]


def _binary(symbol: str, left: Node, right: Node) -> Node:
    function = _BINARY[symbol]

    def evaluate(context: 'ContextDict') -> 'RuntimeValue':
        left_value, right_value = left(context), right(context)
        try:
            return function(left_value, right_value)
        except (TypeError, ZeroDivisionError, OverflowError) as error:
            raise ExpressionError(
                f'Can not evaluate {stringify(left_value)} {symbol} {stringify(right_value)}',
            ) from error

    return evaluate


def _logical(symbol: str, left: Node, right: Node) -> Node:
    if symbol == '&&':
        return lambda context: right(context) if _truthy(value := left(context)) else value

    return lambda context: value if _truthy(value := left(context)) else right(context)


def _negate(operand: Node) -> Node:
    return lambda context: not _truthy(operand(context))


def _minus(operand: Node) -> Node:
    def evaluate(context: 'ContextDict') -> 'RuntimeValue':
        value = operand(context)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ExpressionError(f'Can not negate {stringify(value)}')
        return -value

    return evaluate


def _conditional(condition: Node, then: Node, otherwise: Node) -> Node:
    return lambda context: then(context) if _truthy(condition(context)) else otherwise(context)


class _Parser:
    """Recursive-descent parser producing expression nodes.

    Grammar, lowest precedence first::

        ternary  := or ('?' ternary ':' ternary)?
        or       := and ('||' and)*
        and      := equality ('&&' equality)*
        equality := compare (('==' | '!=' | '===' | '!==') compare)*
        compare  := additive (('<' | '<=' | '>' | '>=') additive)*
        additive := term (('+' | '-') term)*
        term     := unary (('*' | '/' | '%') unary)*
        unary    := ('!' | '-') unary | postfix
        postfix  := primary ('.' name ('(' args ')')? | '[' ternary ']')*
        primary  := number | string | name | '(' ternary ')' | '[' args ']'
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = list(tokenize(source))
        self.position = 0
        self.depth = 0

    def parse(self) -> Node:
        if not self.tokens:
            raise ExpressionError('Empty expression')

        node = self.ternary()
        if (token := self.peek()) is not None:
            raise self.unexpected(token)

        return node

    def peek(self) -> Token | None:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise ExpressionError(f'Unexpected end of expression {self.source!r}')
        self.position += 1
        return token

    def accept(self, *symbols: str) -> str | None:
        token = self.peek()
        if token is not None and token.kind == 'op' and token.value in symbols:
            self.position += 1
            return token.value
        return None

    def expect(self, symbol: str) -> None:
        token = self.advance()
        if token.kind != 'op' or token.value != symbol:
            raise self.unexpected(token)

    def unexpected(self, token: Token) -> ExpressionError:
        return ExpressionError(f'Unexpected token {token.value!r} at {token.position}')

    @contextmanager
    def nested(self) -> 'Iterator[None]':
        self.depth += 1
        try:
            if self.depth > MAX_DEPTH:
                raise ExpressionError(f'Expression is nested deeper than {MAX_DEPTH} levels')
            yield
        finally:
            self.depth -= 1

    def ternary(self) -> Node:
        with self.nested():
            condition = self.logical_or()
            if self.accept('?'):
                then = self.ternary()
                self.expect(':')
                otherwise = self.ternary()
                return _conditional(condition, then, otherwise)
            return condition

    def logical_or(self) -> Node:
        node = self.logical_and()
        while self.accept('||'):
            node = _logical('||', node, self.logical_and())
        return node

    def logical_and(self) -> Node:
        node = self.equality()
        while self.accept('&&'):
            node = _logical('&&', node, self.equality())
        return node

    def equality(self) -> Node:
        node = self.compare()
        while symbol := self.accept('==', '!=', '===', '!=='):
            node = _binary(symbol, node, self.compare())
        return node

    def compare(self) -> Node:
        node = self.additive()
        while symbol := self.accept('<', '<=', '>', '>='):
            node = _binary(symbol, node, self.additive())
        return node

    def additive(self) -> Node:
        node = self.term()
        while symbol := self.accept('+', '-'):
            node = _binary(symbol, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while symbol := self.accept('*', '/', '%'):
            node = _binary(symbol, node, self.unary())
        return node

    def unary(self) -> Node:
        if self.accept('!'):
            with self.nested():
                return _negate(self.unary())
        if self.accept('-'):
            with self.nested():
                return _minus(self.unary())
        return self.postfix()

    def postfix(self) -> Node:
        node = self.primary()
        while True:
            if self.accept('.'):
                token = self.advance()
                if token.kind != 'name':
                    raise self.unexpected(token)
                if self.accept('('):
                    node = _method(node, token.value, self.arguments(')'))
                else:
                    node = _member(node, token.value)
            elif self.accept('['):
                key = self.ternary()
                self.expect(']')
                node = _index(node, key)
            else:
                return node

    def arguments(self, closing: str) -> list[Node]:
        items: list[Node] = []
        if self.accept(closing):
            return items
        while True:
            items.append(self.ternary())
            if self.accept(closing):
                return items
            self.expect(',')

    def primary(self) -> Node:
        token = self.advance()

        if token.kind == 'number':
            return _const(_number(token.value))

        if token.kind == 'string':
            return _const(_unquote(token.value))

        if token.kind == 'name':
            if token.value in _CONSTANTS:
                return _const(_CONSTANTS[token.value])
            return _lookup(token.value)

        if token.value == '(':
            node = self.ternary()
            self.expect(')')
            return node

        if token.value == '[':
            return _array(self.arguments(']'))

        raise self.unexpected(token)


class Expression:
    """Compiled `${...}` expression.

    Compilation happens once at construction; evaluation may be repeated
    against different contexts.
    """

    def __init__(self, source: str) -> None:
        """Compile an expression.

        Args:
            source: Expression text without the surrounding `${` and `}`.

        Raises:
            ExpressionError: If the expression is syntactically invalid.
        """
        self.source = source
        try:
            self.node = _Parser(source).parse()
        except RecursionError as error:
            raise ExpressionError('Expression is too complex') from error

    def __call__(self, context: 'ContextDict') -> 'RuntimeValue':
        """Evaluate the expression against a context.

        Raises:
            ExpressionError: If evaluation fails.
        """
        try:
            return self.node(context)
        except RecursionError as error:
            raise ExpressionError('Expression is too complex') from error
        except MemoryError as error:
            raise ExpressionError('Expression result is too large') from error

    def __repr__(self) -> str:
        """String represenatation."""
        return f'Expression({self.source!r})'
