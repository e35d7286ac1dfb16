"""YAML codec of results and request files.

Results are dumped in insertion order with literal blocks for
multi-line strings. `positions` maps key paths of a document to the
zero-based lines they occupy, which lets the renderer annotate its
output and the loader report definition ranges.
"""

from typing import TYPE_CHECKING, NamedTuple

from yaml import MappingNode, SafeDumper, SafeLoader, SequenceNode, compose, safe_load
from yaml import dump as yaml_dump

if TYPE_CHECKING:
    from yaml import Node

if TYPE_CHECKING:
    from pytest_ply.values import RuntimeValue

#: Wide enough to never fold long scalar lines.
LINE_WIDTH = 1 << 16


class LineRange(NamedTuple):
    """Zero-based inclusive range of lines."""

    start: int
    end: int


type KeyPath = tuple[str | int, ...]


class ResultDumper(SafeDumper):
    """Safe dumper rendering multi-line strings as literal blocks."""


def _represent_str(dumper: SafeDumper, value: str) -> 'Node':
    """Represent a string, literal block style when it spans lines."""
    if '\n' in value:
        return dumper.represent_scalar('tag:yaml.org,2002:str', value, style='|')

    return dumper.represent_str(value)


ResultDumper.add_representer(str, _represent_str)


def dump(value: 'RuntimeValue', indent: int = 2) -> str:
    """Serialize a value to YAML.

    Args:
        value: Plain value to serialize.
        indent: Indentation of nested blocks.

    Returns:
        YAML text with `\\n` line endings and a trailing newline.
    """
    return yaml_dump(
        value,
        Dumper=ResultDumper,
        indent=indent,
        width=LINE_WIDTH,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def load(text: str) -> 'RuntimeValue':
    """Parse YAML text with the safe loader."""
    return safe_load(text)


def _walk(node: 'Node', path: KeyPath, ranges: dict[KeyPath, LineRange]) -> None:
    """Collect line ranges of all nested keys and items."""
    if isinstance(node, MappingNode):
        for key_node, value_node in node.value:
            key_path = (*path, key_node.value)
            ranges[key_path] = LineRange(key_node.start_mark.line, _last_line(key_node, value_node))
            _walk(value_node, key_path, ranges)

    elif isinstance(node, SequenceNode):
        for index, item in enumerate(node.value):
            item_path = (*path, index)
            ranges[item_path] = LineRange(item.start_mark.line, _last_line(item, item))
            _walk(item, item_path, ranges)


def _last_line(start: 'Node', end: 'Node') -> int:
    """Last line occupied by a node.

    Block nodes end at column zero of the following line.
    """
    line = end.end_mark.line
    if end.end_mark.column == 0 and line > start.start_mark.line:
        line -= 1

    return line


def positions(text: str) -> dict[KeyPath, LineRange]:
    """Map key paths of a YAML document to their line ranges.

    Args:
        text: YAML document.

    Returns:
        Line range by key path, for example `('first', 'response')`.
        Sequence items are addressed by index.
    """
    ranges: dict[KeyPath, LineRange] = {}
    if (root := compose(text, Loader=SafeLoader)) is not None:
        _walk(root, (), ranges)

    return ranges
