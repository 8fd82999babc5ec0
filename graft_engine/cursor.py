"""
Cursor: an immutable, chainable position inside a parsed source file.

A Cursor holds the tree, the path of steps taken from the module root, and a
validity flag. Every navigation returns a new Cursor. Once a step fails the
Cursor stays invalid and every later step returns it unchanged, so a recipe
such as

    cursor.enter_class("M").enter_function("f", 1).find_call("helper", 1)

never raises; it either lands on the call or carries the reason of the first
step that could not be taken.

The mutation methods (replace, insert_before, insert_after, append_child) are
terminal: they return a new libcst Module and leave the Cursor untouched.
"""

import logging
import textwrap
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

import libcst as cst

from .errors import TransformError
from .selectors import (
    CallTo, ContainsCode, EnterAssignment, EnterFunction, EnterScope, FindFirst,
    Pattern, Selector, as_pattern, iter_preorder, matches, select,
)

logger = logging.getLogger(__name__)

Fragment = Union[str, cst.CSTNode, Sequence[cst.CSTNode]]

ROOT_LABEL = "<module>"


@dataclass(frozen=True)
class Step:
    """One position on a cursor's path."""
    label: str
    node: cst.CSTNode = field(compare=False, repr=False)


@dataclass(frozen=True)
class Cursor:
    tree: cst.Module = field(compare=False, repr=False)
    steps: Tuple[Step, ...]
    valid: bool = True
    reason: Optional[str] = None

    @classmethod
    def root(cls, tree: cst.Module, label: str = ROOT_LABEL) -> "Cursor":
        """Cursor positioned on the module itself."""
        return cls(tree=tree, steps=(Step(label, tree),))

    # ---------------- Queries ----------------

    @property
    def node(self) -> cst.CSTNode:
        return self.steps[-1].node

    @property
    def label(self) -> str:
        return self.steps[-1].label

    @property
    def path(self) -> Tuple[str, ...]:
        return tuple(step.label for step in self.steps)

    @property
    def code(self) -> str:
        """Source text of the current node ("" when invalid)."""
        if not self.valid:
            return ""
        return self.tree.code_for_node(self.node)

    def is_valid(self) -> bool:
        return self.valid

    def contains(self, pattern: Union[Pattern, str]) -> bool:
        """
        True when the current node, or anything below it, matches `pattern`.

        A plain string is a substring test against the node's source.
        """
        if not self.valid:
            return False
        pattern = as_pattern(pattern)
        if isinstance(pattern, ContainsCode):
            return pattern.text in self.code
        if matches(pattern, self.node, self.tree.code_for_node):
            return True
        return any(matches(pattern, n, self.tree.code_for_node) for n in iter_preorder(self.node))

    # ---------------- Navigation ----------------

    def select(self, selector: Selector) -> "Cursor":
        """Take one navigation step."""
        if not self.valid:
            return self
        result = select(selector, self.node, self.tree.code_for_node)
        if result is None:
            reason = f"{selector.describe()} not found in {self.label}"
            logger.debug(f"Navigation failed at {'/'.join(self.path)}: {reason}")
            return Cursor(tree=self.tree, steps=self.steps, valid=False, reason=reason)
        label, node = result
        return Cursor(tree=self.tree, steps=self.steps + (Step(label, node),))

    def enter_scope(self, kind: str, name: str) -> "Cursor":
        return self.select(EnterScope(kind, name))

    def enter_class(self, name: str) -> "Cursor":
        return self.select(EnterScope("class", name))

    def enter_function(self, name: str, arity: Optional[int] = None) -> "Cursor":
        return self.select(EnterFunction(name, arity))

    def enter_assignment(self, name: str) -> "Cursor":
        return self.select(EnterAssignment(name))

    def find_first(self, pattern: Union[Pattern, str]) -> "Cursor":
        return self.select(FindFirst(as_pattern(pattern)))

    def find_call(self, name: str, arity: Optional[int] = None) -> "Cursor":
        return self.select(FindFirst(CallTo(name, arity)))

    def back(self) -> "Cursor":
        """Cursor at the previous step on the path."""
        if not self.valid:
            return self
        if len(self.steps) == 1:
            return Cursor(tree=self.tree, steps=self.steps, valid=False,
                          reason=f"cannot move above {self.label}")
        return Cursor(tree=self.tree, steps=self.steps[:-1])

    # ---------------- Mutations ----------------

    def replace(self, fragment: Fragment) -> cst.Module:
        """Replace the current node with `fragment`."""
        if not self.valid:
            return self.tree
        target = self.node
        if target is self.tree:
            if isinstance(fragment, cst.Module):
                return fragment
            return self.tree.with_changes(body=_coerce(fragment, cst.BaseStatement))
        kind = _fragment_kind(target)
        new_nodes = _coerce(fragment, kind)
        if kind in _SEQUENCE_KINDS or kind in (cst.BaseStatement, cst.BaseSmallStatement):
            if len(new_nodes) == 1 and hasattr(target, "comma"):
                new_nodes = [new_nodes[0].with_changes(comma=target.comma)]
            replacement = cst.FlattenSentinel(new_nodes) if len(new_nodes) != 1 else new_nodes[0]
        elif len(new_nodes) != 1:
            raise TransformError(f"cannot replace a single {type(target).__name__} with {len(new_nodes)} nodes")
        else:
            replacement = new_nodes[0]
        return _replace_node(self.tree, target, replacement)

    def insert_before(self, fragment: Fragment) -> cst.Module:
        """Insert `fragment` before the statement/item holding the current node."""
        return self._insert(fragment, after=False)

    def insert_after(self, fragment: Fragment) -> cst.Module:
        """Insert `fragment` after the statement/item holding the current node."""
        return self._insert(fragment, after=True)

    def append_child(self, fragment: Fragment) -> cst.Module:
        """
        Append `fragment` as the last child of the current node.

        Modules and compound statements get statements, collections get items,
        calls get arguments, `from x import ...` gets names.
        """
        if not self.valid:
            return self.tree
        target = self.node
        if isinstance(target, cst.Module):
            return target.with_changes(body=list(target.body) + _coerce(fragment, cst.BaseStatement))
        if isinstance(target, cst.IndentedBlock):
            block = target
        else:
            block = getattr(target, "body", None)
            if isinstance(block, cst.SimpleStatementSuite):
                raise TransformError(f"cannot append to the single-line body of {self.label}")
        if isinstance(block, cst.IndentedBlock):
            new_block = block.with_changes(body=list(block.body) + _coerce(fragment, cst.BaseStatement))
            return _replace_node(self.tree, block, new_block)

        container = _CONTAINERS.get(type(target))
        if container is None:
            raise TransformError(f"cannot append children to {type(target).__name__} at {self.label}")
        attr, kind = container
        if isinstance(getattr(target, attr), cst.ImportStar):
            raise TransformError(f"cannot append names to a star import at {self.label}")
        items = list(getattr(target, attr))
        new_items = _splice(items, len(items), _coerce(fragment, kind), _opening_whitespace(target))
        return _replace_node(self.tree, target, target.with_changes(**{attr: new_items}))

    def _insert(self, fragment: Fragment, after: bool) -> cst.Module:
        if not self.valid:
            return self.tree
        parent, member = _enclosing_member(self.tree, self.node)
        if parent is None:
            raise TransformError(f"{self.label} is not inside a statement body or collection")
        if isinstance(parent, (cst.Module, cst.IndentedBlock)):
            body = list(parent.body)
            index = _index_of(body, member) + (1 if after else 0)
            new_body = body[:index] + _coerce(fragment, cst.BaseStatement) + body[index:]
            return _replace_node(self.tree, parent, parent.with_changes(body=new_body))

        attr, kind = _CONTAINERS[type(parent)]
        items = list(getattr(parent, attr))
        index = _index_of(items, member) + (1 if after else 0)
        new_items = _splice(items, index, _coerce(fragment, kind), _opening_whitespace(parent))
        return _replace_node(self.tree, parent, parent.with_changes(**{attr: new_items}))


# --------------------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------------------

# container type -> (attribute holding the items, kind of item)
_CONTAINERS = {
    cst.List: ("elements", cst.BaseElement),
    cst.Tuple: ("elements", cst.BaseElement),
    cst.Set: ("elements", cst.BaseElement),
    cst.Dict: ("elements", cst.BaseDictElement),
    cst.Call: ("args", cst.Arg),
    cst.ImportFrom: ("names", cst.ImportAlias),
}

_SEQUENCE_KINDS = (cst.BaseElement, cst.BaseDictElement, cst.Arg, cst.ImportAlias)


class _IdentityReplacer(cst.CSTTransformer):
    """Swap exactly one node, found by identity."""

    def __init__(self, target: cst.CSTNode, replacement):
        super().__init__()
        self.target = target
        self.replacement = replacement
        self.found = False

    def on_leave(self, original_node, updated_node):
        if original_node is self.target:
            self.found = True
            return self.replacement
        return updated_node


def _replace_node(tree: cst.Module, target: cst.CSTNode, replacement) -> cst.Module:
    replacer = _IdentityReplacer(target, replacement)
    try:
        new_tree = tree.visit(replacer)
    except (TypeError, ValueError, cst.CSTValidationError) as e:
        raise TransformError(f"cannot replace {type(target).__name__}: {e}") from e
    if not replacer.found:
        raise TransformError(f"{type(target).__name__} is not part of this tree")
    return new_tree


def _ancestry(tree: cst.Module, target: cst.CSTNode) -> List[cst.CSTNode]:
    """Nodes from the module down to `target` (inclusive), matched by identity."""
    stack: List[Tuple[cst.CSTNode, List[cst.CSTNode]]] = [(tree, [tree])]
    while stack:
        node, chain = stack.pop()
        if node is target:
            return chain
        for child in reversed(node.children):
            stack.append((child, chain + [child]))
    return []


def _enclosing_member(tree: cst.Module, node: cst.CSTNode):
    """
    Climb from `node` to the nearest ancestor that is an item of a sequence:
    a statement in a body, a collection element, a call argument, an imported name.

    Returns:
        (parent, member) or (None, None)
    """
    chain = _ancestry(tree, node)
    for i in range(len(chain) - 1, 0, -1):
        member, parent = chain[i], chain[i - 1]
        if isinstance(parent, (cst.Module, cst.IndentedBlock)) and isinstance(member, cst.BaseStatement):
            return parent, member
        container = _CONTAINERS.get(type(parent))
        if container is not None and isinstance(member, container[1]):
            return parent, member
    return None, None


def _index_of(items: Sequence[cst.CSTNode], member: cst.CSTNode) -> int:
    for i, item in enumerate(items):
        if item is member:
            return i
    raise TransformError(f"{type(member).__name__} not found in its parent")


def _fragment_kind(node: cst.CSTNode) -> type:
    for kind in (cst.BaseStatement, cst.BaseSmallStatement) + _SEQUENCE_KINDS + (cst.BaseExpression,):
        if isinstance(node, kind):
            return kind
    raise TransformError(f"cannot replace a {type(node).__name__} node")


def _coerce(fragment: Fragment, kind: type) -> List[cst.CSTNode]:
    """Turn a fragment into a list of nodes of `kind`, parsing strings in the matching context."""
    if isinstance(fragment, cst.CSTNode):
        nodes = [fragment]
    elif isinstance(fragment, str):
        nodes = _parse_fragment(fragment, kind)
    else:
        nodes = list(fragment)
    for node in nodes:
        if not isinstance(node, kind):
            raise TransformError(f"expected {kind.__name__}, got {type(node).__name__}")
    return nodes


def _parse_fragment(text: str, kind: type) -> List[cst.CSTNode]:
    source = textwrap.dedent(text).strip()
    try:
        if kind is cst.BaseStatement:
            return list(cst.parse_module(source + "\n").body)
        if kind is cst.BaseSmallStatement:
            line = cst.parse_statement(source + "\n")
            if not isinstance(line, cst.SimpleStatementLine):
                raise TransformError(f"expected a simple statement, got: {source!r}")
            return list(line.body)
        if kind is cst.BaseElement:
            return list(cst.ensure_type(cst.parse_expression(f"[{source}]"), cst.List).elements)
        if kind is cst.BaseDictElement:
            return list(cst.ensure_type(cst.parse_expression(f"{{{source}}}"), cst.Dict).elements)
        if kind is cst.Arg:
            return list(cst.ensure_type(cst.parse_expression(f"f({source})"), cst.Call).args)
        if kind is cst.ImportAlias:
            line = cst.ensure_type(cst.parse_statement(f"from _ import {source}\n"), cst.SimpleStatementLine)
            return list(cst.ensure_type(line.body[0], cst.ImportFrom).names)
        if kind is cst.BaseExpression:
            return [cst.parse_expression(source)]
    except cst.ParserSyntaxError as e:
        raise TransformError(f"invalid fragment {source!r}: {e.message}") from e
    except TypeError as e:
        raise TransformError(f"invalid fragment {source!r}: {e}") from e
    raise TransformError(f"cannot build a {kind.__name__} from text")


def _opening_whitespace(container: cst.CSTNode):
    """Whitespace right after the opening bracket of a container."""
    if isinstance(container, cst.List):
        return container.lbracket.whitespace_after
    if isinstance(container, (cst.Set, cst.Dict)):
        return container.lbrace.whitespace_after
    if isinstance(container, cst.Call):
        return container.whitespace_before_args
    if isinstance(container, cst.Tuple) and container.lpar:
        return container.lpar[0].whitespace_after
    if isinstance(container, cst.ImportFrom) and container.lpar is not None:
        return container.lpar.whitespace_after
    return cst.SimpleWhitespace("")


def _splice(items: List[cst.CSTNode], index: int, new: List[cst.CSTNode], opening) -> List[cst.CSTNode]:
    """
    Insert `new` at `index`, reusing the separators the container already has.

    The old last item's trailing comma (or lack of one) is copied to the new
    last item; every other inserted item gets the container's separator, so
    one-per-line collections stay one-per-line. Comments stay on the items
    they follow and are never copied.
    """
    if not new:
        return items
    if len(items) >= 2:
        separator = _without_comment(items[-2].comma)
    elif isinstance(opening, cst.ParenthesizedWhitespace):
        separator = _without_comment(cst.Comma(whitespace_after=opening))
    else:
        separator = cst.Comma(whitespace_after=cst.SimpleWhitespace(" "))
    trailing = _without_comment(items[-1].comma) if items else cst.MaybeSentinel.DEFAULT
    old_last = items[-1] if items else None

    merged = items[:index] + new + items[index:]
    out = []
    for i, item in enumerate(merged):
        if item is old_last:
            comma = item.comma if i == len(merged) - 1 else _keeping_comment(item.comma, separator)
        elif i == len(merged) - 1:
            comma = trailing
        elif any(item is n for n in new):
            comma = separator
        else:
            comma = item.comma
        out.append(item.with_changes(comma=comma))
    return out


def _without_comment(comma):
    """The same comma with its line break but without a trailing comment or blank lines."""
    if isinstance(comma, cst.Comma) and isinstance(comma.whitespace_after, cst.ParenthesizedWhitespace):
        return comma.with_changes(
            whitespace_after=comma.whitespace_after.with_changes(first_line=cst.TrailingWhitespace(), empty_lines=[])
        )
    return comma


def _keeping_comment(comma, separator):
    """`separator`, except that the comment and blank lines after `comma` are kept."""
    if (isinstance(comma, cst.Comma) and isinstance(separator, cst.Comma)
            and isinstance(comma.whitespace_after, cst.ParenthesizedWhitespace)
            and isinstance(separator.whitespace_after, cst.ParenthesizedWhitespace)):
        return comma.with_changes(whitespace_after=separator.whitespace_after.with_changes(
            first_line=comma.whitespace_after.first_line,
            empty_lines=comma.whitespace_after.empty_lines,
        ))
    return separator
