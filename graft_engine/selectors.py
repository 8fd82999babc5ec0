"""
Navigation steps and search patterns.

Both are closed sets of frozen tagged values. `select` and `matches` dispatch
over every variant explicitly, so each kind of step has exactly one way to
succeed and one way to fail.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple, Union

import libcst as cst
import libcst.matchers as m
from libcst.helpers import get_full_name_for_node

SCOPE_KINDS = ("class", "if")


# --------------------------------------------------------------------------------------
# Patterns
# --------------------------------------------------------------------------------------

@dataclass(frozen=True)
class ContainsCode:
    """First statement or collection item whose source contains `text`."""
    text: str

    def describe(self) -> str:
        return f"code containing {self.text!r}"


@dataclass(frozen=True)
class CallTo:
    """Call whose callee has the dotted name `name` (and `arity` arguments, if given)."""
    name: str
    arity: Optional[int] = None

    def describe(self) -> str:
        if self.arity is None:
            return f"call to {self.name}"
        return f"call to {self.name}/{self.arity}"


@dataclass(frozen=True)
class ImportOf:
    """
    `import module` or `from module import name`.

    Relative imports are written with their leading dots, e.g.
    ImportOf(".", "views") matches `from . import views`.
    """
    module: str
    name: Optional[str] = None

    def describe(self) -> str:
        if self.name is None:
            return f"import of {self.module}"
        return f"import of {self.name} from {self.module}"


@dataclass(frozen=True)
class AssignTo:
    """Plain or annotated assignment to the variable `name`."""
    name: str

    def describe(self) -> str:
        return f"assignment to {self.name}"


@dataclass(frozen=True)
class StringLiteral:
    """String literal whose evaluated value is `value`, whatever its quoting."""
    value: str

    def describe(self) -> str:
        return f"string {self.value!r}"


@dataclass(frozen=True)
class Matches:
    """Any node accepted by a libcst.matchers matcher."""
    matcher: m.BaseMatcherNode
    description: str

    def describe(self) -> str:
        return self.description


Pattern = Union[ContainsCode, CallTo, ImportOf, AssignTo, StringLiteral, Matches]

# Nodes ContainsCode can stop at: the members of bodies and collections.
_CODE_UNITS = (
    cst.BaseStatement,
    cst.BaseElement,
    cst.BaseDictElement,
    cst.Arg,
)


def as_pattern(pattern: Union[Pattern, str]) -> Pattern:
    """Plain strings are shorthand for ContainsCode."""
    if isinstance(pattern, str):
        return ContainsCode(pattern)
    return pattern


def _import_module_name(node: cst.ImportFrom) -> str:
    dots = "".join(dot.value for dot in node.relative)
    if node.module is None:
        return dots
    return dots + (get_full_name_for_node(node.module) or "")


def _imported_names(node: Union[cst.Import, cst.ImportFrom]) -> List[str]:
    if isinstance(node.names, cst.ImportStar):
        return ["*"]
    return [get_full_name_for_node(alias.name) or "" for alias in node.names]


def matches(pattern: Pattern, node: cst.CSTNode, code_for: Callable[[cst.CSTNode], str]) -> bool:
    """
    Test one node against a pattern.

    Args:
        pattern: Pattern variant to test
        node: Candidate node
        code_for: Renders a node to source (needed by ContainsCode)
    """
    if isinstance(pattern, ContainsCode):
        return isinstance(node, _CODE_UNITS) and pattern.text in code_for(node)

    if isinstance(pattern, CallTo):
        if not isinstance(node, cst.Call):
            return False
        if get_full_name_for_node(node.func) != pattern.name:
            return False
        return pattern.arity is None or len(node.args) == pattern.arity

    if isinstance(pattern, ImportOf):
        if isinstance(node, cst.Import):
            return pattern.name is None and pattern.module in _imported_names(node)
        if isinstance(node, cst.ImportFrom):
            if _import_module_name(node) != pattern.module:
                return False
            return pattern.name is None or pattern.name in _imported_names(node)
        return False

    if isinstance(pattern, AssignTo):
        return _assigned_value(node, pattern.name) is not None

    if isinstance(pattern, StringLiteral):
        if not isinstance(node, cst.SimpleString):
            return False
        try:
            return node.evaluated_value == pattern.value
        except (ValueError, SyntaxError):
            # unevaluable literal
            return False

    if isinstance(pattern, Matches):
        return m.matches(node, pattern.matcher)

    raise TypeError(f"Unknown pattern: {pattern!r}")


def _assigned_value(node: cst.CSTNode, name: str) -> Optional[cst.BaseExpression]:
    """Return the value assigned to `name` by an Assign/AnnAssign node, if it is one."""
    if isinstance(node, cst.Assign):
        for target in node.targets:
            if isinstance(target.target, cst.Name) and target.target.value == name:
                return node.value
    elif isinstance(node, cst.AnnAssign):
        if isinstance(node.target, cst.Name) and node.target.value == name and node.value is not None:
            return node.value
    return None


# --------------------------------------------------------------------------------------
# Tree walking
# --------------------------------------------------------------------------------------

def iter_preorder(node: cst.CSTNode) -> Iterator[cst.CSTNode]:
    """Yield the descendants of `node` (excluding `node`) in pre-order."""
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def body_statements(node: cst.CSTNode) -> Optional[Tuple[cst.CSTNode, ...]]:
    """
    Return the statements directly inside `node`, or None when `node` has no body.

    Works for modules, indented blocks, and compound statements (class, def, if,
    for, while, with, try...).
    """
    if isinstance(node, cst.Module):
        return tuple(node.body)
    if isinstance(node, cst.IndentedBlock):
        return tuple(node.body)
    body = getattr(node, "body", None)
    if isinstance(body, cst.IndentedBlock):
        return tuple(body.body)
    if isinstance(body, cst.SimpleStatementSuite):
        return tuple(body.body)
    return None


def function_arity(node: cst.FunctionDef, method: bool = False) -> int:
    """
    Number of named parameters, excluding *args and **kwargs.

    For methods (`method=True`) the bound first parameter (self or cls) is not
    counted, unless the function is a staticmethod, so `def f(self, x)` has
    arity 1 like the calls `obj.f(x)` that reach it.
    """
    params = node.params
    count = len(params.posonly_params) + len(params.params) + len(params.kwonly_params)
    if method and count and not _is_staticmethod(node):
        if params.posonly_params or params.params:
            count -= 1
    return count


def _is_staticmethod(node: cst.FunctionDef) -> bool:
    return any(
        get_full_name_for_node(d.decorator) in ("staticmethod", "builtins.staticmethod")
        for d in node.decorators
    )


_WS = re.compile(r"\s+")


def _normalize(code: str) -> str:
    return _WS.sub(" ", code).strip()


# --------------------------------------------------------------------------------------
# Selectors
# --------------------------------------------------------------------------------------

@dataclass(frozen=True)
class EnterScope:
    """
    Enter a named scope directly inside the current body.

    kind "class": a class definition; dotted names descend nested classes.
    kind "if":    an if statement whose test reads `name` (whitespace-insensitive).
    """
    kind: str
    name: str

    def describe(self) -> str:
        if self.kind == "if":
            return f"if {self.name}"
        return f"{self.kind} {self.name}"


@dataclass(frozen=True)
class EnterFunction:
    """Enter a function definition directly inside the current body."""
    name: str
    arity: Optional[int] = None

    def describe(self) -> str:
        if self.arity is None:
            return f"function {self.name}"
        return f"function {self.name}/{self.arity}"


@dataclass(frozen=True)
class EnterAssignment:
    """Move to the value of an assignment directly inside the current body."""
    name: str

    def describe(self) -> str:
        return f"assignment to {self.name}"


@dataclass(frozen=True)
class FindFirst:
    """Depth-first, pre-order search for the first descendant matching a pattern."""
    pattern: Pattern

    def describe(self) -> str:
        return self.pattern.describe()


Selector = Union[EnterScope, EnterFunction, EnterAssignment, FindFirst]

# A step result: (label, node) on success, None on failure.
StepResult = Optional[Tuple[str, cst.CSTNode]]


def _find_class(node: cst.CSTNode, dotted: str) -> StepResult:
    current = node
    for part in dotted.split("."):
        statements = body_statements(current)
        if statements is None:
            return None
        found = next(
            (s for s in statements if isinstance(s, cst.ClassDef) and s.name.value == part),
            None,
        )
        if found is None:
            return None
        current = found
    return dotted, current


def _find_if(node: cst.CSTNode, test: str, code_for: Callable[[cst.CSTNode], str]) -> StepResult:
    statements = body_statements(node) or ()
    wanted = _normalize(test)
    for stmt in statements:
        if isinstance(stmt, cst.If) and _normalize(code_for(stmt.test)) == wanted:
            return f"if {wanted}", stmt
    return None


def select(selector: Selector, node: cst.CSTNode, code_for: Callable[[cst.CSTNode], str]) -> StepResult:
    """
    Run one navigation step from `node`.

    Returns:
        (label, node) for the new position, or None if the step cannot be taken
    """
    if isinstance(selector, EnterScope):
        if selector.kind == "class":
            return _find_class(node, selector.name)
        if selector.kind == "if":
            return _find_if(node, selector.name, code_for)
        raise ValueError(f"Unknown scope kind {selector.kind!r}, expected one of {SCOPE_KINDS}")

    if isinstance(selector, EnterFunction):
        for stmt in body_statements(node) or ():
            if not isinstance(stmt, cst.FunctionDef) or stmt.name.value != selector.name:
                continue
            arity = function_arity(stmt, method=isinstance(node, cst.ClassDef))
            if selector.arity is None or selector.arity == arity:
                return f"{selector.name}/{arity}", stmt
        return None

    if isinstance(selector, EnterAssignment):
        for stmt in body_statements(node) or ():
            if not isinstance(stmt, cst.SimpleStatementLine):
                continue
            for small in stmt.body:
                value = _assigned_value(small, selector.name)
                if value is not None:
                    return selector.name, value
        return None

    if isinstance(selector, FindFirst):
        for candidate in iter_preorder(node):
            if matches(selector.pattern, candidate, code_for):
                return selector.pattern.describe(), candidate
        return None

    raise TypeError(f"Unknown selector: {selector!r}")
