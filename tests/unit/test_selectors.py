"""Unit tests for patterns and selectors (graft_engine/selectors.py)."""

import libcst as cst
import libcst.matchers as m
import pytest

from graft_engine.selectors import (
    AssignTo, CallTo, ContainsCode, EnterFunction, EnterScope, FindFirst, ImportOf, Matches,
    StringLiteral, as_pattern, function_arity, iter_preorder, matches, select,
)
from graft_engine.source import parse_source


def first(tree: cst.Module, pattern):
    """First node of `tree` matching `pattern`, in pre-order."""
    for node in iter_preorder(tree):
        if matches(pattern, node, tree.code_for_node):
            return node
    return None


def funcdef(source: str) -> cst.FunctionDef:
    return cst.ensure_type(parse_source(source).body[0], cst.FunctionDef)


@pytest.mark.unit
class TestPatterns:
    """matches() for every pattern variant."""

    def test_contains_code_stops_at_statements(self):
        tree = parse_source("x = 1\ny = compute(2)\n")
        node = first(tree, ContainsCode("compute(2)"))
        assert isinstance(node, cst.SimpleStatementLine)
        assert tree.code_for_node(node) == "y = compute(2)\n"

    def test_contains_code_stops_at_collection_items(self):
        tree = parse_source("X = [\n    'a',\n    'b',\n]\n")
        # The statement holding the list matches first in pre-order
        statement = first(tree, ContainsCode("'b'"))
        assert isinstance(statement, cst.SimpleStatementLine)
        element = first(statement.body[0].value, ContainsCode("'b'"))
        assert isinstance(element, cst.Element)

    def test_plain_string_is_contains_code(self):
        assert as_pattern("x = 1") == ContainsCode("x = 1")
        assert as_pattern(CallTo("f")) == CallTo("f")

    def test_call_to_dotted_name(self):
        tree = parse_source("os.environ.setdefault('A', 'b')\n")
        assert first(tree, CallTo("os.environ.setdefault")) is not None
        assert first(tree, CallTo("setdefault")) is None

    def test_call_to_with_arity(self):
        tree = parse_source("helper(1)\n")
        assert first(tree, CallTo("helper", 1)) is not None
        assert first(tree, CallTo("helper", 2)) is None

    def test_import_of_module(self):
        tree = parse_source("import os.path\nimport sys\n")
        assert first(tree, ImportOf("sys")) is not None
        assert first(tree, ImportOf("os.path")) is not None
        assert first(tree, ImportOf("os")) is None

    def test_import_of_name_from_module(self):
        tree = parse_source("from django.urls import path, include\n")
        assert first(tree, ImportOf("django.urls")) is not None
        assert first(tree, ImportOf("django.urls", "include")) is not None
        assert first(tree, ImportOf("django.urls", "re_path")) is None

    def test_import_of_relative(self):
        tree = parse_source("from . import views\nfrom ..core import models\n")
        assert first(tree, ImportOf(".", "views")) is not None
        assert first(tree, ImportOf("..core", "models")) is not None
        assert first(tree, ImportOf("core")) is None

    def test_import_of_name_does_not_match_plain_import(self):
        tree = parse_source("import dotenv\n")
        assert first(tree, ImportOf("dotenv", "load_dotenv")) is None

    def test_assign_to(self):
        tree = parse_source("DEBUG = True\nX: int = 1\nY: int\n")
        assert first(tree, AssignTo("DEBUG")) is not None
        assert first(tree, AssignTo("X")) is not None
        # annotation without a value assigns nothing
        assert first(tree, AssignTo("Y")) is None

    def test_string_literal_ignores_quote_style(self):
        tree = parse_source("A = ['one']\nB = [\"two\"]\n")
        assert first(tree, StringLiteral("one")) is not None
        assert first(tree, StringLiteral("two")) is not None
        assert first(tree, StringLiteral("three")) is None

    def test_string_literal_does_not_match_substrings(self):
        tree = parse_source("X = ['django_htmx.middleware.HtmxMiddleware']\n")
        assert first(tree, StringLiteral("django_htmx")) is None

    def test_matches_uses_libcst_matchers(self):
        tree = parse_source("print('hi')\nlog('hi')\n")
        pattern = Matches(m.Call(func=m.Name("print")), "print call")
        node = first(tree, pattern)
        assert tree.code_for_node(node) == "print('hi')"
        assert pattern.describe() == "print call"

    def test_unknown_pattern_raises(self):
        with pytest.raises(TypeError):
            matches(object(), cst.Name("x"), lambda node: "")

    @pytest.mark.parametrize("pattern, text", [
        (ContainsCode("x"), "code containing 'x'"),
        (CallTo("helper"), "call to helper"),
        (CallTo("helper", 1), "call to helper/1"),
        (ImportOf("sys"), "import of sys"),
        (ImportOf("dotenv", "load_dotenv"), "import of load_dotenv from dotenv"),
        (AssignTo("DEBUG"), "assignment to DEBUG"),
        (StringLiteral("demo/"), "string 'demo/'"),
    ])
    def test_describe(self, pattern, text):
        assert pattern.describe() == text


@pytest.mark.unit
class TestFunctionArity:
    """function_arity() counts named parameters."""

    def test_plain_function(self):
        assert function_arity(funcdef("def f(a, b=1):\n    pass\n")) == 2

    def test_varargs_not_counted(self):
        assert function_arity(funcdef("def f(a, *args, b, **kwargs):\n    pass\n")) == 2

    def test_positional_only_counted(self):
        assert function_arity(funcdef("def f(a, /, b):\n    pass\n")) == 2

    def test_method_excludes_self(self):
        assert function_arity(funcdef("def f(self, x):\n    pass\n"), method=True) == 1

    def test_staticmethod_keeps_first_param(self):
        node = funcdef("@staticmethod\ndef f(x):\n    pass\n")
        assert function_arity(node, method=True) == 1

    def test_method_without_params(self):
        assert function_arity(funcdef("def f():\n    pass\n"), method=True) == 0


@pytest.mark.unit
class TestSelect:
    """select() on single steps."""

    def test_preorder_is_source_order(self):
        tree = parse_source("a = outer(inner(1))\nb = inner(2)\n")
        label, node = select(FindFirst(CallTo("inner")), tree, tree.code_for_node)
        assert label == "call to inner"
        assert tree.code_for_node(node) == "inner(1)"

    def test_enter_function_label_carries_arity(self, helper_tree):
        label, node = select(EnterFunction("helper"), helper_tree, helper_tree.code_for_node)
        assert label == "helper/1"
        assert isinstance(node, cst.FunctionDef)

    def test_enter_function_only_looks_at_direct_children(self, helper_tree):
        # f is a method of M, not a module-level function
        assert select(EnterFunction("f"), helper_tree, helper_tree.code_for_node) is None

    def test_unknown_scope_kind_raises(self, helper_tree):
        with pytest.raises(ValueError):
            select(EnterScope("while", "True"), helper_tree, helper_tree.code_for_node)

    def test_unknown_selector_raises(self, helper_tree):
        with pytest.raises(TypeError):
            select("M", helper_tree, helper_tree.code_for_node)
