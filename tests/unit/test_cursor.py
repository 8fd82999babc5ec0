"""Unit tests for Cursor navigation and mutations (graft_engine/cursor.py)."""

import libcst as cst
import pytest

from graft_engine.cursor import Cursor
from graft_engine.errors import TransformError
from graft_engine.selectors import CallTo, ImportOf, StringLiteral
from graft_engine.source import parse_source


def root_of(source: str) -> Cursor:
    return Cursor.root(parse_source(source))


@pytest.mark.unit
class TestNavigation:
    """Chaining steps from the module root."""

    def test_root_cursor(self, helper_tree):
        cursor = Cursor.root(helper_tree)
        assert cursor.is_valid()
        assert cursor.node is helper_tree
        assert cursor.path == ("<module>",)

    def test_root_label_can_be_a_file_name(self, helper_tree):
        assert Cursor.root(helper_tree, label="pkg/m.py").label == "pkg/m.py"

    def test_enter_class_then_method(self, helper_tree):
        cursor = Cursor.root(helper_tree).enter_class("M").enter_function("f", 1)
        assert cursor.valid
        assert isinstance(cursor.node, cst.FunctionDef)
        assert cursor.path == ("<module>", "M", "f/1")

    def test_enter_function_without_arity(self, helper_tree):
        cursor = Cursor.root(helper_tree).enter_class("M").enter_function("g")
        assert cursor.label == "g/0"

    def test_wrong_arity_invalidates(self, helper_tree):
        cursor = Cursor.root(helper_tree).enter_class("M").enter_function("f", 2)
        assert not cursor.valid
        assert cursor.reason == "function f/2 not found in M"

    def test_find_call_missing_from_function(self, helper_tree):
        cursor = Cursor.root(helper_tree).enter_class("M").enter_function("f", 1).find_call("helper", 1)
        assert not cursor.valid
        assert cursor.reason == "call to helper/1 not found in f/1"

    def test_invalid_cursor_absorbs_later_steps(self, helper_tree):
        """No later step raises or replaces the first failure."""
        cursor = (
            Cursor.root(helper_tree)
            .enter_class("Nope")
            .enter_function("f")
            .find_call("x")
            .enter_assignment("Y")
            .back()
        )
        assert not cursor.is_valid()
        assert cursor.reason == "class Nope not found in <module>"
        assert cursor.path == ("<module>",)
        assert cursor.code == ""
        assert cursor.contains("anything") is False

    def test_find_call_is_preorder(self):
        cursor = root_of("a = helper(helper(2))\nb = helper(3)\n").find_call("helper")
        assert cursor.code == "helper(helper(2))"

    def test_find_call_with_arity(self):
        cursor = root_of("a = helper()\nb = helper(3)\n").find_call("helper", 1)
        assert cursor.code == "helper(3)"

    def test_enter_nested_class(self):
        source = "class A:\n    class B:\n        def m(self):\n            pass\n"
        cursor = root_of(source).enter_class("A.B").enter_function("m", 0)
        assert cursor.valid
        assert cursor.path == ("<module>", "A.B", "m/0")

    def test_enter_if_scope(self):
        source = "DEBUG = True\nif  DEBUG :\n    X = 1\n"
        cursor = root_of(source).enter_scope("if", "DEBUG").enter_assignment("X")
        assert cursor.valid
        assert cursor.code == "1"
        assert cursor.path == ("<module>", "if DEBUG", "X")

    def test_enter_assignment_lands_on_value(self):
        assert root_of("X: list = [1]\n").enter_assignment("X").code == "[1]"
        assert root_of("A = B = 2\n").enter_assignment("B").code == "2"

    def test_enter_assignment_only_direct_children(self, helper_tree):
        assert not Cursor.root(helper_tree).enter_assignment("y").valid

    def test_back(self, helper_tree):
        cursor = Cursor.root(helper_tree).enter_class("M").enter_function("f").back()
        assert cursor.valid
        assert cursor.label == "M"
        assert isinstance(cursor.node, cst.ClassDef)

    def test_back_from_root_invalidates(self, helper_tree):
        cursor = Cursor.root(helper_tree).back()
        assert not cursor.valid
        assert cursor.reason == "cannot move above <module>"

    def test_contains(self, helper_tree):
        scope = Cursor.root(helper_tree).enter_class("M")
        assert scope.contains("helper(1)")
        assert scope.contains(CallTo("helper", 1))
        assert not scope.contains(CallTo("helper", 2))
        assert not scope.enter_function("f").contains(CallTo("helper"))

    def test_contains_checks_the_node_itself(self):
        cursor = root_of("X = ['a']\n").enter_assignment("X").find_first(StringLiteral("a"))
        assert cursor.contains(StringLiteral("a"))


@pytest.mark.unit
class TestAppendChild:
    """append_child() on bodies and collections."""

    def test_append_to_one_per_line_list(self):
        source = (
            'INSTALLED_APPS = [\n'
            '    "django.contrib.admin",\n'
            '    "django.contrib.auth",\n'
            ']\n'
        )
        tree = root_of(source).enter_assignment("INSTALLED_APPS").append_child('"django_htmx"')
        assert tree.code == (
            'INSTALLED_APPS = [\n'
            '    "django.contrib.admin",\n'
            '    "django.contrib.auth",\n'
            '    "django_htmx",\n'
            ']\n'
        )

    def test_append_to_one_item_multiline_list(self):
        source = 'urlpatterns = [\n    path("admin/", admin.site.urls),\n]\n'
        tree = root_of(source).enter_assignment("urlpatterns").append_child('path("x/", view)')
        assert tree.code == (
            'urlpatterns = [\n'
            '    path("admin/", admin.site.urls),\n'
            '    path("x/", view),\n'
            ']\n'
        )

    def test_append_keeps_comment_on_earlier_item(self):
        source = 'X = [\n    "a",  # first\n    "b",\n]\n'
        tree = root_of(source).enter_assignment("X").append_child('"c"')
        assert tree.code == 'X = [\n    "a",  # first\n    "b",\n    "c",\n]\n'

    def test_append_keeps_comment_on_last_item(self):
        source = 'X = [\n    "a",\n    "b",  # last\n]\n'
        tree = root_of(source).enter_assignment("X").append_child('"c"')
        assert tree.code == 'X = [\n    "a",\n    "b",  # last\n    "c",\n]\n'

    def test_append_after_commented_opening_bracket(self):
        source = 'X = [  # apps\n    "a",\n]\n'
        tree = root_of(source).enter_assignment("X").append_child('"b"')
        assert tree.code == 'X = [  # apps\n    "a",\n    "b",\n]\n'

    @pytest.mark.parametrize("source, item, expected", [
        ("X = [1, 2]\n", "3", "X = [1, 2, 3]\n"),
        ("X = [1]\n", "2", "X = [1, 2]\n"),
        ("X = []\n", "1", "X = [1]\n"),
        ("X = (1, 2)\n", "3", "X = (1, 2, 3)\n"),
        ("X = {1, 2}\n", "3", "X = {1, 2, 3}\n"),
        ("X = {'a': 1}\n", "'b': 2", "X = {'a': 1, 'b': 2}\n"),
    ])
    def test_append_to_single_line_collections(self, source, item, expected):
        assert root_of(source).enter_assignment("X").append_child(item).code == expected

    def test_append_call_argument(self):
        tree = root_of("f(a)\n").find_call("f").append_child("b=1")
        assert tree.code == "f(a, b=1)\n"

    def test_append_imported_name(self):
        tree = root_of("from x import a\n").find_first(ImportOf("x")).append_child("b")
        assert tree.code == "from x import a, b\n"

    def test_append_to_star_import_raises(self):
        with pytest.raises(TransformError):
            root_of("from x import *\n").find_first(ImportOf("x")).append_child("b")

    def test_append_to_function_body_keeps_comments(self, helper_source, helper_tree):
        tree = Cursor.root(helper_tree).enter_class("M").enter_function("f", 1).append_child("print(y)")
        assert tree.code == helper_source.replace(
            "        return y\n", "        return y\n        print(y)\n", 1
        )

    def test_append_to_if_body(self):
        tree = root_of("if DEBUG:\n    X = 1\n").enter_scope("if", "DEBUG").append_child("Y = 2")
        assert tree.code == "if DEBUG:\n    X = 1\n    Y = 2\n"

    def test_append_nested_block_is_indented(self):
        tree = root_of("class M:\n    x = 1\n").enter_class("M").append_child(
            """
            def setup(self):
                self.ready = True
            """
        )
        assert tree.code == "class M:\n    x = 1\n    def setup(self):\n        self.ready = True\n"

    def test_append_to_module(self):
        assert root_of("x = 1\n").append_child("y = 2").code == "x = 1\ny = 2\n"

    def test_append_to_single_line_body_raises(self):
        with pytest.raises(TransformError):
            root_of("if x: pass\n").enter_scope("if", "x").append_child("y = 1")

    def test_append_to_non_container_raises(self):
        with pytest.raises(TransformError):
            root_of("x = y\n").enter_assignment("x").append_child("z")

    def test_invalid_fragment_raises(self):
        with pytest.raises(TransformError):
            root_of("x = 1\n").append_child("def (")


@pytest.mark.unit
class TestInsert:
    """insert_before() and insert_after() relative to the enclosing statement or item."""

    def test_insert_before_statement_holding_call(self, helper_source, helper_tree):
        tree = Cursor.root(helper_tree).enter_class("M").enter_function("g").find_call("helper").insert_before(
            "z = 0"
        )
        assert tree.code == helper_source.replace(
            "        return helper(1)\n", "        z = 0\n        return helper(1)\n", 1
        )

    def test_insert_after_module_statement(self):
        source = "import os\nimport sys\n\n\ndef main():\n    pass\n"
        tree = root_of(source).find_first("import sys").insert_after("from dotenv import load_dotenv")
        assert tree.code == "import os\nimport sys\nfrom dotenv import load_dotenv\n\n\ndef main():\n    pass\n"

    def test_insert_after_list_item(self):
        source = "X = [\n    'a',\n    'c',\n]\n"
        tree = root_of(source).find_first(StringLiteral("a")).insert_after("'b'")
        assert tree.code == "X = [\n    'a',\n    'b',\n    'c',\n]\n"

    def test_insert_after_last_list_item(self):
        tree = root_of("X = [1, 2]\n").enter_assignment("X").find_first("2").insert_after("3")
        assert tree.code == "X = [1, 2, 3]\n"

    def test_insert_before_first_list_item(self):
        tree = root_of("X = [2, 3]\n").enter_assignment("X").find_first("2").insert_before("1")
        assert tree.code == "X = [1, 2, 3]\n"

    def test_insert_next_to_module_raises(self, helper_tree):
        with pytest.raises(TransformError):
            Cursor.root(helper_tree).insert_after("x = 1")


@pytest.mark.unit
class TestReplace:
    """replace() on expressions, items and statements."""

    def test_replace_expression(self):
        assert root_of("X = [1]\n").enter_assignment("X").replace("[9]").code == "X = [9]\n"

    def test_replace_item_keeps_separator(self):
        tree = root_of("X = [1, 2, 3]\n").enter_assignment("X").find_first("2").replace("20")
        assert tree.code == "X = [1, 20, 3]\n"

    def test_replace_statement_with_several(self):
        tree = root_of("a = 1\nb = 2\n").find_first("a = 1").replace("a = 10\nc = 3")
        assert tree.code == "a = 10\nc = 3\nb = 2\n"

    def test_replace_with_node(self):
        tree = root_of("X = 1\n").enter_assignment("X").replace(cst.Integer("2"))
        assert tree.code == "X = 2\n"


@pytest.mark.unit
class TestMutationContract:
    """Mutations are terminal and never touch the cursor's own tree."""

    def test_invalid_cursor_returns_tree_unchanged(self, helper_tree):
        cursor = Cursor.root(helper_tree).enter_class("Nope")
        assert cursor.append_child("x = 1") is helper_tree
        assert cursor.insert_before("x = 1") is helper_tree
        assert cursor.insert_after("x = 1") is helper_tree
        assert cursor.replace("x = 1") is helper_tree

    def test_cursor_tree_is_not_modified(self, helper_source, helper_tree):
        cursor = Cursor.root(helper_tree).enter_class("M")
        new_tree = cursor.append_child("z = 1")
        assert new_tree is not helper_tree
        assert cursor.tree.code == helper_source
