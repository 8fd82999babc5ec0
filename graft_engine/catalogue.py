"""
Catalogue of the patches `graft init` applies to a Django project.

Each factory returns a Patch value; `patches_for` groups them by feature and
maps them onto the project's files, `files_for` lists the templates to render.
The patches only describe what to find and what to insert; navigation and
safety are handled by the engine.
"""

from typing import Dict, List

import libcst as cst

from .config import InitOptions, ProjectConfig
from .cursor import Cursor
from .patch import Patch
from .runner import FileRequest
from .selectors import AssignTo, CallTo, ImportOf, StringLiteral, iter_preorder

HTMX_APP = "django_htmx"
HTMX_MIDDLEWARE = "django_htmx.middleware.HtmxMiddleware"
SESSION_MIDDLEWARE = "django.contrib.sessions.middleware.SessionMiddleware"
LOCALE_MIDDLEWARE = "django.middleware.locale.LocaleMiddleware"
TOOLBAR_APP = "debug_toolbar"
TOOLBAR_MIDDLEWARE = "debug_toolbar.middleware.DebugToolbarMiddleware"
TOOLBAR_URLS = "debug_toolbar.urls"

GROUPS = ("common", "dotenv", "i18n", "debug_toolbar", "demo")


def quoted(cursor: Cursor, value: str) -> str:
    """Quote `value` the way the first string literal under the cursor is quoted."""
    quote = '"'
    if cursor.valid:
        for node in [cursor.node, *iter_preorder(cursor.node)]:
            if isinstance(node, cst.SimpleString):
                quote = node.quote if node.quote in ("'", '"') else '"'
                break
    return f"{quote}{value}{quote}"


# --------------------------------------------------------------------------------------
# Generic building blocks
# --------------------------------------------------------------------------------------

def add_to_list_setting(setting: str, value: str, label: str, instructions: str,
                        dependencies=frozenset()) -> Patch:
    """Append a string to a list/tuple setting such as INSTALLED_APPS."""
    return Patch(
        label=label,
        recipe=lambda c: c.enter_assignment(setting),
        check=lambda c: c.contains(StringLiteral(value)),
        transform=lambda c: c.append_child(quoted(c, value)),
        instructions=instructions,
        dependencies=frozenset(dependencies),
    )


# --------------------------------------------------------------------------------------
# common
# --------------------------------------------------------------------------------------

def add_htmx_to_installed_apps() -> Patch:
    return add_to_list_setting(
        "INSTALLED_APPS", HTMX_APP,
        label="Add django_htmx to INSTALLED_APPS",
        instructions=f'Add "{HTMX_APP}" to the INSTALLED_APPS list in your settings.',
        dependencies={"django-htmx"},
    )


def add_htmx_middleware() -> Patch:
    return add_to_list_setting(
        "MIDDLEWARE", HTMX_MIDDLEWARE,
        label="Add HtmxMiddleware to MIDDLEWARE",
        instructions=f'Add "{HTMX_MIDDLEWARE}" to the MIDDLEWARE list in your settings.',
        dependencies={"django-htmx"},
    )


# --------------------------------------------------------------------------------------
# dotenv
# --------------------------------------------------------------------------------------

def import_load_dotenv() -> Patch:
    return Patch(
        label="Import load_dotenv in manage.py",
        recipe=lambda c: c.find_first(ImportOf("sys")),
        check=lambda c: c.back().contains(ImportOf("dotenv", "load_dotenv")),
        transform=lambda c: c.insert_after("from dotenv import load_dotenv"),
        instructions="Add `from dotenv import load_dotenv` to the imports of manage.py.",
        dependencies=frozenset({"python-dotenv"}),
    )


def call_load_dotenv() -> Patch:
    return Patch(
        label="Call load_dotenv() in manage.py",
        recipe=lambda c: c.enter_function("main", 0).find_call("os.environ.setdefault"),
        check=lambda c: c.back().contains(CallTo("load_dotenv")),
        transform=lambda c: c.insert_before("load_dotenv()"),
        instructions=(
            "Call `load_dotenv()` at the top of `main()` in manage.py, "
            "before DJANGO_SETTINGS_MODULE is read."
        ),
        dependencies=frozenset({"python-dotenv"}),
    )


# --------------------------------------------------------------------------------------
# i18n
# --------------------------------------------------------------------------------------

def add_locale_middleware() -> Patch:
    return Patch(
        label="Add LocaleMiddleware after SessionMiddleware",
        recipe=lambda c: c.enter_assignment("MIDDLEWARE").find_first(StringLiteral(SESSION_MIDDLEWARE)),
        check=lambda c: c.back().contains(StringLiteral(LOCALE_MIDDLEWARE)),
        transform=lambda c: c.insert_after(quoted(c, LOCALE_MIDDLEWARE)),
        instructions=(
            f'Add "{LOCALE_MIDDLEWARE}" to MIDDLEWARE, after SessionMiddleware '
            "and before CommonMiddleware."
        ),
    )


# --------------------------------------------------------------------------------------
# debug_toolbar
# --------------------------------------------------------------------------------------

def add_toolbar_to_installed_apps() -> Patch:
    return add_to_list_setting(
        "INSTALLED_APPS", TOOLBAR_APP,
        label="Add debug_toolbar to INSTALLED_APPS",
        instructions=f'Add "{TOOLBAR_APP}" to the INSTALLED_APPS list in your settings.',
        dependencies={"django-debug-toolbar"},
    )


def add_toolbar_middleware() -> Patch:
    return add_to_list_setting(
        "MIDDLEWARE", TOOLBAR_MIDDLEWARE,
        label="Add DebugToolbarMiddleware to MIDDLEWARE",
        instructions=f'Add "{TOOLBAR_MIDDLEWARE}" to the MIDDLEWARE list in your settings.',
        dependencies={"django-debug-toolbar"},
    )


def add_internal_ips() -> Patch:
    return Patch(
        label="Set INTERNAL_IPS",
        recipe=lambda c: c.enter_assignment("DEBUG"),
        check=lambda c: c.back().contains(AssignTo("INTERNAL_IPS")),
        transform=lambda c: c.insert_after('INTERNAL_IPS = ["127.0.0.1"]'),
        instructions='Add `INTERNAL_IPS = ["127.0.0.1"]` to your settings.',
    )


def import_include_in_urls() -> Patch:
    return Patch(
        label="Import include from django.urls",
        recipe=lambda c: c.find_first(ImportOf("django.urls")),
        check=lambda c: c.back().contains(ImportOf("django.urls", "include")),
        transform=lambda c: c.append_child("include"),
        instructions="Add `from django.urls import include` to your urls.py.",
    )


def add_toolbar_urls() -> Patch:
    return Patch(
        label="Add debug toolbar URLs",
        recipe=lambda c: c.enter_assignment("urlpatterns"),
        check=lambda c: c.contains(StringLiteral(TOOLBAR_URLS)),
        transform=lambda c: c.append_child(
            f"path({quoted(c, '__debug__/')}, include({quoted(c, TOOLBAR_URLS)}))"
        ),
        instructions='Add `path("__debug__/", include("debug_toolbar.urls"))` to urlpatterns.',
    )


# --------------------------------------------------------------------------------------
# demo
# --------------------------------------------------------------------------------------

def import_demo_views() -> Patch:
    return Patch(
        label="Import demo views",
        recipe=lambda c: c.find_first(ImportOf("django.urls")),
        check=lambda c: c.back().contains(ImportOf(".", "demo")),
        transform=lambda c: c.insert_after("from . import demo"),
        instructions="Add `from . import demo` to your urls.py.",
    )


def add_demo_route() -> Patch:
    return Patch(
        label="Add demo route",
        recipe=lambda c: c.enter_assignment("urlpatterns"),
        check=lambda c: c.contains(StringLiteral("demo/")),
        transform=lambda c: c.append_child(
            f"path({quoted(c, 'demo/')}, demo.index, name={quoted(c, 'demo')})"
        ),
        instructions='Add `path("demo/", demo.index, name="demo")` to urlpatterns.',
    )


# --------------------------------------------------------------------------------------
# Assignments
# --------------------------------------------------------------------------------------

def patches_for(group: str, project: ProjectConfig, options: InitOptions) -> Dict[str, List[Patch]]:
    """File -> patches for one feature group; empty when the group is disabled."""
    if group == "common":
        return {
            project.settings_path: [add_htmx_to_installed_apps(), add_htmx_middleware()],
        }
    if group == "dotenv" and options.dotenv:
        return {
            project.manage_path: [import_load_dotenv(), call_load_dotenv()],
        }
    if group == "i18n" and options.i18n and project.using_i18n:
        return {
            project.settings_path: [add_locale_middleware()],
        }
    if group == "debug_toolbar" and options.debug_toolbar:
        return {
            project.settings_path: [
                add_toolbar_to_installed_apps(),
                add_toolbar_middleware(),
                add_internal_ips(),
            ],
            project.urls_path: [import_include_in_urls(), add_toolbar_urls()],
        }
    if group == "demo" and options.demo:
        return {
            project.urls_path: [import_demo_views(), add_demo_route()],
        }
    return {}


def files_for(project: ProjectConfig, options: InitOptions) -> List[FileRequest]:
    """Templates to render, as (template, destination directory) pairs."""
    if not options.demo:
        return []
    package_dir = project.package.replace(".", "/")
    return [
        ("demo/hero.py.jinja", package_dir),
        ("demo/demo.py.jinja", package_dir),
    ]


def all_patches(project: ProjectConfig, options: InitOptions) -> List[Dict[str, List[Patch]]]:
    """Every enabled group, in the order `init` applies them."""
    return [patches_for(group, project, options) for group in GROUPS]
