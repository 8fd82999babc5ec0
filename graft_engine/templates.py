"""
Rendering of the file templates shipped with the package.

Templates live in graft_engine/templates/ and end in `.jinja`; the rendered
file keeps the template's name without that suffix.
"""

import logging
import posixpath
from typing import Any, Dict

from jinja2 import Environment, PackageLoader, StrictUndefined

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".jinja"

_env = Environment(
    loader=PackageLoader("graft_engine", "templates"),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


def output_name(template: str) -> str:
    """File name a template renders to: "demo/hero.py.jinja" -> "hero.py"."""
    name = posixpath.basename(template)
    if name.endswith(TEMPLATE_SUFFIX):
        name = name[: -len(TEMPLATE_SUFFIX)]
    return name


def render_template(template: str, context: Dict[str, Any]) -> str:
    """
    Render a packaged template.

    Raises:
        jinja2.TemplateNotFound: Unknown template
        jinja2.UndefinedError: The template uses a name missing from `context`
    """
    logger.debug(f"Rendering template {template}")
    return _env.get_template(template).render(**context)
