"""
Project conventions and command options.

Everything the catalogue needs to know about the target project (package
name, where settings/urls/manage.py live, whether i18n is on) is detected
once here and then passed around explicitly.
"""

import logging
import pathlib
from typing import Any, Dict, Optional

import libcst as cst
from pydantic import BaseModel, Field

from .cursor import Cursor
from .errors import ParseError, ProjectError
from .selectors import StringLiteral
from .source import parse_file
from .utils import rel_to

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "DJANGO_SETTINGS_MODULE"


class InitOptions(BaseModel):
    """Options of the `init` command."""
    dotenv: bool = Field(True, description="Load .env files from manage.py")
    i18n: bool = Field(True, description="Add LocaleMiddleware when the project uses i18n")
    debug_toolbar: bool = Field(False, description="Configure django-debug-toolbar")
    demo: bool = Field(False, description="Generate the demo page")
    yes: bool = Field(False, description="Answer yes to every prompt")
    dep_install: bool = Field(True, description="Install the dependencies the patches introduce")
    dry_run: bool = Field(False, description="Report and diff without writing")
    force: bool = Field(False, description="Overwrite files created from templates")


class ProjectConfig(BaseModel):
    """Layout of a Django project, as detected from its files."""
    root: str = Field(..., description="Absolute project root")
    package: str = Field(..., description="Project package holding settings.py, e.g. 'mysite'")
    manage_path: str = "manage.py"
    settings_path: str
    urls_path: str
    using_i18n: bool = False

    def template_context(self, options: Optional[InitOptions] = None) -> Dict[str, Any]:
        """Variables available to file templates."""
        context = self.model_dump()
        if options is not None:
            context.update(options.model_dump())
        return context


def settings_module_from_manage(manage: pathlib.Path) -> Optional[str]:
    """
    Read the default settings module from manage.py:

        def main():
            os.environ.setdefault("DJANGO_SETTINGS_MODULE", "mysite.settings")
    """
    try:
        tree = parse_file(manage)
    except (OSError, UnicodeDecodeError, ParseError) as e:
        logger.warning(f"Could not read {manage}: {e}")
        return None

    call = Cursor.root(tree).enter_function("main").find_call("os.environ.setdefault", 2)
    if not call.valid or not call.contains(StringLiteral(SETTINGS_ENV_VAR)):
        logger.debug(f"No settings default in {manage}: {call.reason}")
        return None
    value = call.node.args[1].value
    if isinstance(value, cst.SimpleString):
        evaluated = value.evaluated_value
        if isinstance(evaluated, str):
            return evaluated
    return None


def uses_i18n(settings: pathlib.Path) -> bool:
    """True when settings.py sets USE_I18N = True."""
    try:
        tree = parse_file(settings)
    except (OSError, UnicodeDecodeError, ParseError) as e:
        logger.warning(f"Could not read {settings}: {e}")
        return False
    value = Cursor.root(tree).enter_assignment("USE_I18N")
    return value.valid and value.code.strip() == "True"


def detect_project(root: pathlib.Path) -> ProjectConfig:
    """
    Detect the layout of the Django project at `root`.

    Raises:
        ProjectError: No manage.py, or no settings package can be found
    """
    root = pathlib.Path(root).resolve()
    if not root.is_dir():
        raise ProjectError(f"Project root is not a directory: {root}")

    manage = root / "manage.py"
    if not manage.is_file():
        raise ProjectError(f"No manage.py in {root}; is this a Django project?")

    package_dir = None
    module = settings_module_from_manage(manage)
    if module and module.endswith(".settings"):
        candidate = root.joinpath(*module.split(".")[:-1])
        if (candidate / "settings.py").is_file():
            package_dir = candidate

    if package_dir is None:
        candidates = sorted(p.parent for p in root.glob("*/settings.py"))
        if len(candidates) != 1:
            raise ProjectError(
                f"Cannot tell which package holds the settings in {root} "
                f"(found {len(candidates)} settings.py files)"
            )
        package_dir = candidates[0]

    package_rel = rel_to(root, package_dir)
    config = ProjectConfig(
        root=str(root),
        package=package_rel.replace("/", "."),
        manage_path=rel_to(root, manage),
        settings_path=f"{package_rel}/settings.py",
        urls_path=f"{package_rel}/urls.py",
        using_i18n=uses_i18n(package_dir / "settings.py"),
    )
    logger.info(f"Detected project: {config.package} (i18n: {config.using_i18n})")
    return config
