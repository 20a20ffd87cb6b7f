"""Template rendering for prompts, commands, and URLs.

Templates use ``{{ worktree.name }}``-style placeholders.  Lookups that miss
render as empty strings (``{{ worktree.missing.deeper }}`` is ``""``) so a
partially filled context never breaks a command line.

Handlebars helper calls are accepted as well, so repo configs such as
``http://localhost:{{add 9000 worktree.unique_id}}`` keep working; each call
is rewritten to the equivalent ``{{ add(9000, worktree.unique_id) }}``.

:func:`render_template` is total: any error (syntax, a failing filter,
anything else) is logged and the raw template is returned unchanged.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Any

from jinja2 import ChainableUndefined, Template, Undefined
from jinja2.sandbox import SandboxedEnvironment

logger = logging.getLogger(__name__)


def _number(value: Any) -> int | float:
    if isinstance(value, Undefined) or value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        return float(text)


HELPERS: dict[str, Any] = {
    "add": lambda a, b: _number(a) + _number(b),
    "sub": lambda a, b: _number(a) - _number(b),
    "mul": lambda a, b: _number(a) * _number(b),
    "div": lambda a, b: _number(a) / _number(b),
    "mod": lambda a, b: _number(a) % _number(b),
}

_HELPER_CALL = re.compile(
    r"\{\{\s*(?P<name>" + "|".join(HELPERS) + r")\s+(?P<args>[^{}()]+?)\s*\}\}"
)
_ARG = re.compile(r"\"[^\"]*\"|'[^']*'|[^\s]+")

_env = SandboxedEnvironment(
    undefined=ChainableUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)
_env.globals.update(HELPERS)


def _rewrite_helpers(template: str) -> str:
    def _call(match: re.Match[str]) -> str:
        args = ", ".join(_ARG.findall(match.group("args")))
        return "{{ %s(%s) }}" % (match.group("name"), args)

    return _HELPER_CALL.sub(_call, template)


@lru_cache(maxsize=256)
def _compile(template: str) -> Template:
    return _env.from_string(_rewrite_helpers(template))


def render_template(template: str, context: dict[str, Any]) -> str:
    if not template:
        return template or ""
    try:
        return _compile(template).render(**(context or {}))
    except Exception as exc:
        logger.warning(
            "[templates] failed to render template %r: %s -- using raw template",
            template[:120], exc, exc_info=True,
        )
        return template
