"""Variable substitution in check commands and script arguments."""

from __future__ import annotations

import re

from pydantic import Field

from smokegate.checks.model import CheckDefinition
from smokegate.core.base import BaseConfig
from smokegate.core.errors import TemplateError

# {{ cluster }}, {{.Cluster}}, {{ .namespace }}, {{ my_var }}
_REFERENCE = re.compile(r"\{\{\s*\.?([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class TemplateVars(BaseConfig):
    """Variables available to check commands."""

    cluster: str = Field(
        default="home",
        description="Cluster name (e.g., 'home')",
    )
    namespace: str = Field(
        default="",
        description="Kubernetes namespace",
    )
    context: str = Field(
        default="",
        description="kubectl context",
    )
    extra: dict[str, str] = Field(
        default_factory=dict,
        description="Additional variables, referenced by key",
    )

    def lookup(self, name: str) -> str:
        """Resolve a variable name (case-insensitive).

        Raises:
            TemplateError: If no variable has that name
        """
        key = name.lower()
        builtin = {
            "cluster": self.cluster,
            "namespace": self.namespace,
            "context": self.context,
        }
        if key in builtin:
            return builtin[key]
        for extra_key, value in self.extra.items():
            if extra_key.lower() == key:
                return value
        raise TemplateError(f"undefined template variable {name!r}")


def render(text: str, variables: TemplateVars) -> str:
    """Substitute {{ name }} references in text.

    Raises:
        TemplateError: If text references an undefined variable
    """
    if not text:
        return text
    return _REFERENCE.sub(
        lambda match: variables.lookup(match.group(1)), text
    )


def render_check(
    check: CheckDefinition, variables: TemplateVars
) -> CheckDefinition:
    """Return a copy of check with variables substituted.

    Only the inline command and the script arguments are rendered;
    the script path is used as written.

    Raises:
        TemplateError: If any reference cannot be resolved
    """
    update = {}
    if check.command:
        try:
            update["command"] = render(check.command, variables)
        except TemplateError as e:
            raise TemplateError(f"failed to render command: {e}") from e

    if check.script is not None and check.script.args:
        args = []
        for index, arg in enumerate(check.script.args):
            try:
                args.append(render(arg, variables))
            except TemplateError as e:
                raise TemplateError(
                    f"failed to render script arg {index}: {e}"
                ) from e
        update["script"] = check.script.model_copy(update={"args": args})

    return check.model_copy(update=update)
