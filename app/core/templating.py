"""
{{key}} variable substitution for flow texts and calendar templates.

Known keys are replaced, unknown placeholders are left as they are, and
substituted values are never scanned again, so a value containing "{{x}}"
comes out literally.
"""

import re
from typing import Mapping, Optional

PLACEHOLDER = re.compile(r"\{\{([^{}]+)\}\}")


def render_vars(template: str, variables: Optional[Mapping[str, str]] = None) -> str:
    """Substitute ``{{key}}`` placeholders in one pass.

    Args:
        template: Text possibly containing placeholders
        variables: Values by key

    Returns:
        Rendered text

    Example:
        >>> render_vars("Hola {{name}}", {"name": "Ana"})
        'Hola Ana'
        >>> render_vars("{{x}}")
        '{{x}}'
    """
    if not template or not variables or "{{" not in template:
        return template

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key in variables:
            return str(variables[key])
        return match.group(0)

    return PLACEHOLDER.sub(_replace, template)
