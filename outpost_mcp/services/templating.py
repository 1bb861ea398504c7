"""Script templating with ``$NAME`` placeholders.

Values are inserted verbatim. Nothing here escapes shell metacharacters:
whoever builds the Vars must quote any value that could come from an
untrusted source, otherwise it is injected into the remote shell as-is.
"""

import re

Vars = list[tuple[str, str]]

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class RenderedScript(str):
    """Script text that has been through replace_vars.

    The executor only accepts this type, so every remote command is built
    from a template.
    """


def placeholder(name: str) -> str:
    """Return the placeholder token for a variable name."""
    return f"${name}"


def replace_vars(script: str, vars: Vars) -> RenderedScript:
    """Substitute ``$NAME`` placeholders in a single pass.

    Each placeholder is replaced by its variable's literal value. The
    output is never rescanned, so a value that happens to contain another
    placeholder stays literal. Placeholders without a variable are left
    untouched. Longer names are matched first, so ``$PORT`` never
    consumes the front of ``$PORT_RANGE``.

    Args:
        script: Template text
        vars: Ordered (name, value) pairs with unique names

    Returns:
        Rendered script

    Raises:
        ValueError: If a name is duplicated or not a valid identifier
    """
    lookup: dict[str, str] = {}
    for name, value in vars:
        if not _NAME_RE.match(name):
            raise ValueError(f"Invalid variable name: {name!r}")
        token = placeholder(name)
        if token in lookup:
            raise ValueError(f"Duplicate variable name: {name}")
        lookup[token] = value

    if not lookup:
        return RenderedScript(script)

    tokens = sorted(lookup, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(t) for t in tokens))
    return RenderedScript(pattern.sub(lambda m: lookup[m.group(0)], script))
