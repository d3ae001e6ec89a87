"""Text utility functions shared by the parser, synthesizer and analyzer."""

import re

_LEADING_WS = re.compile(r"^[ \t]*")


def normalize_content(text: str) -> str:
    """Normalize text by stripping whitespace and removing empty lines.

    Returns:
        A string where each non-empty original line has been trimmed and the remaining
        lines are joined with a single newline character.
    """
    return "\n".join(line.strip() for line in text.splitlines() if line.strip())


def strip_common_indent(text: str) -> str:
    """Remove the minimum leading whitespace shared by all non-blank lines.

    Blank lines are left untouched. Unlike ``textwrap.dedent`` the minimum is
    counted in characters, so mixed tab/space prefixes are trimmed by width.

    Example:
        >>> strip_common_indent("    a\\n      b\\n")
        'a\\n  b\\n'
    """
    lines = text.split("\n")
    indents = [len(_LEADING_WS.match(line).group(0)) for line in lines if line.strip()]
    if not indents:
        return text

    min_indent = min(indents)
    if min_indent == 0:
        return text

    return "\n".join(line[min_indent:] if line.strip() else line for line in lines)


def has_unbalanced_brackets(code: str) -> bool:
    """Return True if any of ``{}``, ``()`` or ``[]`` are unbalanced in ``code``."""
    return (
        code.count("{") != code.count("}")
        or code.count("(") != code.count(")")
        or code.count("[") != code.count("]")
    )
