"""Content cleaning and inline-instruction parsing for synthesized operations.

Model output mixes the code to write with instructions for the human
("// TODO: wire this up", "# Add the helper below"). Before content becomes
an operation it is cleaned:

1. Instruction comments are removed. Whole-line instructions drop the line;
   trailing ones are cut from the line.
2. The minimum common indentation across non-blank lines is removed.
3. Blocks that declare a line range and are meant as updates get a
   ``Partial update for lines S-E`` marker so a reviewer sees the snippet is
   not the whole file.

Comment syntax is chosen by language: ``#`` for Python-like languages,
``//`` for everything else.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from llm_file_ops.core.models import CodeBlock, LineRange, UpdateStrategy
from llm_file_ops.parsing.metadata import JS_LANGUAGES, PY_LANGUAGES, extract_imports
from llm_file_ops.utils.text import has_unbalanced_brackets, strip_common_indent

logger = logging.getLogger(__name__)

HASH_COMMENT_LANGUAGES: frozenset[str] = frozenset(
    {
        "python",
        "py",
        "ruby",
        "rb",
        "bash",
        "sh",
        "shell",
        "zsh",
        "yaml",
        "yml",
        "toml",
        "dockerfile",
        "makefile",
        "r",
        "perl",
    }
)

_INSTRUCTION_BODIES = (
    r"TODO:.*",
    r"FIXME:.*",
    r"REPLACE:.*",
    r"INSERT[^:\n]*:.*",
    r"DELETE[^:\n]*:.*",
    r"Update.*",
    r"Create.*",
    r"Add.*",
)


def _instruction_comment(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"\s*{re.escape(prefix)}\s*(?:{'|'.join(_INSTRUCTION_BODIES)})$")


_INSTRUCTION_COMMENTS: dict[str, re.Pattern[str]] = {
    "//": _instruction_comment("//"),
    "#": _instruction_comment("#"),
}


def comment_prefix(language: str | None) -> str:
    """Return the line-comment prefix used for ``language``."""
    if language and language.lower() in HASH_COMMENT_LANGUAGES:
        return "#"
    return "//"


def remove_instruction_comments(code: str, language: str | None = None) -> str:
    """Strip instruction-style comments from ``code``.

    Lines that held nothing but an instruction comment are removed; code
    before a trailing instruction comment is kept. Other blank lines survive.

    Example:
        >>> remove_instruction_comments("// TODO: tidy\\nconst a = 1; // Update a\\n")
        'const a = 1;\\n'
    """
    pattern = _INSTRUCTION_COMMENTS[comment_prefix(language)]
    cleaned: list[str] = []
    for line in code.split("\n"):
        match = pattern.search(line)
        if match is None:
            cleaned.append(line)
            continue
        remainder = line[: match.start()].rstrip()
        if remainder:
            cleaned.append(remainder)
    return "\n".join(cleaned)


def add_partial_marker(content: str, line_range: LineRange, language: str | None = None) -> str:
    """Prefix ``content`` with a provenance comment naming the replaced lines."""
    return f"{comment_prefix(language)} Partial update for lines {line_range}\n{content}"


def clean_block_content(
    block: CodeBlock,
    *,
    update_intent: bool,
    strip_comments: bool = True,
    normalize_indentation: bool = True,
    mark_partial: bool = True,
) -> str:
    """Produce operation content from one code block.

    Args:
        block: The source block.
        update_intent: True when the block feeds an Update operation.
        strip_comments: Remove instruction comments.
        normalize_indentation: Remove the common leading whitespace.
        mark_partial: Add the partial-update marker for line-ranged updates.

    Returns:
        The cleaned content. Incomplete-looking content (unbalanced brackets)
        is returned unchanged apart from cleaning, and logged.
    """
    content = block.code
    if strip_comments:
        content = remove_instruction_comments(content, block.language)
    if normalize_indentation:
        content = strip_common_indent(content)

    if mark_partial and update_intent and block.line_range is not None:
        return add_partial_marker(content, block.line_range, block.language)

    if has_unbalanced_brackets(content):
        logger.warning(
            "Code block appears incomplete for %s (unbalanced brackets)",
            block.file_path or "unknown file",
        )
    return content


class InlineInstructionType(str, Enum):
    """Kinds of instruction comments recognized inside code."""

    TODO = "todo"
    REPLACE = "replace"
    INSERT = "insert"
    DELETE = "delete"

    def __str__(self) -> str:
        """Return string representation of the instruction type."""
        return self.value


@dataclass(frozen=True, slots=True)
class InlineInstruction:
    """An instruction comment found on one line of a code block.

    Attributes:
        type: Instruction kind.
        line: 1-indexed line number within the block.
        content: Text after the instruction keyword.
        position: ``"before"``/``"after"`` for insert instructions.
    """

    type: InlineInstructionType
    line: int
    content: str
    position: str | None = None


def _inline_patterns(prefix: str) -> tuple[tuple[re.Pattern[str], InlineInstructionType], ...]:
    p = re.escape(prefix)
    return (
        (re.compile(rf"{p}\s*TODO:\s*(.+)$", re.IGNORECASE), InlineInstructionType.TODO),
        (re.compile(rf"{p}\s*REPLACE:\s*(.+)$", re.IGNORECASE), InlineInstructionType.REPLACE),
        (
            re.compile(rf"{p}\s*INSERT\s+(BEFORE|AFTER):\s*(.+)$", re.IGNORECASE),
            InlineInstructionType.INSERT,
        ),
        (re.compile(rf"{p}\s*DELETE:\s*(.+)$", re.IGNORECASE), InlineInstructionType.DELETE),
    )


_INLINE_PATTERNS = {prefix: _inline_patterns(prefix) for prefix in ("//", "#")}


def parse_inline_instructions(code: str, language: str | None = None) -> list[InlineInstruction]:
    """Find TODO/REPLACE/INSERT/DELETE instruction comments in ``code``."""
    patterns = _INLINE_PATTERNS[comment_prefix(language)]
    instructions = []
    for number, line in enumerate(code.split("\n"), start=1):
        for pattern, kind in patterns:
            match = pattern.search(line)
            if not match:
                continue
            if kind is InlineInstructionType.INSERT:
                instructions.append(
                    InlineInstruction(
                        type=kind,
                        line=number,
                        content=match.group(2).strip(),
                        position=match.group(1).lower(),
                    )
                )
            else:
                instructions.append(
                    InlineInstruction(type=kind, line=number, content=match.group(1).strip())
                )
            break
    return instructions


def determine_update_strategy(block: CodeBlock) -> UpdateStrategy:
    """Classify how an update block is meant to be applied.

    Explicit REPLACE instructions (or "replace" in the title) mean replace;
    INSERT instructions (or "insert"/"add" in the title) mean insert; a
    declared line range means patch; anything else replaces.
    """
    description = (block.description or "").lower()
    instructions = parse_inline_instructions(block.code, block.language)
    kinds = {instruction.type for instruction in instructions}

    if InlineInstructionType.REPLACE in kinds or "replace" in description:
        return UpdateStrategy.REPLACE
    if InlineInstructionType.INSERT in kinds or "insert" in description or "add" in description:
        return UpdateStrategy.INSERT
    if block.line_range is not None:
        return UpdateStrategy.PATCH
    return UpdateStrategy.REPLACE


def extract_dependencies(code: str, language: str | None) -> list[str]:
    """Return the non-relative modules imported by JS/TS or Python code."""
    lang = (language or "").lower()
    if lang not in JS_LANGUAGES and lang not in PY_LANGUAGES:
        return []
    return [name for name in extract_imports(code, lang) if not name.startswith(".")]
