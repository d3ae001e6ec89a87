"""Pure resolution of code-block headers and free text into file metadata.

Everything in this module is a stateless function over strings. Nothing here
raises on malformed input: absent or unrecognizable signals yield defaults
(language ``"plaintext"``, operation ``unknown``, no path).

The heuristics are deliberately approximate. A dot-bearing header token that
is not really a path (an abbreviation, a version number) can be taken as a
path; that matches how model output is actually written and is not corrected
by guessing harder.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from llm_file_ops.core.models import (
    BlockMetadata,
    BlockOperation,
    FileInstruction,
    InstructionType,
    LineRange,
)

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "plaintext"

VALID_EXTENSIONS: frozenset[str] = frozenset(
    {
        "ts",
        "tsx",
        "js",
        "jsx",
        "json",
        "md",
        "css",
        "scss",
        "sass",
        "html",
        "xml",
        "yaml",
        "yml",
        "toml",
        "txt",
        "py",
        "java",
        "c",
        "cpp",
        "h",
        "hpp",
        "cs",
        "go",
        "rs",
        "php",
        "rb",
        "swift",
        "kt",
        "vue",
        "svelte",
        "astro",
    }
)

_PATH_TOKEN = re.compile(r"[A-Za-z0-9_\-./]+\.[A-Za-z0-9]+")
_FREE_TEXT_PATH = re.compile(r"(?:^|(?<=\s))([A-Za-z0-9_\-./]+\.[A-Za-z0-9]+)(?=\s|$|[.,;:)!?])")
_BACKTICK_SPAN = re.compile(r"`([^`]+)`")
_INVALID_PATH_CHARS = re.compile(r'[<>:"|?*]')

_LINE_RANGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\blines?\s+(\d+)(?:\s*(?:-|–|to)\s*(\d+))?", re.IGNORECASE),
    re.compile(r"#?\bL(\d+)(?:\s*-\s*L?(\d+))?\b"),
    re.compile(r"[A-Za-z0-9]:(\d+)(?:-(\d+))?\b"),
)

_HEADER_OPERATIONS: tuple[tuple[re.Pattern[str], BlockOperation], ...] = (
    (re.compile(r"\b(create|new)\b", re.IGNORECASE), BlockOperation.CREATE),
    (re.compile(r"\b(update|modify|change|edit)\b", re.IGNORECASE), BlockOperation.UPDATE),
    (re.compile(r"\b(delete|remove)\b", re.IGNORECASE), BlockOperation.DELETE),
)

_TITLE = re.compile(r"\s[–-]\s*(.+)$")

_NUMBERED_STEP = re.compile(r"^\s*\d+[.)]\s+(.+)$")
_BULLETED_STEP = re.compile(r"^\s*[-*]\s+(.+)$")


def looks_like_path(token: str) -> bool:
    """Return True if a header token is shaped like a file path.

    A token qualifies when it contains a dot and no whitespace. This is the
    loose test applied to the first token after the language in a fence
    header; it does not consult the extension allow-list.
    """
    return bool(token) and "." in token and not any(ch.isspace() for ch in token)


def parse_line_range(text: str) -> LineRange | None:
    """Extract a line range such as ``lines 10-20``, ``L5-L9`` or ``a.ts:3-7``.

    Returns:
        The first range found, or None. Ranges that would be invalid
        (start < 1, end < start) are ignored.
    """
    for pattern in _LINE_RANGE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else start
        try:
            return LineRange(start, end)
        except ValueError:
            logger.debug("Ignoring invalid line range %s-%s in %r", start, end, text)
    return None


def parse_metadata(header: str) -> BlockMetadata:
    """Resolve a fence header (text after the opening backticks) into metadata.

    Args:
        header: Header text, e.g. ``"ts src/a.ts lines 3-9 - Add helper"``.

    Returns:
        BlockMetadata with language, path, line range, operation and title.
        Missing signals fall back to defaults; the function never raises and
        returns equal results for equal input.

    Example:
        >>> meta = parse_metadata("ts src/a.ts - Add helper")
        >>> (meta.language, meta.file_path, meta.title)
        ('ts', 'src/a.ts', 'Add helper')
    """
    if not header or not header.strip():
        return BlockMetadata()

    header = header.strip()
    words = header.split()

    if "." in words[0]:
        language = DEFAULT_LANGUAGE
        rest = words
    else:
        language = words[0]
        rest = words[1:]

    file_path = None
    if rest and looks_like_path(rest[0]):
        file_path = _strip_location_suffix(rest[0])
    else:
        path_match = _PATH_TOKEN.search(header)
        if path_match:
            file_path = path_match.group(0)

    # Verbs inside the path itself (src/new.ts, update-user.ts) are not hints.
    verb_scope = header.replace(file_path, " ") if file_path else header
    operation = BlockOperation.UNKNOWN
    for pattern, candidate in _HEADER_OPERATIONS:
        if pattern.search(verb_scope):
            operation = candidate
            break

    title = None
    title_match = _TITLE.search(header)
    if title_match:
        title = title_match.group(1).strip() or None

    return BlockMetadata(
        language=language,
        file_path=file_path,
        operation=operation,
        line_range=parse_line_range(header),
        title=title,
    )


def _strip_location_suffix(token: str) -> str:
    """Drop a trailing ``:10-20`` location from a path token."""
    return re.sub(r":\d+(?:-\d+)?$", "", token)


def is_valid_file_path(path: str) -> bool:
    """Check a candidate path against length, character and extension rules."""
    if not path or len(path) < 3 or len(path) > 255:
        return False
    if "." not in path:
        return False
    if _INVALID_PATH_CHARS.search(path):
        return False
    extension = path.rsplit(".", 1)[-1].lower()
    return extension in VALID_EXTENSIONS


def extract_file_paths(text: str) -> list[str]:
    """Find path-like tokens in free text and backtick spans.

    Returns:
        Unique paths validated against the extension allow-list: free-text
        paths first, then backtick spans, each in order of appearance.

    Example:
        >>> extract_file_paths("Edit `src/app.tsx` and then README.md.")
        ['README.md', 'src/app.tsx']
    """
    found: dict[str, None] = {}

    for match in _FREE_TEXT_PATH.finditer(text):
        candidate = match.group(1)
        if is_valid_file_path(candidate):
            found.setdefault(candidate, None)

    for match in _BACKTICK_SPAN.finditer(text):
        candidate = match.group(1).strip()
        if is_valid_file_path(candidate):
            found.setdefault(candidate, None)

    return list(found)


def _instruction_type(lowered: str) -> InstructionType:
    if "create" in lowered or "new file" in lowered:
        return InstructionType.CREATE
    if "delete" in lowered or "remove" in lowered:
        return InstructionType.DELETE
    if "rename" in lowered:
        return InstructionType.RENAME
    if "move" in lowered:
        return InstructionType.MOVE
    return InstructionType.UPDATE


def parse_instruction_line(line: str) -> FileInstruction | None:
    """Parse one natural-language line into a FileInstruction, if it names a file."""
    lowered = line.strip().lower()
    if len(lowered) < 5:
        return None

    instruction_type = _instruction_type(lowered)
    paths = _ordered_paths(line)
    if not paths:
        return None

    source_path = None
    if instruction_type in (InstructionType.RENAME, InstructionType.MOVE):
        if len(paths) < 2:
            return None
        source_path, target_path = paths[0], paths[1]
    else:
        target_path = paths[0]

    return FileInstruction(
        type=instruction_type,
        target_path=target_path,
        source_path=source_path,
        description=line.strip(),
        line_range=parse_line_range(line),
    )


def _ordered_paths(line: str) -> list[str]:
    """Return valid paths in the order they appear in ``line``."""
    positioned: dict[str, int] = {}
    for pattern in (_FREE_TEXT_PATH, _BACKTICK_SPAN):
        for match in pattern.finditer(line):
            candidate = match.group(1).strip()
            if is_valid_file_path(candidate) and candidate not in positioned:
                positioned[candidate] = match.start()
    return sorted(positioned, key=positioned.__getitem__)


def extract_file_instructions(text: str) -> list[FileInstruction]:
    """Scan text line by line for verb + path instructions.

    Returns:
        Instructions deduplicated by ``(type, target_path)``, first occurrence wins.
    """
    seen: dict[tuple[InstructionType, str], FileInstruction] = {}
    for line in text.split("\n"):
        instruction = parse_instruction_line(line)
        if instruction is None:
            continue
        seen.setdefault((instruction.type, instruction.target_path), instruction)

    logger.debug("Extracted %d file instructions", len(seen))
    return list(seen.values())


def parse_steps(text: str) -> list[str]:
    """Return the numbered or bulleted step lines of a response, in order."""
    steps = []
    for line in text.split("\n"):
        match = _NUMBERED_STEP.match(line) or _BULLETED_STEP.match(line)
        if match:
            steps.append(match.group(1).strip())
    return steps


_ES_IMPORT = re.compile(r"import\s+(?:[\w*{}\s,]+?\s+from\s+)?['\"]([^'\"]+)['\"]")
_CJS_REQUIRE = re.compile(r"require\s*\(\s*['\"]([^'\"]+)['\"]\s*\)")
_PY_IMPORT = re.compile(r"^\s*(?:from\s+([\w.]+)\s+import|import\s+([\w.]+))", re.MULTILINE)
_JS_EXPORT = re.compile(
    r"export\s+(?:default\s+)?(?:async\s+)?"
    r"(?:class|function|const|let|var|interface|type|enum)\s+(\w+)"
)
_JS_FUNCTION = re.compile(
    r"(?:function\s+(\w+)\s*\(|(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s*)?(?:\([^)]*\)|\w+)\s*=>)"
)
_PY_FUNCTION = re.compile(r"^\s*(?:async\s+)?def\s+(\w+)\s*\(", re.MULTILINE)
_CLASS = re.compile(r"\bclass\s+(\w+)")

JS_LANGUAGES: frozenset[str] = frozenset(
    {"javascript", "typescript", "js", "ts", "jsx", "tsx", "mjs", "cjs"}
)
PY_LANGUAGES: frozenset[str] = frozenset({"python", "py"})


@dataclass(frozen=True, slots=True)
class CodeAnalysis:
    """Symbols found in a code snippet by regex scanning."""

    imports: tuple[str, ...] = ()
    exports: tuple[str, ...] = ()
    functions: tuple[str, ...] = ()
    classes: tuple[str, ...] = ()


def extract_imports(code: str, language: str | None = None) -> list[str]:
    """Return module specifiers imported by ``code``.

    JS/TS languages are scanned for ES imports and CommonJS requires, Python
    for ``import``/``from`` statements. With no language every form is tried.
    """
    lang = (language or "").lower()
    patterns: list[re.Pattern[str]] = []
    if lang in JS_LANGUAGES or not lang:
        patterns += [_ES_IMPORT, _CJS_REQUIRE]
    if lang in PY_LANGUAGES or not lang:
        patterns.append(_PY_IMPORT)

    imports: dict[str, None] = {}
    for pattern in patterns:
        for match in pattern.finditer(code):
            specifier = next(group for group in match.groups() if group)
            imports.setdefault(specifier, None)
    return list(imports)


def analyze_code(code: str, language: str) -> CodeAnalysis:
    """Collect imports, exports, functions and classes from a snippet.

    Exports are only meaningful for JS/TS; for Python every ``def`` and
    ``class`` is reported under functions/classes. Other languages get
    nothing.
    """
    lang = language.lower()
    if lang in JS_LANGUAGES:
        return CodeAnalysis(
            imports=tuple(extract_imports(code, lang)),
            exports=tuple(_JS_EXPORT.findall(code)),
            functions=tuple(a or b for a, b in _JS_FUNCTION.findall(code)),
            classes=tuple(_CLASS.findall(code)),
        )
    if lang in PY_LANGUAGES:
        return CodeAnalysis(
            imports=tuple(extract_imports(code, lang)),
            functions=tuple(_PY_FUNCTION.findall(code)),
            classes=tuple(_CLASS.findall(code)),
        )
    return CodeAnalysis()


class BlockMetadataResolver:
    """Object facade over the resolver functions.

    The functions are pure; the class exists so collaborators can accept a
    resolver as a dependency and tests can substitute one.
    """

    def parse_metadata(self, header: str) -> BlockMetadata:
        """See :func:`parse_metadata`."""
        return parse_metadata(header)

    def extract_file_paths(self, text: str) -> list[str]:
        """See :func:`extract_file_paths`."""
        return extract_file_paths(text)

    def extract_file_instructions(self, text: str) -> list[FileInstruction]:
        """See :func:`extract_file_instructions`."""
        return extract_file_instructions(text)

    def parse_steps(self, text: str) -> list[str]:
        """See :func:`parse_steps`."""
        return parse_steps(text)
