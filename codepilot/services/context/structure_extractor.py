"""
Structure Extractor

Condenses a source file into a structural summary (imports, types, members)
so large files keep their semantic signal in a fraction of the prompt budget.

This is a best-effort, line-oriented scanner rather than a parser:
  - Comments are stripped per line; a block comment opened on one line and
    closed on a later one is carried across lines.
  - Brace depth is tracked outside string literals and comments.
  - Members are only reported at the body depth of their enclosing type, so
    locals inside method bodies never show up as fields.

Anything it cannot make sense of degrades to the first 1000 characters of
the raw content; extraction never raises.

Usage:
    from codepilot.services.context.structure_extractor import StructureExtractor, LanguageFamily

    extractor = StructureExtractor()
    summary = extractor.summarize(content, LanguageFamily.from_filename("UserService.java"))
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

FALLBACK_LENGTH = 1000
MAX_PARAMS_LENGTH = 50


class LanguageFamily(str, Enum):
    """Groups of languages that share a declaration syntax."""
    BRACE = "brace"            # Java, C#, Kotlin, Scala, Groovy
    TYPESCRIPT = "typescript"  # TypeScript and JavaScript
    PLAIN = "plain"            # Anything without structural extraction

    @classmethod
    def from_filename(cls, filename: str) -> "LanguageFamily":
        name = filename.lower()
        if name.endswith((".java", ".cs", ".kt", ".scala", ".groovy")):
            return cls.BRACE
        if name.endswith((".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")):
            return cls.TYPESCRIPT
        return cls.PLAIN


# ============================================================================
# DECLARATION PATTERNS
# ============================================================================

_TYPE_MODIFIERS = (
    r"(?:(?:public|private|protected|internal|abstract|final|static|sealed|partial|"
    r"open|data|inner|export|default|declare)\s+)*"
)
_MEMBER_MODIFIERS = (
    r"(?:(?:public|private|protected|internal|static|final|transient|volatile|readonly|"
    r"declare|override|abstract|val|var|let|const|lateinit)\s+)*"
)

CLASS_PATTERN = re.compile(rf"^{_TYPE_MODIFIERS}class\s+(\w+)")
INTERFACE_PATTERN = re.compile(rf"^{_TYPE_MODIFIERS}interface\s+(\w+)")
EXTENDS_PATTERN = re.compile(r"\bextends\s+([\w.]+)")
INTERFACE_EXTENDS_PATTERN = re.compile(r"\bextends\s+([\w\s,.<>]+?)\s*(?:\{|$)")
IMPLEMENTS_PATTERN = re.compile(r"\bimplements\s+([\w\s,.<>]+?)\s*(?:\{|$)")

METHOD_PATTERN = re.compile(r"(\w+)\s*(?:<[^>()]*>)?\s*\(([^)]*)(\))?")
TYPED_FIELD_PATTERN = re.compile(rf"^{_MEMBER_MODIFIERS}(#?\w+)[?!]?\s*:\s*([^=;]+?)\s*(?:=|;|,|$)")
JAVA_FIELD_PATTERN = re.compile(
    rf"^{_MEMBER_MODIFIERS}([\w.]+(?:<[\w\s,.<>?\[\]]*>)?(?:\[\])*)\s+(\w+)\s*(?:=|;|,|$)"
)
ASSIGNED_FIELD_PATTERN = re.compile(rf"^{_MEMBER_MODIFIERS}(#?\w+)\s*=")

TS_FUNCTION_PATTERN = re.compile(
    r"^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(\w+)\s*(?:<[^>]*>)?\s*\(([^)]*)\)?"
)
TS_TYPE_ALIAS_PATTERN = re.compile(r"^(?:export\s+)?(?:declare\s+)?type\s+(\w+)")
TS_ENUM_PATTERN = re.compile(r"^(?:export\s+)?(?:declare\s+)?(?:const\s+)?enum\s+(\w+)")
TS_VARIABLE_PATTERN = re.compile(r"^(?:export\s+)?(const|let|var)\s+(\w+)")
ARROW_PARAMS_PATTERN = re.compile(r"=\s*(?:async\s+)?\(([^)]*)\)?")

CONTROL_KEYWORDS = {
    "if", "for", "while", "switch", "catch", "return", "new", "else", "do",
    "try", "throw", "super", "this", "synchronized", "await", "yield",
}


# ============================================================================
# LINE SCANNING
# ============================================================================

class _CommentStripper:
    """Removes comments from successive lines, carrying block-comment state."""

    def __init__(self):
        self.in_block_comment = False

    def strip(self, line: str) -> Tuple[str, int, bool]:
        """
        Return ``(code, depth_delta, opened_brace)`` for one line.

        String literals are kept in ``code`` but braces inside them are not
        counted. Quotes do not carry over line ends.
        """
        code: List[str] = []
        depth_delta = 0
        opened_brace = False
        quote: Optional[str] = None
        i = 0
        n = len(line)

        while i < n:
            ch = line[i]
            nxt = line[i + 1] if i + 1 < n else ""

            if self.in_block_comment:
                if ch == "*" and nxt == "/":
                    self.in_block_comment = False
                    code.append(" ")
                    i += 2
                else:
                    i += 1
                continue

            if quote:
                code.append(ch)
                if ch == "\\" and nxt:
                    code.append(nxt)
                    i += 2
                    continue
                if ch == quote:
                    quote = None
                i += 1
                continue

            if ch == "/" and nxt == "*":
                self.in_block_comment = True
                i += 2
                continue
            if ch == "/" and nxt == "/":
                break

            if ch in ("'", '"', "`"):
                quote = ch
            elif ch == "{":
                depth_delta += 1
                opened_brace = True
            elif ch == "}":
                depth_delta -= 1
            code.append(ch)
            i += 1

        return "".join(code), depth_delta, opened_brace


@dataclass
class _OpenType:
    """A type declaration whose body is (or is about to be) open."""
    name: str
    body_depth: int
    opened: bool = False


@dataclass
class _ScanState:
    depth: int = 0
    types: List[_OpenType] = field(default_factory=list)
    in_signature: bool = False


# ============================================================================
# EXTRACTOR
# ============================================================================

class StructureExtractor:
    """
    Produces structural summaries for block-structured languages.

    Output lines, in source order:
      package/import statements verbatim
      ``Class: Name extends Base implements A, B``
      ``Interface: Name extends A``
      ``  Method: name(params)`` / ``  Field: name : type`` under their type
      ``Function: name(params)``, ``Type: Name``, ``const name`` (TypeScript top level)
    """

    def __init__(self, fallback_length: int = FALLBACK_LENGTH):
        self.fallback_length = fallback_length

    def summarize(self, content: str, file_kind: LanguageFamily = LanguageFamily.BRACE) -> str:
        """Return a structural summary of ``content``, or its first 1000 characters."""
        try:
            if file_kind == LanguageFamily.PLAIN:
                return self._fallback(content)

            structure = self._scan(content, file_kind)
            if not structure:
                return self._fallback(content)
            return "\n".join(structure)

        except Exception as e:
            logger.warning(f"Structure extraction failed, falling back to raw content: {e}")
            return self._fallback(content)

    def _fallback(self, content) -> str:
        if not isinstance(content, str):
            content = "" if content is None else str(content)
        return content[: self.fallback_length]

    def _scan(self, content: str, family: LanguageFamily) -> List[str]:
        structure: List[str] = []
        stripper = _CommentStripper()
        state = _ScanState()

        for raw_line in content.split("\n"):
            code, delta, opened_brace = stripper.strip(raw_line)
            trimmed = code.strip()
            line_depth = state.depth
            state.depth = max(0, state.depth + delta)

            if trimmed:
                self._process_line(trimmed, line_depth, opened_brace, family, state, structure)

            self._update_open_types(state)

        return structure

    def _process_line(
        self,
        trimmed: str,
        line_depth: int,
        opened_brace: bool,
        family: LanguageFamily,
        state: _ScanState,
        structure: List[str],
    ) -> None:
        # Continuation of a multi-line parameter list
        if state.in_signature:
            if ")" in trimmed:
                state.in_signature = False
            return

        if line_depth == 0 and trimmed.startswith(("package ", "import ")):
            structure.append(trimmed)
            return

        type_line = self._match_type_declaration(trimmed)
        if type_line:
            kind, name, description = type_line
            indent = "  " * len(state.types)
            if structure:
                structure.append("")
            structure.append(f"{indent}{kind}: {description}")
            state.types.append(_OpenType(name=name, body_depth=line_depth + 1, opened=opened_brace))
            return

        current = state.types[-1] if state.types else None
        if current and current.opened and line_depth == current.body_depth:
            member = self._match_member(trimmed, state)
            if member:
                indent = "  " * len(state.types)
                structure.append(f"{indent}{member}")
            return

        if family == LanguageFamily.TYPESCRIPT and line_depth == 0 and not state.types:
            declaration = self._match_top_level(trimmed)
            if declaration:
                structure.append(declaration)

    def _update_open_types(self, state: _ScanState) -> None:
        for open_type in state.types:
            if not open_type.opened and state.depth >= open_type.body_depth:
                open_type.opened = True

        while state.types:
            top = state.types[-1]
            if top.opened and state.depth < top.body_depth:
                state.types.pop()
            else:
                break

    # ------------------------------------------------------------------
    # Matchers
    # ------------------------------------------------------------------

    def _match_type_declaration(self, line: str) -> Optional[Tuple[str, str, str]]:
        """Return ``(kind, name, description)`` for class/interface declarations."""
        class_match = CLASS_PATTERN.match(line)
        if class_match and "=" not in line[: class_match.start(1)] and "new " not in line:
            name = class_match.group(1)
            description = name
            extends_match = EXTENDS_PATTERN.search(line)
            if extends_match:
                description += f" extends {extends_match.group(1)}"
            implements_match = IMPLEMENTS_PATTERN.search(line)
            if implements_match:
                description += f" implements {_squash(implements_match.group(1))}"
            return "Class", name, description

        interface_match = INTERFACE_PATTERN.match(line)
        if interface_match:
            name = interface_match.group(1)
            description = name
            extends_match = INTERFACE_EXTENDS_PATTERN.search(line)
            if extends_match:
                description += f" extends {_squash(extends_match.group(1))}"
            return "Interface", name, description

        return None

    def _match_member(self, line: str, state: _ScanState) -> Optional[str]:
        if line.startswith(("@", "{", "}")):
            return None

        first_word = line.split(None, 1)[0].rstrip("(")
        if first_word in CONTROL_KEYWORDS:
            return None

        paren = line.find("(")
        equals = line.find("=")
        is_method = paren >= 0 and (equals < 0 or paren < equals)

        if is_method:
            method_match = METHOD_PATTERN.search(line)
            if not method_match:
                return None
            name = method_match.group(1)
            if name in CONTROL_KEYWORDS:
                return None
            params = _squash(method_match.group(2))
            if method_match.group(3) is None:
                state.in_signature = True
            return f"Method: {name}({_shorten(params)})"

        typed = TYPED_FIELD_PATTERN.match(line)
        if typed:
            return f"Field: {typed.group(1)} : {typed.group(2).strip()}"

        java_field = JAVA_FIELD_PATTERN.match(line)
        if java_field and java_field.group(1) not in CONTROL_KEYWORDS:
            return f"Field: {java_field.group(2)} : {java_field.group(1)}"

        assigned = ASSIGNED_FIELD_PATTERN.match(line)
        if assigned:
            return f"Field: {assigned.group(1)}"

        return None

    def _match_top_level(self, line: str) -> Optional[str]:
        function_match = TS_FUNCTION_PATTERN.match(line)
        if function_match:
            params = _squash(function_match.group(2))
            return f"Function: {function_match.group(1)}({_shorten(params)})"

        alias_match = TS_TYPE_ALIAS_PATTERN.match(line)
        if alias_match:
            return f"Type: {alias_match.group(1)}"

        enum_match = TS_ENUM_PATTERN.match(line)
        if enum_match:
            return f"Enum: {enum_match.group(1)}"

        variable_match = TS_VARIABLE_PATTERN.match(line)
        if variable_match:
            kind, name = variable_match.groups()
            if "=>" in line:
                arrow = ARROW_PARAMS_PATTERN.search(line)
                params = _squash(arrow.group(1)) if arrow else ""
                return f"Function: {name}({_shorten(params)})"
            prefix = "export " if line.startswith("export ") else ""
            return f"{prefix}{kind} {name}"

        return None


def _squash(text: str) -> str:
    """Collapse runs of whitespace."""
    return " ".join(text.split())


def _shorten(params: str) -> str:
    if len(params) > MAX_PARAMS_LENGTH:
        return params[:MAX_PARAMS_LENGTH] + "..."
    return params


_default_extractor = StructureExtractor()


def extract_structure(content: str, file_kind: LanguageFamily = LanguageFamily.BRACE) -> str:
    """Module-level shortcut for ``StructureExtractor().summarize``."""
    return _default_extractor.summarize(content, file_kind)
