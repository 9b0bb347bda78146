"""Strongly typed identifier generator for C#.

Scans C# sources for `partial struct` declarations marked with the
`[Identifier]` attribute and writes one `<Namespace>.<Type>.g.cs` companion
file per struct. Each companion completes the struct as a readonly wrapper
around a `long`: equality, ordering, hashing, `ToString`, explicit
conversions, `Empty` and `With(long)`.

Usage:
    python idgen.py src/ --output-dir src/Generated
    python idgen.py src/ --list
"""

import argparse
import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from pathlib import Path

GENERATOR_NAME = "idgen"
GENERATED_SUFFIX = ".g.cs"
SOURCE_GLOB = "*.cs"
SKIPPED_DIRECTORIES = frozenset({"bin", "obj", ".git", ".vs"})


# ===--- Marker contract ---=== #


ATTRIBUTE_SUFFIX = "Attribute"

MATCH_SIMPLE = "simple"
MATCH_QUALIFIED = "qualified"
MATCH_POLICIES = (MATCH_SIMPLE, MATCH_QUALIFIED)


@dataclass(frozen=True)
class MarkerSpec:
    """Identity of the opt-in attribute.

    Attributes:
        name: Simple name without the `Attribute` suffix, e.g. "Identifier".
        namespace: Declaring namespace, e.g. "Idgen". Empty for the global
            namespace.
    """

    name: str
    namespace: str

    @property
    def class_name(self) -> str:
        return f"{self.name}{ATTRIBUTE_SUFFIX}"

    @property
    def qualified_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}.{self.class_name}"
        return self.class_name

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.namespace}.{self.name}"
        return self.name


DEFAULT_MARKER = MarkerSpec(name="Identifier", namespace="Idgen")


def strip_attribute_suffix(name: str) -> str:
    if name.endswith(ATTRIBUTE_SUFFIX) and len(name) > len(ATTRIBUTE_SUFFIX):
        return name[: -len(ATTRIBUTE_SUFFIX)]
    return name


def unescape_identifier(name: str) -> str:
    """Drop the `@` verbatim prefix from each segment of a dotted name."""
    return ".".join(part.removeprefix("@") for part in name.split("."))


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    sources: tuple[Path, ...]
    output_dir: Path
    marker: MarkerSpec
    policy: str
    emit_marker: bool


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    sources: tuple[Path, ...]
    marker: MarkerSpec
    policy: str


VALID_ERROR_CODES = {
    "NO_SOURCES",
    "PATH_NOT_FOUND",
    "INVALID_MARKER_NAME",
    "MISSING_OUTPUT_DIR",
    "CONFLICT_GENERATE_DISCOVERY",
}
_MARKER_NAME_RE = re.compile(
    r"^(?:global::)?[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*$"
)


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def parse_marker(raw: str) -> MarkerSpec:
    if not _MARKER_NAME_RE.match(raw):
        raise ConfigError(
            "INVALID_MARKER_NAME",
            f"Invalid marker attribute name: {raw}",
            "Pass a C# attribute name, optionally namespace-qualified "
            "(for example Idgen.Identifier).",
        )
    namespace, _, simple = raw.removeprefix("global::").rpartition(".")
    return MarkerSpec(name=strip_attribute_suffix(simple), namespace=namespace)


def validate_path_exists(path: Path, label: str, suggestion: str | None = None) -> Path:
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {label} does not exist: {path}",
        suggestion or "Pass an existing C# file or source directory.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=GENERATOR_NAME,
        description="Generate strongly typed identifier structs for C#",
    )

    parser.add_argument("sources", type=Path, nargs="*", metavar="SOURCE")
    parser.add_argument("--output-dir", type=Path, default=None)
    parser.add_argument("--emit-marker", action="store_true", default=False)
    parser.add_argument("--marker", type=str, default=str(DEFAULT_MARKER))
    parser.add_argument("--strict", action="store_true", default=False)
    parser.add_argument("--list", action="store_true", default=False)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    has_generate_input = bool(args.output_dir is not None or args.emit_marker)

    if args.list and has_generate_input:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "--list cannot be combined with --output-dir or --emit-marker.",
            "Run --list on its own, or drop it to generate.",
        )

    if not args.sources:
        raise ConfigError(
            "NO_SOURCES",
            "No source files or directories given.",
            "Pass one or more C# files or directories: idgen src/ --output-dir out/",
        )

    marker = parse_marker(args.marker)
    policy = MATCH_QUALIFIED if args.strict else MATCH_SIMPLE
    sources = tuple(validate_path_exists(path, "SOURCE") for path in args.sources)

    if args.list:
        return DiscoveryConfig(
            command="list",
            sources=sources,
            marker=marker,
            policy=policy,
        )

    if args.output_dir is None:
        raise ConfigError(
            "MISSING_OUTPUT_DIR",
            "Generate mode requires --output-dir.",
            "Pass --output-dir /path/to/Generated, or use --list to inspect sources.",
        )

    return GenerateConfig(
        sources=sources,
        output_dir=args.output_dir,
        marker=marker,
        policy=policy,
        emit_marker=bool(args.emit_marker),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Lexer ---=== #


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    line: int


_TOKEN_RE = re.compile(
    r"""
    (?P<newline>\n)
  | (?P<space>[^\S\n]+)
  | (?P<line_comment>//[^\n]*)
  | (?P<block_comment>/\*[\s\S]*?(?:\*/|\Z))
  | (?P<raw_string>\$*(?P<quotes>"{3,})[\s\S]*?(?:(?P=quotes)|\Z))
  | (?P<verbatim_string>(?:\$+@|@\$*)"(?:[^"]|"")*(?:"|\Z))
  | (?P<string>\$*"(?:[^"\\\n]|\\.)*(?:"|(?=\n)|\Z))
  | (?P<char>'(?:[^'\\\n]|\\.)*(?:'|(?=\n)|\Z))
  | (?P<ident>@?[^\W\d]\w*)
  | (?P<number>\d[\w.]*)
  | (?P<punct>::|\S)
    """,
    re.VERBOSE,
)
_STRING_KINDS = frozenset({"raw_string", "verbatim_string", "string"})
_COMMENT_KINDS = frozenset({"line_comment", "block_comment"})


def tokenize(text: str) -> list[Token]:
    """Split C# source into identifier, literal and punctuation tokens.

    Whitespace, comments and preprocessor lines are dropped. Both branches
    of `#if` blocks are kept. Unterminated comments and literals run to the
    end of the input instead of raising.
    """
    tokens: list[Token] = []
    pos = 0
    line = 1
    at_line_start = True
    length = len(text)

    while pos < length:
        if at_line_start and text[pos] == "#":
            end = text.find("\n", pos)
            pos = length if end == -1 else end
            continue

        match = _TOKEN_RE.match(text, pos)
        kind = match.lastgroup
        value = match.group()
        pos = match.end()

        if kind == "newline":
            line += 1
            at_line_start = True
            continue
        if kind == "space":
            continue

        at_line_start = False
        if kind not in _COMMENT_KINDS:
            if kind in _STRING_KINDS:
                kind = "string"
            tokens.append(Token(kind, value, line))
        line += value.count("\n")

    return tokens


# ===--- Declaration model ---=== #


@dataclass(frozen=True)
class AttributeRef:
    """One attribute application as written, before name resolution.

    Attributes:
        name: Dotted name with any `global::` prefix and generic arguments
            removed, e.g. "Identifier" or "Idgen.IdentifierAttribute".
        is_global: True when written with a `global::` prefix.
        line: 1-based source line of the attribute name.
    """

    name: str
    is_global: bool = False
    line: int = 0


@dataclass(frozen=True)
class UsingDirective:
    namespace: str
    alias: str | None = None
    is_static: bool = False
    is_global: bool = False


@dataclass(frozen=True)
class CandidateDeclaration:
    """A struct declaration found by the scanner.

    Attributes:
        name: Declared simple name. Empty when the declaration is malformed.
        namespace: Enclosing namespace exactly as written, "" for the global
            namespace.
        is_extensible: True when the declaration carries `partial`.
        raw_attributes: Attribute applications in source order.
        modifiers: Modifier keywords on the declaration.
        containing_types: Names of enclosing type declarations, outermost
            first. Empty for top-level structs.
        type_parameters: Generic type parameter names.
        usings: Using directives visible at the declaration.
        path: Source file the declaration was read from.
        line: 1-based line of the `struct` keyword.
    """

    name: str
    namespace: str
    is_extensible: bool
    raw_attributes: tuple[AttributeRef, ...] = ()
    modifiers: frozenset[str] = frozenset()
    containing_types: tuple[str, ...] = ()
    type_parameters: tuple[str, ...] = ()
    usings: tuple[UsingDirective, ...] = ()
    path: str = ""
    line: int = 0

    @property
    def namespace_qualified_name(self) -> str:
        name = ".".join((*self.containing_types, self.name))
        if self.namespace:
            return f"{self.namespace}.{name}"
        return name

    @property
    def location(self) -> str:
        return f"{self.path}:{self.line}"


@dataclass(frozen=True)
class ParsedSource:
    path: str
    declarations: tuple[CandidateDeclaration, ...]
    global_usings: tuple[UsingDirective, ...]


# ===--- Candidate scanner ---=== #


MODIFIERS = frozenset(
    {
        "public",
        "private",
        "protected",
        "internal",
        "file",
        "static",
        "readonly",
        "partial",
        "ref",
        "unsafe",
        "new",
        "sealed",
        "abstract",
        "extern",
        "virtual",
        "override",
        "required",
        "scoped",
    }
)
_TYPE_KEYWORDS = frozenset({"struct", "class", "interface", "enum", "record"})
_ATTRIBUTE_PREDECESSORS = frozenset({";", "{", "}", "]"})
_CONSTRAINT_PREDECESSORS = frozenset({":", ","})

_NAMESPACE_SCOPE = "namespace"
_TYPE_SCOPE = "type"
_BLOCK_SCOPE = "block"


@dataclass
class _Scope:
    kind: str
    name: str = ""
    braced: bool = True
    usings: list[UsingDirective] = field(default_factory=list)


def _is_punct(token: Token | None, value: str) -> bool:
    return token is not None and token.kind == "punct" and token.value == value


def _read_qualified_name(tokens: list[Token], start: int) -> tuple[str, bool, int]:
    """Read `A.B.C`, `global::A.B` or `alias::A` starting at tokens[start].

    Returns the dotted name, whether it was `global::`-qualified, and the
    index of the first token after the name.
    """
    parts: list[str] = []
    is_global = False
    pos = start
    while pos < len(tokens) and tokens[pos].kind == "ident":
        parts.append(tokens[pos].value)
        pos += 1
        if (
            pos + 1 < len(tokens)
            and tokens[pos].kind == "punct"
            and tokens[pos].value in (".", "::")
            and tokens[pos + 1].kind == "ident"
        ):
            if tokens[pos].value == "::" and parts == ["global"]:
                parts = []
                is_global = True
            pos += 1
            continue
        break
    return ".".join(parts), is_global, pos


def _attribute_ref(tokens: list[Token]) -> AttributeRef | None:
    if not tokens or tokens[0].kind != "ident":
        return None
    name, is_global, _ = _read_qualified_name(tokens, 0)
    if not name:
        return None
    return AttributeRef(
        name=unescape_identifier(name), is_global=is_global, line=tokens[0].line
    )


class _DeclarationParser:
    """Single forward pass over one file's tokens.

    Tracks namespace, type and block scopes by brace nesting. Struct
    declarations are recorded with the attributes and modifiers that
    immediately precede them; anything else clears that pending state.
    """

    def __init__(self, tokens: list[Token], path: str):
        self.tokens = tokens
        self.path = path
        self.pos = 0
        self.scopes: list[_Scope] = [_Scope(_NAMESPACE_SCOPE, braced=False)]
        self.declarations: list[CandidateDeclaration] = []
        self.global_usings: list[UsingDirective] = []
        self.pending_attributes: list[AttributeRef] = []
        self.pending_modifiers: list[str] = []

    def parse(self) -> ParsedSource:
        while self.pos < len(self.tokens):
            self._step(self.tokens[self.pos])
        return ParsedSource(
            path=self.path,
            declarations=tuple(self.declarations),
            global_usings=tuple(self.global_usings),
        )

    # --- state helpers

    def _peek(self, offset: int = 0) -> Token | None:
        index = self.pos + offset
        if 0 <= index < len(self.tokens):
            return self.tokens[index]
        return None

    def _reset_pending(self) -> None:
        self.pending_attributes = []
        self.pending_modifiers = []

    def _current_namespace(self) -> str:
        return ".".join(
            s.name for s in self.scopes if s.kind == _NAMESPACE_SCOPE and s.name
        )

    def _containing_types(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.scopes if s.kind == _TYPE_SCOPE)

    def _visible_usings(self) -> tuple[UsingDirective, ...]:
        return tuple(
            u for s in self.scopes if s.kind == _NAMESPACE_SCOPE for u in s.usings
        )

    def _at_attribute_position(self) -> bool:
        if self.scopes[-1].kind == _BLOCK_SCOPE or self.pending_modifiers:
            return False
        previous = self._peek(-1)
        return previous is None or (
            previous.kind == "punct" and previous.value in _ATTRIBUTE_PREDECESSORS
        )

    def _after_constraint_colon(self) -> bool:
        previous = self._peek(-1)
        return (
            previous is not None
            and previous.kind == "punct"
            and previous.value in _CONSTRAINT_PREDECESSORS
        )

    # --- dispatch

    def _step(self, token: Token) -> None:
        if token.kind == "punct":
            if token.value == "[" and self._at_attribute_position():
                self._parse_attribute_section()
                return
            if token.value == "{":
                self.scopes.append(_Scope(_BLOCK_SCOPE))
            elif token.value == "}":
                if len(self.scopes) > 1 and self.scopes[-1].braced:
                    self.scopes.pop()
            self._reset_pending()
            self.pos += 1
            return

        if token.kind != "ident" or self.scopes[-1].kind == _BLOCK_SCOPE:
            self._reset_pending()
            self.pos += 1
            return

        value = token.value
        next_token = self._peek(1)
        at_namespace_level = self.scopes[-1].kind == _NAMESPACE_SCOPE

        if at_namespace_level and (
            value == "using"
            or (value == "global" and next_token is not None and next_token.value == "using")
        ):
            self._parse_using()
        elif at_namespace_level and value == "namespace":
            self._parse_namespace()
        elif value in MODIFIERS:
            self.pending_modifiers.append(value)
            self.pos += 1
        elif value in _TYPE_KEYWORDS and not self._after_constraint_colon():
            self._parse_type_declaration()
        else:
            self._reset_pending()
            self.pos += 1

    # --- directives

    def _parse_using(self) -> None:
        is_global = self.tokens[self.pos].value == "global"
        self.pos += 2 if is_global else 1

        is_static = False
        token = self._peek()
        if token is not None and token.kind == "ident" and token.value == "static":
            is_static = True
            self.pos += 1

        alias = None
        token = self._peek()
        if token is not None and token.kind == "ident" and _is_punct(self._peek(1), "="):
            alias = unescape_identifier(token.value)
            self.pos += 2

        namespace, _, self.pos = _read_qualified_name(self.tokens, self.pos)

        while self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            if token.kind == "punct" and token.value in ("{", "}"):
                break
            self.pos += 1
            if token.kind == "punct" and token.value == ";":
                if namespace:
                    directive = UsingDirective(
                        namespace=unescape_identifier(namespace),
                        alias=alias,
                        is_static=is_static,
                        is_global=is_global,
                    )
                    self.scopes[-1].usings.append(directive)
                    if is_global:
                        self.global_usings.append(directive)
                break
        self._reset_pending()

    def _parse_namespace(self) -> None:
        name, _, self.pos = _read_qualified_name(self.tokens, self.pos + 1)
        token = self._peek()
        if _is_punct(token, "{"):
            self.scopes.append(_Scope(_NAMESPACE_SCOPE, name=name, braced=True))
            self.pos += 1
        elif _is_punct(token, ";"):
            self.scopes.append(_Scope(_NAMESPACE_SCOPE, name=name, braced=False))
            self.pos += 1
        self._reset_pending()

    def _parse_attribute_section(self) -> None:
        self.pos += 1
        depth = 0
        angle_depth = 0
        groups: list[list[Token]] = [[]]

        while self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            if token.kind == "punct":
                if token.value in ("(", "[", "{"):
                    depth += 1
                elif token.value in (")", "]", "}"):
                    if depth == 0:
                        if token.value == "]":
                            self.pos += 1
                        break
                    depth -= 1
                elif depth == 0 and token.value == "<":
                    angle_depth += 1
                elif depth == 0 and token.value == ">":
                    angle_depth = max(angle_depth - 1, 0)
                elif depth == 0 and angle_depth == 0 and token.value == ",":
                    groups.append([])
                    self.pos += 1
                    continue
            groups[-1].append(token)
            self.pos += 1

        first = groups[0]
        if len(first) >= 2 and first[0].kind == "ident" and _is_punct(first[1], ":"):
            groups[0] = first[2:]

        for group in groups:
            ref = _attribute_ref(group)
            if ref is not None:
                self.pending_attributes.append(ref)

    # --- type declarations

    def _parse_type_declaration(self) -> None:
        keyword = self.tokens[self.pos]
        self.pos += 1

        is_record = keyword.value == "record"
        token = self._peek()
        if (
            is_record
            and token is not None
            and token.kind == "ident"
            and token.value in ("struct", "class")
        ):
            self.pos += 1

        name = ""
        token = self._peek()
        if token is not None and token.kind == "ident":
            name = token.value
            self.pos += 1

        type_parameters: tuple[str, ...] = ()
        if _is_punct(self._peek(), "<"):
            type_parameters = self._read_type_parameters()

        if keyword.value == "struct":
            self.declarations.append(
                CandidateDeclaration(
                    name=name,
                    namespace=self._current_namespace(),
                    is_extensible="partial" in self.pending_modifiers,
                    raw_attributes=tuple(self.pending_attributes),
                    modifiers=frozenset(self.pending_modifiers),
                    containing_types=self._containing_types(),
                    type_parameters=type_parameters,
                    usings=self._visible_usings(),
                    path=self.path,
                    line=keyword.line,
                )
            )

        self._reset_pending()
        self._skip_to_body(name)

    def _read_type_parameters(self) -> tuple[str, ...]:
        self.pos += 1
        depth = 1
        bracket_depth = 0
        names: list[str] = []
        while self.pos < len(self.tokens) and depth > 0:
            token = self.tokens[self.pos]
            self.pos += 1
            if token.kind == "punct":
                if token.value == "<":
                    depth += 1
                elif token.value == ">":
                    depth -= 1
                elif token.value == "[":
                    bracket_depth += 1
                elif token.value == "]":
                    bracket_depth -= 1
                elif token.value in ("{", ";"):
                    self.pos -= 1
                    break
            elif (
                token.kind == "ident"
                and depth == 1
                and bracket_depth == 0
                and token.value not in ("in", "out")
            ):
                names.append(token.value)
        return tuple(names)

    def _skip_to_body(self, name: str) -> None:
        paren_depth = 0
        while self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            if token.kind == "punct":
                if token.value == "(":
                    paren_depth += 1
                elif token.value == ")":
                    paren_depth = max(paren_depth - 1, 0)
                elif token.value == "}":
                    return
                elif paren_depth == 0 and token.value == "{":
                    self.scopes.append(_Scope(_TYPE_SCOPE, name=name))
                    self.pos += 1
                    return
                elif paren_depth == 0 and token.value == ";":
                    self.pos += 1
                    return
            self.pos += 1


def parse_source(text: str, path: str = "") -> ParsedSource:
    return _DeclarationParser(tokenize(text), path).parse()


def parse_declarations(text: str, path: str = "") -> tuple[CandidateDeclaration, ...]:
    """Return every struct declaration in one C# source text, in source order.

    Non-partial structs are included (with is_extensible=False) so callers
    can report on them; `scan_source` applies the extensibility filter.
    `record struct` declarations are records, not structs, and are skipped.
    """
    return parse_source(text, path).declarations


def scan_source(text: str, path: str = "") -> tuple[CandidateDeclaration, ...]:
    return tuple(d for d in parse_declarations(text, path) if d.is_extensible)


# ===--- Source discovery ---=== #


def discover_sources(paths: Iterable[Path]) -> tuple[Path, ...]:
    """Expand files and directories into the sorted set of C# files to scan.

    Directories are walked recursively for `*.cs`. Build output folders
    (`bin`, `obj`) and previously generated `*.g.cs` files are left out so a
    generator run over its own output directory is stable. File arguments
    are taken as given, whatever their suffix.
    """
    found: set[Path] = set()
    for path in paths:
        path = Path(path)
        if not path.is_dir():
            found.add(path)
            continue
        for candidate in path.rglob(SOURCE_GLOB):
            relative_dirs = candidate.relative_to(path).parts[:-1]
            if any(part in SKIPPED_DIRECTORIES for part in relative_dirs):
                continue
            if candidate.name.endswith(GENERATED_SUFFIX) or not candidate.is_file():
                continue
            found.add(candidate)
    return tuple(sorted(found))


def read_source(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8-sig", errors="replace")


def scan_declarations(source_paths: Iterable[Path]) -> tuple[CandidateDeclaration, ...]:
    """Parse every discovered file and return all struct declarations.

    `global using` directives apply project-wide, so directives found in any
    scanned file are appended to every declaration's visible usings.

    Raises:
        OSError: A source file could not be read.
    """
    parsed = [
        parse_source(read_source(path), str(path))
        for path in discover_sources(source_paths)
    ]
    global_usings = tuple(
        dict.fromkeys(u for source in parsed for u in source.global_usings)
    )

    declarations: list[CandidateDeclaration] = []
    for source in parsed:
        for declaration in source.declarations:
            extra = tuple(u for u in global_usings if u not in declaration.usings)
            if extra:
                declaration = replace(declaration, usings=declaration.usings + extra)
            declarations.append(declaration)
    return tuple(declarations)


def scan(source_paths: Iterable[Path]) -> tuple[CandidateDeclaration, ...]:
    """Phase one: collect extensible struct declarations from source paths."""
    return tuple(d for d in scan_declarations(source_paths) if d.is_extensible)


# ===--- Semantic model ---=== #


SymbolKey = tuple[str, tuple[str, ...], str, int]


@dataclass(frozen=True)
class TypeSymbol:
    """One type assembled from all of its partial declarations.

    Attributes:
        namespace: Enclosing namespace, "" for the global namespace.
        name: Simple type name as declared.
        declarations: Every partial declaration of the type, in scan order.
        containing_types: Enclosing type names, outermost first.
        arity: Number of generic type parameters.
    """

    namespace: str
    name: str
    declarations: tuple[CandidateDeclaration, ...]
    containing_types: tuple[str, ...] = ()
    arity: int = 0

    @property
    def qualified_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}.{self.name}"
        return self.name


def symbol_key(declaration: CandidateDeclaration) -> SymbolKey:
    """Identity of the declared type; `@`-escaped and plain spellings agree."""
    return (
        unescape_identifier(declaration.namespace),
        tuple(unescape_identifier(t) for t in declaration.containing_types),
        unescape_identifier(declaration.name),
        len(declaration.type_parameters),
    )


def is_resolvable(declaration: CandidateDeclaration) -> bool:
    return bool(
        declaration.name
        and not declaration.containing_types
        and not declaration.type_parameters
    )


@dataclass(frozen=True)
class SemanticModel:
    """Per-run symbol table built from the scanned candidates.

    Only top-level, non-generic, named partial declarations resolve; the
    generated template cannot complete anything else. A resolvable
    declaration missing from the table resolves to a symbol of its own.
    """

    symbols: dict[SymbolKey, TypeSymbol]

    def resolve(self, declaration: CandidateDeclaration) -> TypeSymbol | None:
        if not declaration.is_extensible or not is_resolvable(declaration):
            return None
        symbol = self.symbols.get(symbol_key(declaration))
        if symbol is None:
            return TypeSymbol(
                declaration.namespace,
                declaration.name,
                (declaration,),
                declaration.containing_types,
                len(declaration.type_parameters),
            )
        return symbol


def build_semantic_model(
    candidates: Iterable[CandidateDeclaration],
) -> SemanticModel:
    grouped: dict[SymbolKey, list[CandidateDeclaration]] = {}
    for candidate in candidates:
        if candidate.is_extensible and is_resolvable(candidate):
            grouped.setdefault(symbol_key(candidate), []).append(candidate)
    return SemanticModel(
        symbols={
            key: TypeSymbol(
                namespace=parts[0].namespace,
                name=parts[0].name,
                declarations=tuple(parts),
                containing_types=parts[0].containing_types,
                arity=len(parts[0].type_parameters),
            )
            for key, parts in grouped.items()
        }
    )


# ===--- Qualifier ---=== #


SKIP_NOT_PARTIAL = "NOT_PARTIAL"
SKIP_NO_MARKER = "NO_MARKER"
SKIP_NESTED_TYPE = "NESTED_TYPE"
SKIP_GENERIC_TYPE = "GENERIC_TYPE"
SKIP_UNRESOLVED = "UNRESOLVED"

SKIP_REASON_LABELS = {
    SKIP_NOT_PARTIAL: "not partial",
    SKIP_NO_MARKER: "no marker",
    SKIP_NESTED_TYPE: "nested type",
    SKIP_GENERIC_TYPE: "generic type",
    SKIP_UNRESOLVED: "unresolved declaration",
}


@dataclass(frozen=True)
class QualifiedType:
    namespace: str
    type_name: str
    sources: tuple[str, ...] = ()

    @property
    def qualified_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}.{self.type_name}"
        return self.type_name


@dataclass(frozen=True)
class SkippedDeclaration:
    candidate: CandidateDeclaration
    reason: str

    @property
    def label(self) -> str:
        return SKIP_REASON_LABELS[self.reason]


@dataclass(frozen=True)
class QualificationResult:
    """Outcome of qualifying one run's declarations.

    Attributes:
        qualified: One entry per qualifying type, in first-declaration order.
            Additional partial declarations of an already qualified type
            are folded into its entry, not reported again.
        skipped: Every declaration that did not qualify, with its reason.
    """

    qualified: tuple[QualifiedType, ...]
    skipped: tuple[SkippedDeclaration, ...]

    @property
    def notable_skips(self) -> tuple[SkippedDeclaration, ...]:
        """Skipped declarations that carry the marker and still got no unit."""
        return tuple(s for s in self.skipped if s.reason != SKIP_NO_MARKER)


def resolve_attribute_names(
    attribute: AttributeRef, declaration: CandidateDeclaration
) -> frozenset[str]:
    """Return every fully qualified class name an attribute reference may bind to.

    Mirrors C# lookup closely enough for marker detection: the name as
    written, the name under each enclosing namespace, alias expansion of the
    first segment, and (for single-segment names) each imported namespace.
    Each candidate is offered with and without the `Attribute` suffix.
    """
    bases = {attribute.name}

    if not attribute.is_global:
        head, _, rest = attribute.name.partition(".")
        aliases = {u.alias: u.namespace for u in declaration.usings if u.alias}
        if head in aliases:
            bases.add(f"{aliases[head]}.{rest}" if rest else aliases[head])

        namespace = unescape_identifier(declaration.namespace)
        parts = namespace.split(".") if namespace else []
        for end in range(len(parts), 0, -1):
            bases.add(f"{'.'.join(parts[:end])}.{attribute.name}")

        if not rest:
            for directive in declaration.usings:
                if directive.alias is None and not directive.is_static:
                    bases.add(f"{directive.namespace}.{attribute.name}")

    names: set[str] = set()
    for base in bases:
        names.add(base)
        names.add(f"{base}{ATTRIBUTE_SUFFIX}")
    return frozenset(names)


def attribute_matches(
    attribute: AttributeRef,
    declaration: CandidateDeclaration,
    marker: MarkerSpec = DEFAULT_MARKER,
    policy: str = MATCH_SIMPLE,
) -> bool:
    if policy == MATCH_QUALIFIED:
        return marker.qualified_name in resolve_attribute_names(attribute, declaration)
    simple_name = attribute.name.rpartition(".")[2]
    return strip_attribute_suffix(simple_name) == marker.name


def carries_marker(
    declarations: Iterable[CandidateDeclaration],
    marker: MarkerSpec = DEFAULT_MARKER,
    policy: str = MATCH_SIMPLE,
) -> bool:
    return any(
        attribute_matches(attribute, declaration, marker, policy)
        for declaration in declarations
        for attribute in declaration.raw_attributes
    )


def classify(
    candidate: CandidateDeclaration,
    model: SemanticModel,
    marker: MarkerSpec = DEFAULT_MARKER,
    policy: str = MATCH_SIMPLE,
) -> str | None:
    """Return the skip reason for a declaration, or None when it qualifies.

    Attributes are collected across every partial declaration of the same
    type, so the marker may sit on any one of them.
    """
    symbol = model.resolve(candidate)
    parts = symbol.declarations if symbol is not None else (candidate,)
    if not carries_marker(parts, marker, policy):
        return SKIP_NO_MARKER
    if not candidate.is_extensible:
        return SKIP_NOT_PARTIAL
    if symbol is None:
        if not candidate.name:
            return SKIP_UNRESOLVED
        if candidate.containing_types:
            return SKIP_NESTED_TYPE
        return SKIP_GENERIC_TYPE
    return None


def qualify(
    candidate: CandidateDeclaration,
    model: SemanticModel,
    marker: MarkerSpec = DEFAULT_MARKER,
    policy: str = MATCH_SIMPLE,
) -> QualifiedType | None:
    if classify(candidate, model, marker, policy) is not None:
        return None
    symbol = model.resolve(candidate)
    return QualifiedType(
        namespace=symbol.namespace,
        type_name=symbol.name,
        sources=tuple(d.location for d in symbol.declarations),
    )


def qualify_all(
    declarations: Iterable[CandidateDeclaration],
    marker: MarkerSpec = DEFAULT_MARKER,
    policy: str = MATCH_SIMPLE,
) -> QualificationResult:
    declarations = tuple(declarations)
    model = build_semantic_model(declarations)

    qualified: list[QualifiedType] = []
    skipped: list[SkippedDeclaration] = []
    seen: set[SymbolKey] = set()
    for declaration in declarations:
        reason = classify(declaration, model, marker, policy)
        if reason is not None:
            skipped.append(SkippedDeclaration(candidate=declaration, reason=reason))
            continue
        key = symbol_key(declaration)
        if key in seen:
            continue
        seen.add(key)
        qualified.append(qualify(declaration, model, marker, policy))

    return QualificationResult(qualified=tuple(qualified), skipped=tuple(skipped))


# ===--- Emitter ---=== #


@dataclass(frozen=True)
class GeneratedUnit:
    """One generated source file.

    Attributes:
        hint_name: Output filename and unique key within a run,
            e.g. "Shop.Orders.OrderId.g.cs".
        namespace: Namespace the unit declares into.
        type_name: Declared type name.
        content: Rendered C# source without the file header and without a
            trailing newline.
        sources: Locations of the user declarations this unit completes.
    """

    hint_name: str
    namespace: str
    type_name: str
    content: str
    sources: tuple[str, ...] = ()


def unit_hint_name(namespace: str, type_name: str) -> str:
    namespace = unescape_identifier(namespace)
    type_name = unescape_identifier(type_name)
    if namespace:
        return f"{namespace}.{type_name}{GENERATED_SUFFIX}"
    return f"{type_name}{GENERATED_SUFFIX}"


def _wrap_namespace(namespace: str, body: list[str]) -> list[str]:
    if not namespace:
        return body
    return [f"namespace {namespace}", "{", *(f"    {line}" for line in body), "}"]


def _identifier_body_lines(type_name: str) -> list[str]:
    t = type_name
    return [
        '[DebuggerDisplay("{ToString(),nq}")]',
        f"readonly partial struct {t} : IEquatable<{t}>, IComparable<{t}>",
        "{",
        "    private readonly long _value;",
        f"    private {t}(long value) => _value = value;",
        f"    public int CompareTo({t} other) => _value.CompareTo(other._value);",
        f"    public bool Equals({t} other) => _value == other._value;",
        f"    public override bool Equals(object? obj) => obj is {t} id && Equals(id);",
        "    public override int GetHashCode() => _value.GetHashCode();",
        "    public override string ToString() =>"
        " _value.ToString(System.Globalization.CultureInfo.InvariantCulture);",
        f"    public static explicit operator {t}(long value) => new(value);",
        f"    public static explicit operator long({t} value) => value._value;",
        f"    public static bool operator ==({t} left, {t} right) => left.Equals(right);",
        f"    public static bool operator !=({t} left, {t} right) => !left.Equals(right);",
        f"    public static bool operator <({t} left, {t} right) => left._value < right._value;",
        f"    public static bool operator >({t} left, {t} right) => left._value > right._value;",
        f"    public static bool operator <=({t} left, {t} right) => left._value <= right._value;",
        f"    public static bool operator >=({t} left, {t} right) => left._value >= right._value;",
        f"    public static {t} Empty => default;",
        f"    public static {t} With(long value) => new(value);",
        "}",
    ]


def render_identifier_source(namespace: str, type_name: str) -> str:
    """Render the strongly typed identifier completion for one struct.

    Output for namespace "Shop.Orders", type "OrderId":

        #nullable enable
        using System;
        using System.Diagnostics;
        namespace Shop.Orders
        {
            [DebuggerDisplay("{ToString(),nq}")]
            readonly partial struct OrderId : IEquatable<OrderId>, ...
            {
                private readonly long _value;
                ...
                public static OrderId With(long value) => new(value);
            }
        }

    The namespace block is omitted for types in the global namespace.
    Both arguments are inserted verbatim, so `@`-escaped names keep their
    escape. The generated part declares no accessibility and takes it from
    the user-authored declaration.

    Args:
        namespace: Enclosing namespace as declared, "" for global.
        type_name: Struct simple name.

    Returns:
        C# source text without a trailing newline.
    """
    lines = ["#nullable enable", "using System;", "using System.Diagnostics;"]
    lines.extend(_wrap_namespace(namespace, _identifier_body_lines(type_name)))
    return "\n".join(lines)


def emit_unit(qualified: QualifiedType) -> GeneratedUnit:
    return GeneratedUnit(
        hint_name=unit_hint_name(qualified.namespace, qualified.type_name),
        namespace=qualified.namespace,
        type_name=qualified.type_name,
        content=render_identifier_source(qualified.namespace, qualified.type_name),
        sources=qualified.sources,
    )


def render_marker_source(marker: MarkerSpec = DEFAULT_MARKER) -> str:
    """Render the declaration of the marker attribute class itself."""
    body = [
        "[AttributeUsage(AttributeTargets.Struct)]",
        f"public class {marker.class_name} : Attribute {{ }}",
    ]
    lines = ["using System;"]
    lines.extend(_wrap_namespace(marker.namespace, body))
    return "\n".join(lines)


def emit_marker_unit(marker: MarkerSpec = DEFAULT_MARKER) -> GeneratedUnit:
    return GeneratedUnit(
        hint_name=unit_hint_name(marker.namespace, marker.class_name),
        namespace=marker.namespace,
        type_name=marker.class_name,
        content=render_marker_source(marker),
    )


def generate(
    candidates: Iterable[CandidateDeclaration],
    marker: MarkerSpec = DEFAULT_MARKER,
    policy: str = MATCH_SIMPLE,
) -> tuple[GeneratedUnit, ...]:
    """Phase two: turn scanned candidates into generated units.

    One unit per qualifying type, keyed `<namespace>.<Type>.g.cs`, so types
    sharing a simple name in different namespaces never collide.
    """
    result = qualify_all(candidates, marker, policy)
    return tuple(emit_unit(q) for q in result.qualified)


# ===--- Package writer ---=== #


@dataclass(frozen=True)
class WriteConfig:
    """Run metadata embedded in every generated file header.

    Attributes:
        marker: Marker attribute the run matched against.
        policy: Match policy used, MATCH_SIMPLE or MATCH_QUALIFIED.
    """

    marker: MarkerSpec = DEFAULT_MARKER
    policy: str = MATCH_SIMPLE


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Filename written, e.g. "Shop.Orders.OrderId.g.cs".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class PackageWriteResult:
    """Result of writing every unit of a run.

    Attributes:
        output_dir: Directory all files were written to.
        files: One FileWriteResult per file, in write order.
    """

    output_dir: Path
    files: tuple[FileWriteResult, ...]

    @property
    def total_lines(self) -> int:
        """Sum of line_count across all written files."""
        return sum(f.line_count for f in self.files)


def format_file_header(config: WriteConfig, unit: GeneratedUnit) -> list[str]:
    """Return the `// <auto-generated>` comment block for one generated file.

    Output format:
        // <auto-generated>
        //     Generated by idgen. Changes to this file are lost on regeneration.
        //     Type: Shop.Orders.OrderId
        //     Source: src/Orders/OrderId.cs:6
        //     Marker: Idgen.Identifier (simple match)
        // </auto-generated>

    One Source line per declaration; none for the marker attribute unit.
    The `<auto-generated>` tag makes C# analyzers skip the file.

    Args:
        config: Run metadata.
        unit: Unit the header is written for.

    Returns:
        Header lines without trailing newlines.
    """
    qualified = f"{unit.namespace}.{unit.type_name}" if unit.namespace else unit.type_name
    lines = [
        "// <auto-generated>",
        f"//     Generated by {GENERATOR_NAME}. "
        "Changes to this file are lost on regeneration.",
        f"//     Type: {qualified}",
    ]
    for source in unit.sources:
        lines.append(f"//     Source: {source}")
    lines.append(f"//     Marker: {config.marker} ({config.policy} match)")
    lines.append("// </auto-generated>")
    return lines


def assemble_unit_source(config: WriteConfig, unit: GeneratedUnit) -> str:
    """Assemble the complete file text for one unit: header, content, newline.

    Raises:
        ValueError: If unit.hint_name does not end with ".g.cs".
    """
    if not unit.hint_name.endswith(GENERATED_SUFFIX):
        raise ValueError(
            f"unit.hint_name must end with {GENERATED_SUFFIX!r}, got {unit.hint_name!r}"
        )
    parts = format_file_header(config, unit)
    parts.append(unit.content)
    return "\n".join(parts) + "\n"


def write_unit(
    output_dir: Path, config: WriteConfig, unit: GeneratedUnit
) -> FileWriteResult:
    """Write one generated unit to `output_dir / unit.hint_name`.

    Creates output_dir (and any missing parents) first.

    Raises:
        ValueError: Propagated from assemble_unit_source.
        OSError: Propagated directly if the filesystem write fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    content = assemble_unit_source(config, unit)
    file_path = output_dir / unit.hint_name
    file_path.write_text(content, encoding="utf-8")
    resolved = file_path.resolve()
    return FileWriteResult(
        filename=unit.hint_name,
        path=resolved,
        line_count=content.count("\n"),
        byte_count=len(resolved.read_bytes()),
    )


def write_units(
    output_dir: Path,
    config: WriteConfig,
    units: tuple[GeneratedUnit, ...],
) -> PackageWriteResult:
    """Write every unit of a run, in the order given.

    The output directory is created even when there is nothing to write.
    Existing files that no longer correspond to a unit are left in place.
    Write failures propagate without rollback.

    Raises:
        ValueError: Two units share a hint name.
        OSError: Propagated directly from any write failure.
    """
    hint_names = [unit.hint_name for unit in units]
    duplicates = sorted({name for name in hint_names if hint_names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate generated unit names: {', '.join(duplicates)}")

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    files = tuple(write_unit(output_dir, config, unit) for unit in units)
    return PackageWriteResult(output_dir=Path(output_dir), files=files)


# ===--- Discovery ---=== #


@dataclass(frozen=True)
class DeclarationRow:
    """One row of the --list table.

    Attributes:
        name: Namespace-qualified struct name.
        location: "path:line" of the declaration.
        verdict: "generate" or "skip: <reason label>".
    """

    name: str
    location: str
    verdict: str


def build_declaration_rows(
    declarations: tuple[CandidateDeclaration, ...],
    marker: MarkerSpec = DEFAULT_MARKER,
    policy: str = MATCH_SIMPLE,
) -> list[DeclarationRow]:
    model = build_semantic_model(declarations)
    rows: list[DeclarationRow] = []
    for declaration in declarations:
        reason = classify(declaration, model, marker, policy)
        verdict = "generate" if reason is None else f"skip: {SKIP_REASON_LABELS[reason]}"
        rows.append(
            DeclarationRow(
                name=declaration.namespace_qualified_name or "<unnamed>",
                location=declaration.location,
                verdict=verdict,
            )
        )
    return rows


def format_declarations_table(rows: list[DeclarationRow], source_count: int) -> str:
    """Return the complete --list output as a string.

    Output format:

        3 struct declarations in 2 source files:

          Shop.Orders.OrderId    src/OrderId.cs:5    generate
          Shop.Point             src/Point.cs:3      skip: no marker

    Column widths are derived from the widest name and location.

    Args:
        rows: Rows in scan order.
        source_count: Number of files scanned.

    Returns:
        Formatted multi-line string including trailing newline.
    """
    lines = [f"{len(rows)} struct declarations in {source_count} source files:", ""]
    name_width = max((len(r.name) for r in rows), default=0)
    location_width = max((len(r.location) for r in rows), default=0)
    for row in rows:
        lines.append(
            f"  {row.name.ljust(name_width)}  "
            f"{row.location.ljust(location_width)}  {row.verdict}"
        )
    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    """Print every struct declaration under config.sources with its verdict.

    Read-only: nothing is written.

    Raises:
        OSError: A source file could not be read.
    """
    sources = discover_sources(config.sources)
    declarations = scan_declarations(sources)
    rows = build_declaration_rows(declarations, config.marker, config.policy)
    print(format_declarations_table(rows, len(sources)), end="")


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class GenerationSummary:
    """Data for the post-generation console report.

    Attributes:
        marker_label: e.g. "Idgen.Identifier (simple match)".
        output_dir: Output directory as a string.
        source_count: Files scanned.
        declaration_count: Struct declarations found.
        candidate_count: Partial struct declarations found.
        qualified_count: Types a unit was generated for.
        skipped: Marked declarations that produced no unit.
        files: Write results in write order.
    """

    marker_label: str
    output_dir: str
    source_count: int
    declaration_count: int
    candidate_count: int
    qualified_count: int
    skipped: tuple[SkippedDeclaration, ...]
    files: tuple[FileWriteResult, ...]


def build_generation_summary(
    write_config: WriteConfig,
    source_count: int,
    declarations: tuple[CandidateDeclaration, ...],
    qualification: QualificationResult,
    write_result: PackageWriteResult,
) -> GenerationSummary:
    return GenerationSummary(
        marker_label=f"{write_config.marker} ({write_config.policy} match)",
        output_dir=str(write_result.output_dir),
        source_count=source_count,
        declaration_count=len(declarations),
        candidate_count=sum(1 for d in declarations if d.is_extensible),
        qualified_count=len(qualification.qualified),
        skipped=qualification.notable_skips,
        files=write_result.files,
    )


def format_skip(skipped: SkippedDeclaration) -> str:
    name = skipped.candidate.namespace_qualified_name or "<unnamed>"
    return f"{name} ({skipped.label}) at {skipped.candidate.location}"


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary as the multi-section console report.

    Skipped rows list only declarations that carry the marker; structs
    without it are counted but not listed. Returns a string with exactly
    one trailing newline.
    """
    lines: list[str] = []
    lines.append("Strongly typed identifiers generated:")
    lines.append("")
    lines.append(f"  Marker:     {summary.marker_label}")
    lines.append(f"  Output:     {summary.output_dir}")
    lines.append(f"  Sources:    {summary.source_count} files")
    lines.append("")
    lines.append("  Declarations:")
    lines.append(f"    {'Structs:':<11}{summary.declaration_count:>6}")
    lines.append(f"    {'Partial:':<11}{summary.candidate_count:>6}")
    lines.append(f"    {'Qualified:':<11}{summary.qualified_count:>6}")
    lines.append(f"    {'Skipped:':<11}{len(summary.skipped):>6}")

    if summary.skipped:
        lines.append("")
        lines.append("  Skipped declarations:")
        for skipped in summary.skipped:
            lines.append(f"    {format_skip(skipped)}")

    lines.append("")
    lines.append("  Files written:")
    name_width = max((len(f.filename) for f in summary.files), default=0)
    for file_result in summary.files:
        lines.append(
            f"    {file_result.filename:<{name_width}} {file_result.line_count:>6,} lines"
        )

    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
    lines.append("")

    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Pipeline ---=== #


def run_generate(config: GenerateConfig) -> PackageWriteResult:
    """Execute scan -> qualify -> emit -> write for a GenerateConfig.

    Returns:
        PackageWriteResult describing every file written.

    Raises:
        OSError: A source file is unreadable or a write fails.
        ValueError: Duplicate unit names reached the writer.
    """
    sources = discover_sources(config.sources)
    print(f"Scanning: {len(sources)} source files")

    declarations = scan_declarations(sources)
    candidate_count = sum(1 for d in declarations if d.is_extensible)
    print(f"  Declarations: {len(declarations)} structs, {candidate_count} partial")

    qualification = qualify_all(declarations, config.marker, config.policy)
    print(f"  Qualified: {len(qualification.qualified)} types")
    for skipped in qualification.notable_skips:
        print(f"  Skipped: {format_skip(skipped)}")

    units = [emit_unit(q) for q in qualification.qualified]
    if config.emit_marker:
        units.append(emit_marker_unit(config.marker))

    write_config = WriteConfig(marker=config.marker, policy=config.policy)
    result = write_units(config.output_dir, write_config, tuple(units))
    print(
        f"  Written: {len(result.files)} files, "
        f"{result.total_lines} lines to {result.output_dir}"
    )

    summary = build_generation_summary(
        write_config, len(sources), declarations, qualification, result
    )
    print_generation_summary(summary)

    return result


# ===--- Main ---=== #


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        if isinstance(config, DiscoveryConfig):
            run_discovery(config)
        else:
            run_generate(config)
    except OSError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except (RuntimeError, ValueError) as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
