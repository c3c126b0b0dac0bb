"""Lexer and parser — from a command line to pipelines.

The grammar is small::

    line       := pipeline (control pipeline)* control?
    control    := ';' | '&' | '&&' | '||'
    pipeline   := ['<' word] segment ('|' segment)* [('>' | '>>') word]
    segment    := word (word | string)*

Words end at whitespace or an operator character; quoted pieces join the
word they touch.  A backslash escapes the next character, inside and
outside quotes.  Quoted text is taken literally (no expansion happens
here: variables and aliases are expanded on the raw text before lexing).

The parser returns ``SequenceEntry`` records: each pipeline paired with
the control operator that *follows* it, which is what the executor
needs to decide whether the next pipeline runs and whether this one
goes to the background.
"""

from dataclasses import dataclass, field
from enum import StrEnum

from sandsh.errors import ParseError


class TokenType(StrEnum):
    """Lexical categories."""

    WORD = "word"
    STRING_DQ = "string_dq"
    STRING_SQ = "string_sq"
    GT = ">"
    GTGT = ">>"
    LT = "<"
    PIPE = "|"
    SEMICOLON = ";"
    BACKGROUND = "&"
    AND = "&&"
    OR = "||"
    EOF = "eof"


_ARG_TYPES = frozenset({TokenType.WORD, TokenType.STRING_DQ, TokenType.STRING_SQ})
_CONTROL_TYPES = frozenset(
    {TokenType.SEMICOLON, TokenType.BACKGROUND, TokenType.AND, TokenType.OR}
)
_SEGMENT_END = frozenset(
    {TokenType.EOF, TokenType.PIPE, TokenType.GT, TokenType.GTGT, TokenType.LT} | _CONTROL_TYPES
)
_SPECIAL_CHARS = frozenset("<>|&;")


@dataclass(frozen=True)
class Token:
    """One lexical token and the span of raw text it came from."""

    type: TokenType
    value: str
    position: int
    end: int = -1


class RedirectMode(StrEnum):
    """``>`` replaces, ``>>`` appends."""

    OVERWRITE = "overwrite"
    APPEND = "append"


@dataclass(frozen=True)
class Redirection:
    """Where a pipeline's final output goes instead of the terminal."""

    mode: RedirectMode
    target: str


@dataclass(frozen=True)
class Segment:
    """One command invocation inside a pipeline."""

    command: str
    args: tuple[str, ...] = ()

    def __str__(self) -> str:
        """Render back to (unquoted) command text."""
        return " ".join((self.command, *self.args))


@dataclass
class Pipeline:
    """Segments joined by ``|`` plus optional redirections.

    ``is_background`` and ``job_id`` are filled in by the executor when
    the pipeline is followed by ``&``.
    """

    segments: list[Segment] = field(default_factory=list)
    redirection: Redirection | None = None
    input_file: str | None = None
    is_background: bool = False
    job_id: int | None = None

    def __str__(self) -> str:
        """Render back to command text (for job listings)."""
        text = " | ".join(str(s) for s in self.segments)
        if self.input_file is not None:
            text = f"< {self.input_file} {text}"
        if self.redirection is not None:
            op = ">>" if self.redirection.mode is RedirectMode.APPEND else ">"
            text = f"{text} {op} {self.redirection.target}"
        return text


@dataclass(frozen=True)
class SequenceEntry:
    """A pipeline and the control operator after it (None at the end)."""

    pipeline: Pipeline
    operator: str | None = None


class Lexer:
    """Split a command line into tokens."""

    def __init__(self, text: str) -> None:
        """Prepare to tokenize *text*."""
        self._text = text
        self._pos = 0

    def tokenize(self) -> list[Token]:
        """Return every token, ending with an EOF token.

        Raises:
            ParseError: On an unterminated quoted string.

        """
        tokens: list[Token] = []
        text = self._text
        while self._pos < len(text):
            char = text[self._pos]
            if char.isspace():
                self._pos += 1
            elif char in "<>|&;":
                tokens.append(self._operator())
            else:
                tokens.append(self._word())
        tokens.append(Token(TokenType.EOF, "", self._pos, self._pos))
        return tokens

    def _operator(self) -> Token:
        start = self._pos
        pair = self._text[start : start + 2]
        doubles = {">>": TokenType.GTGT, "&&": TokenType.AND, "||": TokenType.OR}
        if pair in doubles:
            self._pos += 2
            return Token(doubles[pair], pair, start, self._pos)
        char = self._text[start]
        self._pos += 1
        return Token(TokenType(char), char, start, self._pos)

    def _word(self) -> Token:
        """Read one word; quoted pieces join it (``NAME="a b"`` is one token).

        A word that used quotes anywhere is typed by its first quote, so
        glob expansion can tell it apart from a bare word.
        """
        start = self._pos
        chars: list[str] = []
        kind = TokenType.WORD
        text = self._text
        while self._pos < len(text):
            char = text[self._pos]
            if char == "\\":
                self._pos += 1
                chars.append(text[self._pos] if self._pos < len(text) else "\\")
                self._pos += 1
                continue
            if char in "\"'":
                if kind is TokenType.WORD:
                    kind = TokenType.STRING_DQ if char == '"' else TokenType.STRING_SQ
                chars.append(self._quoted(char))
                continue
            if char.isspace() or char in _SPECIAL_CHARS:
                break
            chars.append(char)
            self._pos += 1
        return Token(kind, "".join(chars), start, self._pos)

    def _quoted(self, quote: str) -> str:
        start = self._pos
        self._pos += 1
        chars: list[str] = []
        text = self._text
        while self._pos < len(text):
            char = text[self._pos]
            if char == "\\":
                self._pos += 1
                chars.append(text[self._pos] if self._pos < len(text) else "\\")
                self._pos += 1
            elif char == quote:
                self._pos += 1
                return "".join(chars)
            else:
                chars.append(char)
                self._pos += 1
        msg = f"unclosed string literal starting at position {start}, expected closing {quote}"
        raise ParseError(msg)


class Parser:
    """Build ``SequenceEntry`` records from a token list."""

    def __init__(self, tokens: list[Token]) -> None:
        """Prepare to parse *tokens* (must end with EOF)."""
        self._tokens = tokens
        self._pos = 0

    @property
    def _current(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._current
        if self._pos < len(self._tokens) - 1:
            self._pos += 1
        return token

    def _expect_filename(self, operator: str) -> str:
        if self._current.type not in _ARG_TYPES:
            msg = f"expected filename after '{operator}'"
            raise ParseError(msg)
        return self._advance().value

    def _segment(self) -> Segment | None:
        if self._current.type in _SEGMENT_END:
            return None
        command = self._advance().value
        args: list[str] = []
        while self._current.type not in _SEGMENT_END:
            args.append(self._advance().value)
        return Segment(command=command, args=tuple(args))

    def _pipeline(self) -> Pipeline | None:
        pipeline = Pipeline()
        if self._current.type is TokenType.LT:
            self._advance()
            pipeline.input_file = self._expect_filename("<")

        segment = self._segment()
        if segment is not None:
            pipeline.segments.append(segment)
        while self._current.type is TokenType.PIPE:
            self._advance()
            segment = self._segment()
            if segment is None:
                msg = "expected command after '|'"
                raise ParseError(msg)
            pipeline.segments.append(segment)

        if self._current.type is TokenType.LT and pipeline.input_file is None:
            self._advance()
            pipeline.input_file = self._expect_filename("<")

        if self._current.type in (TokenType.GT, TokenType.GTGT):
            op = self._advance()
            mode = RedirectMode.APPEND if op.type is TokenType.GTGT else RedirectMode.OVERWRITE
            pipeline.redirection = Redirection(mode=mode, target=self._expect_filename(op.value))

        if pipeline.segments or pipeline.redirection or pipeline.input_file:
            return pipeline
        return None

    def parse(self) -> list[SequenceEntry]:
        """Parse the whole token list.

        Raises:
            ParseError: On any syntax error.

        """
        entries: list[SequenceEntry] = []
        while self._current.type is not TokenType.EOF:
            pipeline = self._pipeline()
            if pipeline is None:
                token = self._current
                msg = f"unexpected token '{token.value}' at position {token.position}"
                raise ParseError(msg)

            operator: str | None = None
            if self._current.type in _CONTROL_TYPES:
                operator = self._advance().value
            elif self._current.type is not TokenType.EOF:
                token = self._current
                msg = f"unexpected token '{token.value}' at position {token.position}"
                raise ParseError(msg)

            entries.append(SequenceEntry(pipeline=pipeline, operator=operator))
            if self._current.type is TokenType.EOF and operator in ("&&", "||"):
                msg = f"command expected after '{operator}'"
                raise ParseError(msg)
        return entries


def parse(line: str) -> list[SequenceEntry]:
    """Tokenize and parse *line* in one step."""
    return Parser(Lexer(line).tokenize()).parse()
