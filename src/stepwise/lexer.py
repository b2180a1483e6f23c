"""
Free-form lexer for the Stepwise workflow language.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from .errors import LexError

KEYWORDS = {
    "workflow",
    "step",
    "if",
    "for",
    "in",
    "call",
    "sticky",
    "true",
    "false",
}

WHITESPACE = {" ", "\t", "\n", "\r"}
IDENTITY_CHARS = re.compile(r"[A-Za-z0-9_.\-]")
VERSION_WORD = re.compile(r"v[0-9]+")

_TWO_CHAR_OPS = {"==", "!=", ">=", "<="}
_ONE_CHAR_OPS = {">", "<", "="}
_PUNCTUATION = {
    "{": "LBRACE",
    "}": "RBRACE",
    "(": "LPAREN",
    ")": "RPAREN",
    ",": "COMMA",
}


@dataclass
class Token:
    type: str
    value: Optional[str]
    line: int
    column: int
    position: int = 0

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"Token({self.type}, {self.value}, {self.line}:{self.column})"


def _is_word_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char == "_")


class Lexer:
    """
    Tokenizer where whitespace (including newlines) only separates tokens.

    Token types: KEYWORD, IDENT, NUMBER, STRING, REGISTER, VERSION, AUTHOR,
    OP, DOT, DOTDOT and the bracket/comma punctuation, ending with EOF.
    """

    def __init__(self, source: str, filename: str = "<string>") -> None:
        self.source = source
        self.filename = filename
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        src = self.source
        while self.index < len(src):
            char = src[self.index]
            if char in WHITESPACE:
                self._advance()
                continue
            if char == '"':
                tokens.append(self._read_string())
                continue
            if char == "$":
                tokens.append(self._read_register())
                continue
            if char == "@" and src.startswith("@@", self.index):
                tokens.append(self._read_author())
                continue
            if _is_word_char(char):
                tokens.append(self._read_word())
                continue
            if char == ".":
                if src.startswith("..", self.index):
                    tokens.append(self._emit("DOTDOT", "..", 2))
                else:
                    tokens.append(self._emit("DOT", ".", 1))
                continue
            pair = src[self.index : self.index + 2]
            if pair in _TWO_CHAR_OPS:
                tokens.append(self._emit("OP", pair, 2))
                continue
            if char in _ONE_CHAR_OPS:
                tokens.append(self._emit("OP", char, 1))
                continue
            if char in _PUNCTUATION:
                tokens.append(self._emit(_PUNCTUATION[char], char, 1))
                continue
            raise LexError(
                f"Unexpected character '{char}'",
                self.line,
                self.column,
                position=self.index,
            )
        tokens.append(Token("EOF", None, self.line, self.column, self.index))
        return tokens

    def _advance(self, count: int = 1) -> None:
        for _ in range(count):
            if self.source[self.index] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.index += 1

    def _emit(self, token_type: str, value: str, width: int) -> Token:
        token = Token(token_type, value, self.line, self.column, self.index)
        self._advance(width)
        return token

    def _scan_word(self) -> str:
        end = self.index
        while end < len(self.source) and _is_word_char(self.source[end]):
            end += 1
        return self.source[self.index : end]

    def _read_word(self) -> Token:
        line, column, start = self.line, self.column, self.index
        word = self._scan_word()
        self._advance(len(word))
        if VERSION_WORD.fullmatch(word):
            # Versions are atomic: v1.2.3 carries its dots with it.
            suffix = self._scan_version_suffix()
            if suffix:
                self._advance(len(suffix))
                return Token("VERSION", word + suffix, line, column, start)
        if word.isdigit():
            return Token("NUMBER", word, line, column, start)
        token_type = "KEYWORD" if word in KEYWORDS else "IDENT"
        return Token(token_type, word, line, column, start)

    def _scan_version_suffix(self) -> str:
        match = re.match(r"(?:\.[0-9]+)+(?![A-Za-z0-9_])", self.source[self.index :])
        return match.group(0) if match else ""

    def _read_register(self) -> Token:
        line, column, start = self.line, self.column, self.index
        self._advance()
        name = self._scan_word() if self.index < len(self.source) else ""
        if not name:
            raise LexError("Expected a register name after '$'", line, column, position=start)
        self._advance(len(name))
        return Token("REGISTER", name, line, column, start)

    def _read_author(self) -> Token:
        line, column, start = self.line, self.column, self.index
        self._advance(2)
        end = self.index
        while end < len(self.source) and IDENTITY_CHARS.match(self.source[end]):
            end += 1
        identity = self.source[self.index : end]
        if not identity:
            raise LexError("Expected an identity after '@@'", line, column, position=start)
        self._advance(len(identity))
        return Token("AUTHOR", identity, line, column, start)

    def _read_string(self) -> Token:
        line, column, start = self.line, self.column, self.index
        self._advance()
        value_chars: List[str] = []
        src = self.source
        while self.index < len(src):
            char = src[self.index]
            if char == "\\" and src.startswith('\\"', self.index):
                value_chars.append('"')
                self._advance(2)
                continue
            if char == '"':
                self._advance()
                return Token("STRING", "".join(value_chars), line, column, start)
            value_chars.append(char)
            self._advance()
        raise LexError("Unterminated string literal", line, column, position=start)


def tokenize(source: str, filename: str = "<string>") -> List[Token]:
    return Lexer(source, filename=filename).tokenize()
