"""
Recursive-descent parser for the Stepwise workflow language.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from . import ast_nodes
from .errors import ParseError
from .lexer import Lexer, Token

COMPARISON_OPERATORS = {"==", "!=", ">", "<", ">=", "<="}
VERSION_PATTERN = re.compile(r"v[0-9]+(\.[0-9]+)*")

_VALUE_TOKENS = ("STRING", "NUMBER", "BOOLEAN", "IDENT", "REGISTER")
_STATEMENT_STARTS = ("'if'", "'for'", "REGISTER", "IDENT", "'call'")


class Parser:
    def __init__(self, tokens: List[Token]) -> None:
        self.tokens = tokens
        self.position = 0

    @classmethod
    def from_source(cls, source: str, filename: str = "<string>") -> "Parser":
        return cls(Lexer(source, filename=filename).tokenize())

    def parse_workflow(self) -> ast_nodes.WorkflowDecl:
        start = self.consume("KEYWORD", "workflow")
        name = self.consume_identifier("workflow name")
        version = self.parse_version()
        self.consume("LBRACE")
        steps: List[ast_nodes.StepDecl] = []
        while not self.check("RBRACE"):
            if not self.check_value("KEYWORD", "step"):
                expected = ("'step'",) if not steps else ("'step'", "'}'")
                raise self.error("Expected a step declaration", self.peek(), expected)
            steps.append(self.parse_step())
        if not steps:
            raise self.error("A workflow needs at least one step", self.peek(), ("'step'",))
        self.consume("RBRACE")

        author: Optional[str] = None
        if self.check("AUTHOR"):
            author = self.advance().value
        sticky = self.match_value("KEYWORD", "sticky")
        if not self.check("EOF"):
            token = self.peek()
            if token.type == "AUTHOR" and sticky:
                raise self.error("The author tag must come before 'sticky'", token, ("end of input",))
            expected = ["end of input"]
            if not sticky:
                expected.insert(0, "'sticky'")
            if author is None and not sticky:
                expected.insert(0, "'@@' author tag")
            raise self.error("Unexpected input after workflow body", token, tuple(expected))
        return ast_nodes.WorkflowDecl(
            name=name,
            version=version,
            steps=steps,
            author=author,
            sticky=sticky,
            span=self._span(start),
        )

    def parse_version(self) -> str:
        token = self.peek()
        if token.type == "VERSION" or (token.type == "IDENT" and VERSION_PATTERN.fullmatch(token.value or "")):
            self.advance()
            return token.value or ""
        raise self.error("Expected a version such as v1 or v0.1", token, ("version",))

    def parse_step(self) -> ast_nodes.StepDecl:
        start = self.consume("KEYWORD", "step")
        name = self.consume_identifier("step name")
        self.consume("LBRACE")
        statements = self.parse_statement_block(require_one=True)
        return ast_nodes.StepDecl(name=name, statements=statements, span=self._span(start))

    def parse_statement_block(self, require_one: bool = False) -> List[ast_nodes.Statement]:
        """Parse statements up to and including the closing brace."""
        statements: List[ast_nodes.Statement] = []
        while not self.check("RBRACE"):
            if self.check("EOF"):
                raise self.error("Unexpected end of input inside a block", self.peek(), _STATEMENT_STARTS + ("'}'",))
            statements.append(self.parse_statement())
        if require_one and not statements:
            raise self.error("A step needs at least one statement", self.peek(), _STATEMENT_STARTS)
        self.consume("RBRACE")
        return statements

    def parse_statement(self) -> ast_nodes.Statement:
        token = self.peek()
        if token.type == "KEYWORD" and token.value == "if":
            return self.parse_if_statement()
        if token.type == "KEYWORD" and token.value == "for":
            return self.parse_for_statement()
        if token.type == "REGISTER":
            return self.parse_register_assignment()
        if token.type == "IDENT" or (token.type == "KEYWORD" and token.value == "call"):
            call = self.parse_call()
            return ast_nodes.ActionStatement(call=call, span=call.span)
        raise self.error("Expected a statement", token, _STATEMENT_STARTS)

    def parse_if_statement(self) -> ast_nodes.IfStatement:
        start = self.consume("KEYWORD", "if")
        condition = self.parse_expression()
        self.consume("LBRACE")
        body = self.parse_statement_block()
        return ast_nodes.IfStatement(condition=condition, body=body, span=self._span(start))

    def parse_for_statement(self) -> ast_nodes.ForStatement:
        start = self.consume("KEYWORD", "for")
        var_name = self.consume_identifier("loop variable")
        self.consume("KEYWORD", "in")
        iterable = self.parse_iterable()
        self.consume("LBRACE")
        body = self.parse_statement_block()
        return ast_nodes.ForStatement(var_name=var_name, iterable=iterable, body=body, span=self._span(start))

    def parse_iterable(self) -> ast_nodes.SplitExpr | ast_nodes.RangeExpr:
        if self._at_range():
            return self.parse_range()
        token = self.peek()
        if token.type not in ("REGISTER", "IDENT", "STRING"):
            raise self.error("Expected a split or range expression", token, ("REGISTER", "IDENT", "STRING"))
        source = self.parse_operand()
        self.consume("DOT")
        self.consume("IDENT", "split")
        self.consume("LPAREN")
        delimiter = self.consume("STRING")
        self.consume("RPAREN")
        return ast_nodes.SplitExpr(source=source, delimiter=delimiter.value or "", span=self._span(token))

    def parse_register_assignment(self) -> ast_nodes.RegisterAssignStatement:
        target = self.consume("REGISTER")
        self.consume("OP", "=")
        value: ast_nodes.CallExpr | ast_nodes.Operand
        if self.check_value("KEYWORD", "call"):
            value = self.parse_call()
        else:
            value = self.parse_operand()
        return ast_nodes.RegisterAssignStatement(register=target.value or "", value=value, span=self._span(target))

    def parse_call(self) -> ast_nodes.CallExpr:
        start = self.peek()
        external = self.match_value("KEYWORD", "call")
        name = self.consume_identifier("function name" if external else "command name")
        self.consume("LPAREN")
        args: List[ast_nodes.Operand] = []
        if not self.check("RPAREN"):
            args.append(self.parse_operand())
            while self.match("COMMA"):
                args.append(self.parse_operand())
        self.consume("RPAREN", expected=("','", "')'"))
        return ast_nodes.CallExpr(name=name, args=args, external=external, span=self._span(start))

    def parse_expression(self) -> ast_nodes.Expr:
        if self._at_range():
            return self.parse_range()
        left = self.parse_operand()
        token = self.peek()
        if token.type == "OP" and token.value in COMPARISON_OPERATORS:
            self.advance()
            right = self.parse_operand()
            return ast_nodes.ComparisonExpr(left=left, op=token.value, right=right, span=left.span)
        return left

    def parse_range(self) -> ast_nodes.RangeExpr:
        start_tok = self.advance()
        self.consume("DOTDOT")
        end_tok = self.peek()
        if end_tok.type not in ("IDENT", "NUMBER"):
            raise self.error("Expected the end of the range", end_tok, ("IDENT",))
        self.advance()
        return ast_nodes.RangeExpr(
            start=ast_nodes.Identifier(name=start_tok.value or "", span=self._span(start_tok)),
            end=ast_nodes.Identifier(name=end_tok.value or "", span=self._span(end_tok)),
            span=self._span(start_tok),
        )

    def parse_operand(self) -> ast_nodes.Operand:
        token = self.peek()
        span = self._span(token)
        if token.type == "STRING":
            self.advance()
            return ast_nodes.Literal(kind="string", value=token.value or "", span=span)
        if token.type == "NUMBER":
            try:
                number = int(token.value or "0")
            except ValueError:
                # Past the interpreter's integer string conversion limit.
                raise self.error("Integer literal is too long", token, ("NUMBER",)) from None
            self.advance()
            return ast_nodes.Literal(kind="number", value=number, span=span)
        if token.type == "KEYWORD" and token.value in ("true", "false"):
            self.advance()
            return ast_nodes.Literal(kind="boolean", value=token.value == "true", span=span)
        if token.type == "IDENT":
            self.advance()
            return ast_nodes.Identifier(name=token.value or "", span=span)
        if token.type == "REGISTER":
            self.advance()
            return ast_nodes.RegisterRef(name=token.value or "", span=span)
        raise self.error("Expected a value", token, _VALUE_TOKENS)

    def _at_range(self) -> bool:
        return self.peek().type in ("IDENT", "NUMBER") and self.peek_offset(1).type == "DOTDOT"

    def consume_identifier(self, what: str) -> str:
        token = self.peek()
        if token.type != "IDENT":
            raise self.error(f"Expected {what}", token, ("IDENT",))
        self.advance()
        return token.value or ""

    def consume(self, token_type: str, value: str | None = None, expected: Iterable[str] | None = None) -> Token:
        token = self.peek()
        label = f"'{value}'" if value is not None else _describe(token_type)
        if token.type != token_type or (value is not None and token.value != value):
            raise self.error(f"Expected {label}", token, tuple(expected) if expected else (label,))
        self.advance()
        return token

    def match(self, token_type: str) -> bool:
        if self.check(token_type):
            self.advance()
            return True
        return False

    def match_value(self, token_type: str, value: str) -> bool:
        if self.check_value(token_type, value):
            self.advance()
            return True
        return False

    def check(self, token_type: str) -> bool:
        return self.peek().type == token_type

    def check_value(self, token_type: str, value: str) -> bool:
        token = self.peek()
        return token.type == token_type and token.value == value

    def peek(self) -> Token:
        return self.tokens[self.position]

    def peek_offset(self, offset: int) -> Token:
        idx = min(self.position + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def advance(self) -> Token:
        token = self.tokens[self.position]
        self.position = min(self.position + 1, len(self.tokens) - 1)
        return token

    def error(self, message: str, token: Token, expected: Iterable[str] = ()) -> ParseError:
        value = token.value or ""
        if len(value) > 40:
            value = value[:37] + "..."
        found = "end of input" if token.type == "EOF" else repr(value)
        return ParseError(
            f"{message}, found {found}",
            token.line,
            token.column,
            position=token.position,
            expected=tuple(expected),
        )

    def _span(self, token: Token) -> ast_nodes.Span:
        return ast_nodes.Span(line=token.line, column=token.column)


_TOKEN_DESCRIPTIONS = {
    "LBRACE": "'{'",
    "RBRACE": "'}'",
    "LPAREN": "'('",
    "RPAREN": "')'",
    "COMMA": "','",
    "DOT": "'.'",
    "DOTDOT": "'..'",
}


def _describe(token_type: str) -> str:
    return _TOKEN_DESCRIPTIONS.get(token_type, token_type)


def parse_source(source: str, filename: str = "<string>") -> ast_nodes.WorkflowDecl:
    """Parse helper for tests and tooling; returns the parse tree."""
    return Parser.from_source(source, filename=filename).parse_workflow()
