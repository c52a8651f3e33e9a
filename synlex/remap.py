"""Lexers that rewrite the tokens produced by another lexer."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional

from .tokens import EOF, Token, TokenType

Mapper = Callable[[Token], Iterable[Token]]


class RemappingLexer:
    """Wraps a lexer, replacing each token with the tokens ``mapper`` returns."""

    def __init__(self, lexer: Any, mapper: Mapper) -> None:
        self._lexer = lexer
        self._mapper = mapper

    @property
    def config(self) -> Any:
        return self._lexer.config

    def analyse_text(self, text: str) -> float:
        return self._lexer.analyse_text(text)

    def set_analyser(self, analyser: Optional[Callable[[str], float]]) -> RemappingLexer:
        self._lexer.set_analyser(analyser)
        return self

    def set_registry(self, registry: Any) -> RemappingLexer:
        self._lexer.set_registry(registry)
        return self

    def tokenise(self, options: Any, text: str) -> Iterator[Token]:
        """Tokenise with the wrapped lexer and remap each token."""
        return self._remap(self._lexer.tokenise(options, text))

    def _remap(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token == EOF:
                return
            yield from self._mapper(token)


@dataclass(frozen=True)
class TypeMapping:
    """Maps tokens of ``from_type`` to ``to_type``.

    With no words every such token is remapped; otherwise only those whose
    text is one of ``words``.
    """

    from_type: TokenType
    to_type: TokenType
    words: tuple[str, ...] = ()


def type_remapping_lexer(lexer: Any, mapping: Iterable[TypeMapping]) -> RemappingLexer:
    """Wrap ``lexer`` so that token types are changed according to ``mapping``."""
    lookup: dict[TokenType, dict[str, TokenType]] = {}
    for entry in mapping:
        by_word = lookup.setdefault(entry.from_type, {})
        if entry.words:
            for word in entry.words:
                by_word[word] = entry.to_type
        else:
            by_word[""] = entry.to_type

    def remap(token: Token) -> list[Token]:
        by_word = lookup.get(token.type)
        if by_word is not None:
            new_type = by_word.get(token.value, by_word.get(""))
            if new_type is not None:
                token = dataclasses.replace(token, type=new_type)
        return [token]

    return RemappingLexer(lexer, remap)