"""Tree-Sitter Parsing Layer."""

from __future__ import annotations

from abc import ABC, abstractmethod

from . import constants


class ParserFactory(ABC):
    """Abstract factory for obtaining a Go parser."""

    @abstractmethod
    def get_parser(self): ...


class TreeSitterParserFactory(ParserFactory):
    """Concrete factory that delegates to tree-sitter-language-pack."""

    def get_parser(self):
        import tree_sitter_language_pack as tslp

        return tslp.get_parser(constants.GO_LANGUAGE)


class Parser:
    """Thin wrapper around a parser factory."""

    def __init__(self, parser_factory: ParserFactory | None = None):
        self._factory = parser_factory or TreeSitterParserFactory()

    def parse(self, source: str):
        parser = self._factory.get_parser()
        return parser.parse(source.encode("utf-8"))
