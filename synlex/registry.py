"""A registry of lexers, looked up by name, alias, filename, MIME type or content."""

from __future__ import annotations

import fnmatch
import os
from typing import Any, Iterable, Optional

_IGNORED_SUFFIXES = (
    # Editor backups
    "~", ".bak", ".old", ".orig",
    # Debian and derivatives apt/dpkg/ucf backups
    ".dpkg-dist", ".dpkg-old", ".ucf-dist", ".ucf-new", ".ucf-old",
    # Red Hat and derivatives rpm backups
    ".rpmnew", ".rpmorig", ".rpmsave",
    # Build system input/template files
    ".in",
)

_SEPARATORS = "/" + (os.sep if os.sep != "/" else "") + (os.altsep or "")


def _base_name(path: str) -> str:
    """The last element of ``path``, ignoring trailing separators."""
    if not path:
        return "."
    stripped = path.rstrip(_SEPARATORS)
    if not stripped:
        return path[0]
    for sep in _SEPARATORS:
        stripped = stripped.rsplit(sep, 1)[-1]
    return stripped


def _priority(lexer: Any) -> float:
    # An unset priority counts as 1, so explicit low priorities lose.
    return lexer.config.priority or 1.0


def _best(candidates: Iterable[Any]) -> Optional[Any]:
    ordered = sorted(candidates, key=_priority, reverse=True)
    return ordered[0] if ordered else None


def _glob_matches(glob: str, filename: str) -> bool:
    if fnmatch.fnmatchcase(filename, glob):
        return True
    return any(fnmatch.fnmatchcase(filename, glob + suffix) for suffix in _IGNORED_SUFFIXES)


class LexerRegistry:
    """A collection of lexers with several ways of finding one."""

    def __init__(self) -> None:
        self.lexers: list[Any] = []
        self._by_name: dict[str, Any] = {}
        self._by_alias: dict[str, Any] = {}

    def names(self, with_aliases: bool) -> list[str]:
        """Sorted names of all lexers, optionally with their aliases."""
        out: list[str] = []
        for lexer in self.lexers:
            config = lexer.config
            out.append(config.name)
            if with_aliases:
                out.extend(config.aliases)
        return sorted(out)

    def aliases(self, skip_without_aliases: bool) -> list[str]:
        """Sorted aliases of all lexers.

        Lexers without aliases are skipped, or listed by name.
        """
        out: list[str] = []
        for lexer in self.lexers:
            config = lexer.config
            if not config.aliases:
                if skip_without_aliases:
                    continue
                out.append(config.name)
            out.extend(config.aliases)
        return sorted(out)

    def get(self, name: str) -> Optional[Any]:
        """Find a lexer by name, alias, file extension or filename."""
        lowered = name.lower()
        for table, key in (
            (self._by_name, name),
            (self._by_alias, name),
            (self._by_name, lowered),
            (self._by_alias, lowered),
        ):
            lexer = table.get(key)
            if lexer is not None:
                return lexer
        candidates = [
            lexer
            for lexer in (self.match("filename." + name), self.match(name))
            if lexer is not None
        ]
        return _best(candidates)

    def match_mime_type(self, mime_type: str) -> Optional[Any]:
        """Find the highest-priority lexer handling ``mime_type``."""
        return _best(
            lexer
            for lexer in self.lexers
            for candidate in lexer.config.mime_types
            if candidate == mime_type
        )

    def match(self, filename: str) -> Optional[Any]:
        """Find the best lexer for a filename.

        Primary filename patterns are tried before alias patterns.
        """
        filename = _base_name(filename)
        for attribute in ("filenames", "alias_filenames"):
            matched = [
                lexer
                for lexer in self.lexers
                for glob in getattr(lexer.config, attribute)
                if _glob_matches(glob, filename)
            ]
            if matched:
                return _best(matched)
        return None

    def analyse(self, text: str) -> Optional[Any]:
        """Return the lexer whose analyser scores ``text`` highest, if any scores above 0."""
        picked = None
        highest = 0.0
        for lexer in self.lexers:
            analyser = getattr(lexer, "analyse_text", None)
            if analyser is None:
                continue
            weight = analyser(text)
            if weight > highest:
                picked = lexer
                highest = weight
        return picked

    def register(self, lexer: Any) -> Any:
        """Add a lexer, replacing any registered lexer of the same name."""
        lexer.set_registry(self)
        config = lexer.config
        self._by_name[config.name] = lexer
        self._by_name[config.name.lower()] = lexer
        for alias in config.aliases:
            self._by_alias[alias] = lexer
            self._by_alias[alias.lower()] = lexer
        for index, existing in enumerate(self.lexers):
            if existing is not None and existing.config.name == config.name:
                self.lexers[index] = lexer
                break
        else:
            self.lexers.append(lexer)
        return lexer