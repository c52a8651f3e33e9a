"""The regular-expression lexer: configuration, rule sets and the tokenising state machine."""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Union

import regex

from .mutators import Mutator, Rule
from .tokens import EOF, Token, TokenType

_MATCH_TIMEOUT = 0.25
_QUOTE_META = set("\\.+*?()|[]{}^$")

Analyser = Callable[[str], float]


@dataclass
class Config:
    """Static configuration of a lexer."""

    name: str = ""
    aliases: list[str] = field(default_factory=list)
    filenames: list[str] = field(default_factory=list)
    alias_filenames: list[str] = field(default_factory=list)
    mime_types: list[str] = field(default_factory=list)
    case_insensitive: bool = False
    dot_all: bool = False
    not_multiline: bool = False
    ensure_nl: bool = False
    priority: float = 0.0


@dataclass(frozen=True)
class TokeniseOptions:
    """Options for a single tokenising run."""

    state: str = "root"
    nested: bool = False
    ensure_lf: bool = True


_DEFAULT_OPTIONS = TokeniseOptions()


class Rules(dict):
    """A mapping of state name to the list of rules in that state."""

    def clone(self) -> Rules:
        """A copy whose rule lists can be changed independently."""
        return Rules({state: list(rules) for state, rules in self.items()})

    def rename(self, old_rule: str, new_rule: str) -> Rules:
        """A copy with the state ``old_rule`` renamed to ``new_rule``."""
        out = self.clone()
        out[new_rule] = out.get(old_rule, [])
        out.pop(old_rule, None)
        return out

    def merge(self, rules: Mapping[str, list]) -> Rules:
        """A copy with the states of ``rules`` added or replacing existing ones."""
        out = self.clone()
        out.update(Rules(rules).clone())
        return out


@dataclass
class CompiledRule:
    """A rule together with its compiled regular expression."""

    pattern: str = ""
    type: Any = None
    mutator: Optional[Mutator] = None
    flags: str = ""
    regexp: Any = field(default=None, compare=False, repr=False)
    group_names: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_rule(cls, rule: Rule, flags: str = "") -> CompiledRule:
        return cls(pattern=rule.pattern, type=rule.type, mutator=rule.mutator, flags=flags)


def words(prefix: str, suffix: str, *args: str) -> str:
    """A pattern matching any of the literal words, longest first."""
    ordered = sorted(args, key=len, reverse=True)
    escaped = ("".join("\\" + ch if ch in _QUOTE_META else ch for ch in word) for word in ordered)
    return prefix + "(" + "|".join(escaped) + ")" + suffix


def ensure_lf(text: str) -> str:
    """Replace ``\\r\\n`` and lone ``\\r`` with ``\\n``."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def tokenise(lexer: Any, options: Optional[TokeniseOptions], text: str) -> list[Token]:
    """Tokenise ``text`` with ``lexer`` and return all tokens as a list."""
    out = []
    for token in lexer.tokenise(options, text):
        if token == EOF:
            break
        out.append(token)
    return out


def _bad_glob(name: str, glob: str) -> ValueError:
    return ValueError(f"{name}: {glob!r} is not a valid glob: syntax error in pattern")


def _check_glob(name: str, glob: str) -> None:
    """Reject malformed character classes and dangling escapes."""
    length = len(glob)

    def class_char(pos: int) -> int:
        if pos >= length or glob[pos] in "-]":
            raise _bad_glob(name, glob)
        if glob[pos] == "\\":
            pos += 1
            if pos >= length:
                raise _bad_glob(name, glob)
        return pos + 1

    pos = 0
    while pos < length:
        char = glob[pos]
        if char == "\\":
            if pos + 1 >= length:
                raise _bad_glob(name, glob)
            pos += 2
        elif char == "[":
            pos += 1
            if pos < length and glob[pos] == "^":
                pos += 1
            first = True
            while True:
                if pos >= length:
                    raise _bad_glob(name, glob)
                if glob[pos] == "]" and not first:
                    pos += 1
                    break
                pos = class_char(pos)
                if pos < length and glob[pos] == "-":
                    pos = class_char(pos + 1)
                first = False
        else:
            pos += 1


def _match_rules(text: str, pos: int, rules: list[CompiledRule]):
    for index, rule in enumerate(rules):
        try:
            match = rule.regexp.match(text, pos, timeout=_MATCH_TIMEOUT)
        except TimeoutError:
            continue
        if match is None or match.start() != pos:
            continue
        groups = [match.group(0), *match.groups("")]
        named = {rule.group_names.get(i, str(i)): value for i, value in enumerate(groups)}
        return index, rule, groups, named
    return 0, None, None, None


class LexerState:
    """The state of one tokenising run; iterating it yields tokens."""

    def __init__(
        self,
        lexer: RegexLexer,
        text: str,
        rules: dict[str, list[CompiledRule]],
        options: TokeniseOptions,
        newline_added: bool,
    ) -> None:
        self.lexer = lexer
        self.registry = lexer.registry
        self.text = text
        self.pos = 0
        self.rules = rules
        self.stack: list[str] = [options.state]
        self.state = ""
        self.rule = 0
        self.groups: list[str] = []
        self.named_groups: dict[str, str] = {}
        self.mutator_context: dict[Any, Any] = {}
        self.options = options
        self._newline_added = newline_added
        self._tokens = self._generate()

    def set(self, key: Any, value: Any) -> None:
        """Store a value in the mutator context."""
        self.mutator_context[key] = value

    def get(self, key: Any) -> Any:
        """Fetch a value from the mutator context, or None."""
        return self.mutator_context.get(key)

    def tokens(self) -> list[Token]:
        """All remaining tokens as a list."""
        return list(self)

    def __iter__(self) -> LexerState:
        return self

    def __next__(self) -> Token:
        return next(self._tokens)

    @staticmethod
    def _drain(emitted: Iterable[Token]) -> Iterator[Token]:
        for token in emitted:
            if token.type is TokenType.Ignore:
                continue
            if token == EOF:
                return
            yield token

    def _generate(self) -> Iterator[Token]:
        end = len(self.text) - (1 if self._newline_added else 0)
        while self.pos < end and self.stack:
            self.state = self.stack[-1]
            if self.lexer.tracing:
                print(f"{self.state}: pos={self.pos}, text={self.text[self.pos:]!r}", file=sys.stderr)
            selected = self.rules.get(self.state)
            if selected is None:
                raise ValueError(f"unknown state {self.state!r}")
            index, rule, groups, named = _match_rules(self.text, self.pos, selected)
            if groups is None:
                # A newline that nothing matches resets the stack, so an
                # unterminated construct does not spoil the rest of the input.
                if self.text[self.pos] == "\n" and self.state != self.options.state:
                    self.stack = [self.options.state]
                    continue
                self.pos += 1
                yield Token(TokenType.Error, self.text[self.pos - 1])
                continue
            self.rule = index
            self.groups = groups
            self.named_groups = named
            self.pos += len(groups[0])
            if rule.mutator is not None:
                rule.mutator.mutate(self)
            if rule.type is not None:
                yield from self._drain(rule.type.emit(self.groups, self))
        if self.pos != len(self.text) and not self.stack:
            value = self.text[self.pos:]
            self.pos = len(self.text)
            yield Token(TokenType.Error, value)


RulesSource = Union[Callable[[], Mapping[str, list]], Mapping[str, list], None]


class RegexLexer:
    """A lexer driven by a state machine of regular-expression rules.

    Rules are fetched and compiled lazily, on first use.
    """

    def __init__(self, config: Optional[Config] = None, rules: RulesSource = None) -> None:
        config = config if config is not None else Config()
        for glob in [*config.filenames, *config.alias_filenames]:
            _check_glob(config.name, glob)
        self._config = config
        self._fetch: Callable[[], Any] = rules if callable(rules) else (lambda: rules)
        self.registry: Any = None
        self.tracing = False
        self._analyser: Optional[Analyser] = None
        self._lock = threading.Lock()
        self._fetched = False
        self._fetch_error: Optional[Exception] = None
        self._compiled = False
        self._raw_rules: Optional[Rules] = None
        self._rules: dict[str, list[CompiledRule]] = {}

    def __str__(self) -> str:
        return self._config.name

    @property
    def config(self) -> Config:
        return self._config

    def trace(self, enabled: bool) -> RegexLexer:
        """Turn tracing of each matching step to stderr on or off."""
        self.tracing = enabled
        return self

    def rules(self) -> Rules:
        """The rules of this lexer, as given."""
        self._need_rules()
        return self._raw_rules

    def set_registry(self, registry: Any) -> RegexLexer:
        """Set the registry used to look up other lexers."""
        self.registry = registry
        return self

    def set_analyser(self, analyser: Optional[Analyser]) -> RegexLexer:
        """Set the function that scores text for this lexer."""
        self._analyser = analyser
        return self

    def analyse_text(self, text: str) -> float:
        """How likely ``text`` is to be for this lexer, between 0 and 1."""
        if self._analyser is not None:
            return self._analyser(text)
        return 0.0

    def set_config(self, config: Config) -> RegexLexer:
        """Replace the configuration."""
        self._config = config
        return self

    def _flags(self) -> str:
        flags = ""
        if not self._config.not_multiline:
            flags += "m"
        if self._config.case_insensitive:
            flags += "i"
        if self._config.dot_all:
            flags += "s"
        return flags

    def _fetch_rules(self) -> None:
        fetched = self._fetch()
        if fetched is None or "root" not in fetched:
            raise ValueError('no "root" state')
        flags = self._flags()
        self._raw_rules = fetched if isinstance(fetched, Rules) else Rules(fetched)
        self._rules = {
            state: [CompiledRule.from_rule(rule, flags) for rule in rules]
            for state, rules in fetched.items()
        }

    def _compile_patterns(self) -> None:
        for state, rules in self._rules.items():
            for index, rule in enumerate(rules):
                if rule.regexp is not None:
                    continue
                prefix = f"(?{rule.flags})" if rule.flags else ""
                source = prefix + r"\G(?:" + rule.pattern + ")"
                try:
                    rule.regexp = regex.compile(source)
                except regex.error as exc:
                    raise ValueError(f"failed to compile rule {state}.{index}: {exc}") from exc
                rule.group_names = {i: name for name, i in rule.regexp.groupindex.items()}

    def _apply_lexer_mutators(self) -> None:
        # Each mutator may add or remove rules, so rescan after every one.
        while True:
            for state, rules in list(self._rules.items()):
                found = next(
                    (
                        (index, rule.mutator)
                        for index, rule in enumerate(rules)
                        if callable(getattr(rule.mutator, "mutate_lexer", None))
                    ),
                    None,
                )
                if found is not None:
                    index, mutator = found
                    mutator.mutate_lexer(self._rules, state, index)
                    break
            else:
                return

    def _validate_emitters(self) -> None:
        for state, rules in self._rules.items():
            for rule in rules:
                validate = getattr(rule.type, "validate_emitter", None)
                if not callable(validate):
                    continue
                try:
                    validate(rule)
                except Exception as exc:
                    raise ValueError(f"{self._config.name}: {state}: {rule.pattern}: {exc}") from exc

    def _need_rules(self) -> None:
        with self._lock:
            if not self._fetched:
                self._fetched = True
                try:
                    self._fetch_rules()
                except Exception as exc:
                    self._fetch_error = exc
            if self._fetch_error is not None:
                raise self._fetch_error
            if self._compiled:
                return
            self._compile_patterns()
            self._apply_lexer_mutators()
            self._validate_emitters()
            self._compiled = True

    def tokenise(self, options: Optional[TokeniseOptions], text: str) -> LexerState:
        """Start tokenising ``text``; the returned state iterates over tokens."""
        self._need_rules()
        if options is None:
            options = _DEFAULT_OPTIONS
        if options.ensure_lf:
            text = ensure_lf(text)
        newline_added = False
        if not options.nested and self._config.ensure_nl and not text.endswith("\n"):
            text += "\n"
            newline_added = True
        return LexerState(self, text, self._rules, options, newline_added)