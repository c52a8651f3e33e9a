# synlex

`synlex` is a lexer toolkit for syntax highlighting. A lexer is a state
machine: each state holds an ordered list of rules, and each rule pairs a
regular expression with the token type to emit and, optionally, a mutator
that changes the state stack (push, pop, include another state, combine
states).

## Installation

```
pip install synlex
```

## Defining a lexer

```python
from synlex.lexer import Config, RegexLexer, Rules, tokenise
from synlex.mutators import Rule, push, pop
from synlex.tokens import TokenType

def rules():
    return Rules({
        "root": [
            Rule(r"\s+", TokenType.TextWhitespace),
            Rule(r'"', TokenType.LiteralString, push("string")),
            Rule(r"\w+", TokenType.Name),
        ],
        "string": [
            Rule(r'[^"]+', TokenType.LiteralString),
            Rule(r'"', TokenType.LiteralString, pop(1)),
        ],
    })

lexer = RegexLexer(Config(name="Example", aliases=["example"], filenames=["*.ex"]), rules)

for token in tokenise(lexer, None, 'say "hello"'):
    print(token.type.name, repr(token.value))
```

`RegexLexer` takes a `Config` and either a mapping of rules or a function
returning one. Rules are fetched and compiled on first use; a rule set
without a `"root"` state, or a pattern that does not compile, raises
`ValueError` at that point.

`RegexLexer.tokenise(options, text)` returns a `LexerState`, which is an
iterator of `Token` objects (each with `type` and `value`);
`LexerState.tokens()` collects the rest of them into a list. The helper
`synlex.lexer.tokenise(lexer, options, text)` does the same for any lexer.

Lexing behaviour:

- A character that no rule matches becomes a `TokenType.Error` token. An
  unmatched newline in a state other than the starting one resets the stack
  to the starting state instead.
- If the stack is emptied by a pop, the rest of the input is returned as a
  single `TokenType.Error` token.
- Tokens of type `TokenType.Ignore` are dropped.
- `Config.ensure_nl` adds a trailing newline before lexing, so that
  line-oriented rules match the last line; the added newline is not lexed on
  its own.
- `TokeniseOptions(state="root", nested=False, ensure_lf=True)` chooses the
  starting state and whether `\r\n` and lone `\r` are turned into `\n`
  (see `synlex.lexer.ensure_lf`).
- `Config.case_insensitive`, `Config.dot_all` and `Config.not_multiline`
  set the regular-expression flags for every rule (multi-line is on by
  default).
- `RegexLexer.trace(True)` prints each matching step to stderr.

`synlex.lexer.words(prefix, suffix, *words)` builds a pattern that matches
any of the given literal words, longest first.

`Rules` is a `dict` with `clone()`, `rename(old, new)` and `merge(other)`,
each returning a new `Rules`.

## Mutators

`synlex.mutators` provides:

- `push(*states)` – push states; `"#pop"` pops one instead; with no states
  the current state is pushed again.
- `pop(n)` – pop `n` states.
- `include(state)` – a `Rule` replaced, at compile time, by the rules of
  `state`.
- `combined(*states)` – at compile time, builds an anonymous state from the
  given states and makes the rule push it.
- `mutators(*ms)` – apply several mutators in order.
- `default(*ms)` – a `Rule` that only applies mutators.

## Token types

`synlex.tokens.TokenType` is an `IntEnum`. Values are grouped in categories
of 1000 and sub-categories of 100, so `category()`, `sub_category()`,
`parent()`, `in_category()` and `in_sub_category()` walk the hierarchy.
Short aliases such as `TokenType.String` and `TokenType.Whitespace` are
provided. `synlex.tokens.stringify(*tokens)` joins token values back into
text.

`synlex.standard.standard_class(token_type)` gives the short CSS class for a
token type (for example `"k"` for `Keyword`), or `None`; the full table is
`synlex.standard.STANDARD_TYPES`.

## Registries

```python
from synlex.registry import LexerRegistry

registry = LexerRegistry()
registry.register(lexer)
registry.get("example")        # by name or alias (also lower-cased), then extension or filename
registry.match("script.ex")    # by filename glob; backup suffixes like .bak and ~ also match
registry.match_mime_type("text/x-example")
registry.analyse(some_text)    # the lexer whose analyser scores the text highest
registry.names(True)           # sorted names, with aliases
registry.aliases(False)        # sorted aliases; lexers without any listed by name
```

When several lexers match, the one with the highest `Config.priority` wins
(an unset priority counts as 1). Registering a lexer with an existing name
replaces it. Content scoring is set with `RegexLexer.set_analyser`.

## Remapping token types

```python
from synlex.remap import TypeMapping, type_remapping_lexer

keywords = type_remapping_lexer(
    lexer,
    [TypeMapping(TokenType.Name, TokenType.Keyword, ("if", "else"))],
)
```

A `TypeMapping` without words remaps every token of its source type.
`RemappingLexer(lexer, mapper)` wraps a lexer with any function that turns
one token into zero or more tokens.

## What this package does not do

`synlex` is the lexing engine only. It ships no ready-made language lexers,
no output formatters (HTML, terminal), no colour styles and no command-line
program. Token type names are the enum member names, so converting between
a name and a type is `TokenType["NameVariable"]` and `TokenType.NameVariable.name`.

## Running the tests

```
pip install -e .[test]
pytest
```