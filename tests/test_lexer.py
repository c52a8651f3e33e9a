import pytest

from synlex.lexer import (
    CompiledRule,
    Config,
    RegexLexer,
    Rules,
    TokeniseOptions,
    ensure_lf,
    tokenise,
    words,
)
from synlex.mutators import IncludeMutator, Rule, combined, include, pop, push
from synlex.registry import LexerRegistry
from synlex.tokens import Token, TokenType as T


class _ByGroups:
    def __init__(self, *emitters):
        self.emitters = emitters

    def emit(self, groups, state):
        for emitter, group in zip(self.emitters, groups[1:]):
            yield from emitter.emit([group], state)


class _ByGroupNames:
    def __init__(self, emitters):
        self.emitters = emitters

    def emit(self, groups, state):
        named = state.named_groups
        if len(named) == 1:
            yield Token(T.Error, groups[0])
            return
        for name, value in list(named.items())[1:]:
            emitter = self.emitters.get(name)
            if emitter is None:
                yield Token(T.Error, value)
            else:
                yield from emitter.emit([value], state)


def _coalesce(tokens):
    out = []
    for token in tokens:
        if not token.value:
            continue
        if out and out[-1].type == token.type:
            out[-1] = Token(token.type, out[-1].value + token.value)
        else:
            out.append(token)
    return out


def _lexer(rules, config=None):
    return RegexLexer(config, lambda: Rules(rules))


def _lex(lexer, text, options=None):
    return _coalesce(lexer.tokenise(options, text))


def test_include_mutate_lexer():
    inc = include("other")
    actual = {
        "root": [CompiledRule(mutator=inc.mutator)],
        "other": [
            CompiledRule(pattern="//.+", type=T.Comment),
            CompiledRule(pattern='"[^"]*"', type=T.String),
        ],
    }
    inc.mutator.mutate_lexer(actual, "root", 0)
    expected_rules = [
        CompiledRule(pattern="//.+", type=T.Comment),
        CompiledRule(pattern='"[^"]*"', type=T.String),
    ]
    assert actual == {"root": expected_rules, "other": expected_rules}


def test_combine():
    lexer = _lexer({
        "root": [Rule("hello", T.String, combined("world", "bye", "space"))],
        "world": [Rule("world", T.Name)],
        "bye": [Rule("bye", T.Name)],
        "space": [Rule(r"\s+", T.Whitespace)],
    })
    assert lexer.tokenise(None, "hello world").tokens() == [
        Token(T.String, "hello"),
        Token(T.Whitespace, " "),
        Token(T.Name, "world"),
    ]


def test_newline_at_end_of_file():
    rules = {"root": [Rule(r"(\w+)(\n)", _ByGroups(T.Keyword, T.Whitespace))]}
    lexer = _lexer(rules, Config(ensure_nl=True))
    assert _lex(lexer, "hello") == [Token(T.Keyword, "hello"), Token(T.Whitespace, "\n")]
    lexer = _lexer(rules)
    assert _lex(lexer, "hello") == [Token(T.Error, "hello")]


def test_nested_option_skips_added_newline():
    rules = {"root": [Rule(r"(\w+)(\n)", _ByGroups(T.Keyword, T.Whitespace))]}
    lexer = _lexer(rules, Config(ensure_nl=True))
    assert _lex(lexer, "hello", TokeniseOptions(nested=True)) == [Token(T.Error, "hello")]


def test_matching_at_start():
    lexer = _lexer({
        "root": [
            Rule(r"\s+", T.Whitespace),
            Rule("^-", T.Punctuation, push("directive")),
            Rule("->", T.Operator),
        ],
        "directive": [Rule("module", T.NameEntity, pop(1))],
    }, Config())
    assert _lex(lexer, "-module ->") == [
        Token(T.Punctuation, "-"),
        Token(T.NameEntity, "module"),
        Token(T.Whitespace, " "),
        Token(T.Operator, "->"),
    ]


def test_ensure_lf_option():
    rules = {"root": [Rule(r"(\w+)(\r?\n|\r)", _ByGroups(T.Keyword, T.Whitespace))]}
    lexer = _lexer(rules, Config())
    options = TokeniseOptions(state="root", ensure_lf=True)
    assert _lex(lexer, "hello\r\nworld\r", options) == [
        Token(T.Keyword, "hello"),
        Token(T.Whitespace, "\n"),
        Token(T.Keyword, "world"),
        Token(T.Whitespace, "\n"),
    ]
    lexer = _lexer(rules)
    options = TokeniseOptions(state="root", ensure_lf=False)
    assert _lex(lexer, "hello\r\nworld\r", options) == [
        Token(T.Keyword, "hello"),
        Token(T.Whitespace, "\r\n"),
        Token(T.Keyword, "world"),
        Token(T.Whitespace, "\r"),
    ]


@pytest.mark.parametrize(
    "given, expected",
    [
        ("", ""),
        ("abc", "abc"),
        ("\r", "\n"),
        ("a\r", "a\n"),
        ("\rb", "\nb"),
        ("a\rb", "a\nb"),
        ("\r\n", "\n"),
        ("a\r\n", "a\n"),
        ("\r\nb", "\nb"),
        ("a\r\nb", "a\nb"),
        ("\r\r\r\n\r", "\n\n\n\n"),
    ],
)
def test_ensure_lf(given, expected):
    assert ensure_lf(given) == expected


@pytest.mark.parametrize(
    "pattern, emitters, expected",
    [
        (
            r"(?<key>\w+)(?<operator>=)(?<value>\w+)",
            {"key": T.String, "operator": T.Operator, "value": T.String},
            [Token(T.String, "abc"), Token(T.Operator, "="), Token(T.String, "123")],
        ),
        (
            r"(?<key>\w+)(?<operator>=)(?<value>\w+)",
            {"key": T.String, "value": T.String},
            [Token(T.String, "abc"), Token(T.Error, "="), Token(T.String, "123")],
        ),
        (
            r"(?<key>\w+)=(?<value>\w+)",
            {"key": T.String, "value": T.String},
            [Token(T.String, "abc123")],
        ),
        (
            r"(?<key>\w+)(?<op>=)(?<value>\w+)",
            {"key": T.String, "operator": T.Operator, "value": T.String},
            [Token(T.String, "abc"), Token(T.Error, "="), Token(T.String, "123")],
        ),
        (
            r"\w+=\w+",
            {"key": T.String, "operator": T.Operator, "value": T.String},
            [Token(T.Error, "abc=123")],
        ),
    ],
)
def test_by_group_names(pattern, emitters, expected):
    lexer = _lexer({"root": [Rule(pattern, _ByGroupNames(emitters))]})
    assert _lex(lexer, "abc=123") == expected


def test_ignore_token():
    lexer = _lexer(
        {"root": [Rule(r"(\s*)(\w+)(?:\1)(\n)", _ByGroups(T.Ignore, T.Keyword, T.Whitespace))]},
        Config(ensure_nl=True),
    )
    assert _lex(lexer, "  hello  ") == [Token(T.Keyword, "hello"), Token(T.TextWhitespace, "\n")]


def test_newline_resets_stack_to_root():
    lexer = _lexer({
        "root": [
            Rule('"', T.String, push("str")),
            Rule(r"\n", T.Text),
            Rule(r"\w+", T.Name),
        ],
        "str": [Rule('[^"\\n]+', T.String), Rule('"', T.String, pop(1))],
    })
    assert _lex(lexer, '"ab\ncd') == [
        Token(T.String, '"ab'),
        Token(T.Text, "\n"),
        Token(T.Name, "cd"),
    ]


def test_empty_stack_returns_rest_as_error():
    lexer = _lexer({"root": [Rule("a", T.Name, pop(1))]})
    assert lexer.tokenise(None, "abc").tokens() == [Token(T.Name, "a"), Token(T.Error, "bc")]


def test_pop_too_deep_raises():
    lexer = _lexer({"root": [Rule("a", T.Name, pop(2))]})
    with pytest.raises(IndexError):
        lexer.tokenise(None, "ab").tokens()


def test_unknown_state_raises():
    lexer = _lexer({"root": [Rule("a", T.Name, push("missing"))]})
    with pytest.raises(ValueError, match="unknown state"):
        lexer.tokenise(None, "ab").tokens()


def test_missing_root_state():
    lexer = _lexer({"other": [Rule("a", T.Name)]})
    with pytest.raises(ValueError, match="root"):
        lexer.tokenise(None, "a")


def test_bad_pattern_raises():
    lexer = _lexer({"root": [Rule("(", T.Name)]})
    with pytest.raises(ValueError, match="failed to compile rule root.0"):
        lexer.rules()


def test_invalid_include_and_combine():
    with pytest.raises(ValueError, match="invalid include state"):
        _lexer({"root": [include("nope")]}).tokenise(None, "x")
    with pytest.raises(ValueError, match="invalid combine state"):
        _lexer({"root": [Rule("a", T.Name, combined("nope"))]}).tokenise(None, "x")


def test_invalid_glob_rejected():
    with pytest.raises(ValueError, match="not a valid glob"):
        RegexLexer(Config(name="X", filenames=["*.[ch"]), lambda: Rules(root=[]))


def test_validating_emitter_error_is_reported():
    class Invalid:
        def validate_emitter(self, rule):
            raise ValueError("bad emitter")

        def emit(self, groups, state):
            return iter(())

    lexer = _lexer({"root": [Rule("a", Invalid())]}, Config(name="Thing"))
    with pytest.raises(ValueError, match="Thing: root: a: bad emitter"):
        lexer.tokenise(None, "a")


def test_config_flags():
    rules = {"root": [Rule("hello", T.Keyword)]}
    assert _lex(_lexer(rules, Config(case_insensitive=True)), "HELLO") == [Token(T.Keyword, "HELLO")]
    assert _lex(_lexer(rules), "HELLO") == [Token(T.Error, "HELLO")]

    line_rules = {"root": [Rule("^b", T.Keyword), Rule(".", T.Text), Rule(r"\n", T.Text)]}
    assert _lex(_lexer(line_rules), "a\nb") == [Token(T.Text, "a\n"), Token(T.Keyword, "b")]
    assert _lex(_lexer(line_rules, Config(not_multiline=True)), "a\nb") == [Token(T.Text, "a\nb")]

    dot_rules = {"root": [Rule("a.b", T.Name)]}
    assert _lex(_lexer(dot_rules, Config(dot_all=True)), "a\nb") == [Token(T.Name, "a\nb")]
    assert _lex(_lexer(dot_rules), "a\nb") == [Token(T.Error, "a\nb")]


def test_rules_returns_raw_rules():
    raw = {"root": [include("other")], "other": [Rule("a", T.Name)]}
    lexer = _lexer(raw)
    assert lexer.tokenise(None, "a").tokens() == [Token(T.Name, "a")]
    assert isinstance(lexer.rules()["root"][0].mutator, IncludeMutator)


def test_words():
    assert words(r"\b", r"\b", "a", "abc", "a.b") == r"\b(abc|a\.b|a)\b"


def test_tokenise_function():
    lexer = _lexer({"root": [Rule(r"\w+", T.Name), Rule(r"\s+", T.Whitespace)]})
    assert tokenise(lexer, None, "a b") == [
        Token(T.Name, "a"),
        Token(T.Whitespace, " "),
        Token(T.Name, "b"),
    ]


def test_lexer_state_context():
    lexer = _lexer({"root": [Rule("x", T.Name)]})
    state = lexer.tokenise(None, "x")
    state.set("depth", 3)
    assert state.get("depth") == 3
    assert state.get("missing") is None


def test_named_groups_and_groups_recorded():
    seen = {}

    class Recorder:
        def emit(self, groups, state):
            seen["groups"] = list(groups)
            seen["named"] = dict(state.named_groups)
            return iter(())

    lexer = _lexer({"root": [Rule(r"(?<k>\w)(=)", Recorder())]})
    assert lexer.tokenise(None, "a=").tokens() == []
    assert seen["groups"] == ["a=", "a", "="]
    assert seen["named"] == {"0": "a=", "k": "a", "2": "="}


def test_analyser_and_config():
    lexer = _lexer({"root": [Rule("x", T.Name)]}, Config(name="Demo"))
    assert lexer.analyse_text("anything") == 0.0
    assert lexer.set_analyser(lambda text: 0.7 if "x" in text else 0.1) is lexer
    assert lexer.analyse_text("xyz") == 0.7
    assert str(lexer) == "Demo"
    new_config = Config(name="Other")
    assert lexer.set_config(new_config).config is new_config


def test_registry_is_passed_to_state():
    lexer = _lexer({"root": [Rule("x", T.Name)]}, Config(name="Demo", aliases=["demo"]))
    registry = LexerRegistry()
    registry.register(lexer)
    assert registry.get("demo") is lexer
    assert lexer.tokenise(None, "x").registry is registry


def test_trace_writes_to_stderr(capsys):
    lexer = _lexer({"root": [Rule("x", T.Name)]})
    assert lexer.trace(True) is lexer
    lexer.tokenise(None, "x").tokens()
    assert "root: pos=0" in capsys.readouterr().err


def test_rules_clone_rename_merge():
    original = Rules({"root": [Rule("a", T.Name)], "other": [Rule("b", T.Name)]})
    clone = original.clone()
    clone["root"].append(Rule("c", T.Name))
    assert len(original["root"]) == 1

    renamed = original.rename("other", "second")
    assert set(renamed) == {"root", "second"}
    assert set(original) == {"root", "other"}

    merged = original.merge({"other": [Rule("z", T.Text)], "extra": []})
    assert merged["other"] == [Rule("z", T.Text)]
    assert set(merged) == {"root", "other", "extra"}
    assert original["other"] == [Rule("b", T.Name)]