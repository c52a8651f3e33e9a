"""Rules and the mutators that change a lexer's state stack or rule set."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, ClassVar, MutableMapping, Optional, Sequence


@dataclass
class Rule:
    """The basic matching unit of a regex lexer state machine.

    ``type`` is the emitter that turns a match into tokens; ``mutator``
    optionally changes the lexer state after a match.
    """

    pattern: str = ""
    type: Any = None
    mutator: Optional[Mutator] = None


class Mutator(abc.ABC):
    """Changes the lexer state machine while it is running."""

    kind: ClassVar[str] = ""

    @abc.abstractmethod
    def mutate(self, state: Any) -> None:
        """Apply this mutator to the running lexer ``state``."""


# A mapping of state name to the list of (compiled) rules in that state.
CompiledRules = MutableMapping[str, list]


@dataclass
class MultiMutator(Mutator):
    """Applies several mutators in order."""

    kind: ClassVar[str] = "mutators"

    mutators: tuple[Mutator, ...] = field(default_factory=tuple)

    def mutate(self, state: Any) -> None:
        for mutator in self.mutators:
            mutator.mutate(state)


@dataclass
class IncludeMutator(Mutator):
    """Splices the rules of another state in place of this rule."""

    kind: ClassVar[str] = "include"

    state: str = ""

    def mutate(self, state: Any) -> None:
        raise RuntimeError(f"should never reach here include({self.state!r})")

    def mutate_lexer(self, rules: CompiledRules, state: str, rule: int) -> None:
        """Replace rule ``rule`` of ``state`` with the included state's rules."""
        try:
            included = rules[self.state]
        except KeyError:
            raise ValueError(f"invalid include state {self.state!r}") from None
        current = rules[state]
        rules[state] = [*current[:rule], *included, *current[rule + 1:]]


@dataclass
class CombinedMutator(Mutator):
    """Pushes an anonymous state built from several states."""

    kind: ClassVar[str] = "combined"

    states: tuple[str, ...] = field(default_factory=tuple)

    def mutate(self, state: Any) -> None:
        raise RuntimeError(f"should never reach here combined({list(self.states)!r})")

    def mutate_lexer(self, rules: CompiledRules, state: str, rule: int) -> None:
        """Create the combined state if needed and make the rule push it."""
        name = "__combined_" + "__".join(self.states)
        if name not in rules:
            combined_rules: list = []
            for part in self.states:
                try:
                    combined_rules.extend(rules[part])
                except KeyError:
                    raise ValueError(f"invalid combine state {part!r}") from None
            rules[name] = combined_rules
        rules[state][rule].mutator = push(name)


@dataclass
class PushMutator(Mutator):
    """Pushes states onto the stack; ``#pop`` pops one instead.

    With no states the current state is pushed again.
    """

    kind: ClassVar[str] = "push"

    states: tuple[str, ...] = field(default_factory=tuple)

    def mutate(self, state: Any) -> None:
        if not self.states:
            state.stack.append(state.state)
            return
        for name in self.states:
            if name == "#pop":
                state.stack.pop()
            else:
                state.stack.append(name)


@dataclass
class PopMutator(Mutator):
    """Pops ``depth`` states from the stack."""

    kind: ClassVar[str] = "pop"

    depth: int = 1

    def mutate(self, state: Any) -> None:
        stack = state.stack
        if not stack:
            raise IndexError("nothing to pop")
        if self.depth > len(stack):
            raise IndexError(f"cannot pop {self.depth} states from a stack of {len(stack)}")
        del stack[len(stack) - self.depth:]


def mutators(*modifiers: Mutator) -> MultiMutator:
    """Combine mutators so that they are applied in order."""
    return MultiMutator(tuple(modifiers))


def include(state: str) -> Rule:
    """A rule that includes the rules of ``state``."""
    return Rule(mutator=IncludeMutator(state))


def combined(*states: str) -> CombinedMutator:
    """A mutator that pushes a new state combining ``states``."""
    return CombinedMutator(tuple(states))


def push(*states: str) -> PushMutator:
    """A mutator that pushes ``states`` onto the stack."""
    return PushMutator(tuple(states))


def pop(n: int) -> PopMutator:
    """A mutator that pops ``n`` states from the stack."""
    return PopMutator(n)


def default(*modifiers: Mutator) -> Rule:
    """A rule that matches nothing and only applies ``modifiers``."""
    return Rule(mutator=mutators(*modifiers))


def _as_sequence(values: Sequence[str]) -> tuple[str, ...]:
    return tuple(values)