#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Token Filters
Composable, order-preserving predicate stages over the token stream
"""

import re
import logging
from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional

from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS

from ..data.models import ExclusionPolicy, FilterConfig, Token

logger = logging.getLogger(__name__)

# Integer, decimal or exponent forms with an optional sign; at least one digit
NUMERIC_PATTERN = re.compile(r'^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$')


class FilterStage(ABC):
    """
    Base class for a token filter stage

    A disabled stage passes every token through. Stages never reorder the
    tokens they keep.
    """

    name = "filter"

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.dropped = 0

    @abstractmethod
    def keep(self, token: Token) -> bool:
        """Return True when the token survives this stage"""
        pass

    def apply(self, tokens: Iterable[Token]) -> Iterator[Token]:
        """Lazily filter a token stream"""
        if not self.enabled:
            yield from tokens
            return
        for token in tokens:
            if self.keep(token):
                yield token
            else:
                self.dropped += 1

    def __repr__(self):
        return f"{self.__class__.__name__}(enabled={self.enabled})"


class NumericTokenFilter(FilterStage):
    """Drop tokens that parse fully as numeric literals"""

    name = "numeric"

    def keep(self, token: Token) -> bool:
        return NUMERIC_PATTERN.match(token.term) is None


class StopWordFilter(FilterStage):
    """Drop tokens found in a fixed stop-word set"""

    name = "stop_words"

    def __init__(self, stop_words: Optional[Iterable[str]] = None, extra_stop_words: Iterable[str] = (), enabled: bool = True):
        super().__init__(enabled)
        base = ENGLISH_STOP_WORDS if stop_words is None else stop_words
        self.stop_words: FrozenSet[str] = frozenset(w.lower() for w in base) | frozenset(
            w.lower() for w in extra_stop_words
        )

    def keep(self, token: Token) -> bool:
        return token.term not in self.stop_words


class ExclusionFilter(FilterStage):
    """Drop tokens containing any operator exclusion term (case-insensitive substring)"""

    name = "exclusions"

    def __init__(self, policy: ExclusionPolicy, enabled: bool = True):
        super().__init__(enabled)
        self.policy = policy

    def keep(self, token: Token) -> bool:
        term = token.term.lower()
        return not any(excluded in term for excluded in self.policy.terms)


class FilterChain:
    """
    Ordered sequence of filter stages

    Each stage consumes the output of the previous one, so the chain is as
    lazy as its input.
    """

    def __init__(self, stages: List[FilterStage]):
        self.stages = stages

    @classmethod
    def from_config(cls, config: FilterConfig) -> "FilterChain":
        """Build the standard numeric → stop-word → exclusion chain"""
        return cls([
            NumericTokenFilter(enabled=config.drop_numeric),
            StopWordFilter(extra_stop_words=config.extra_stop_words, enabled=config.drop_stop_words),
            ExclusionFilter(config.exclusions, enabled=config.apply_exclusions)
        ])

    def apply(self, tokens: Iterable[Token]) -> Iterator[Token]:
        stream = iter(tokens)
        for stage in self.stages:
            stream = stage.apply(stream)
        return stream

    def reset(self):
        for stage in self.stages:
            stage.dropped = 0

    def stats(self) -> Dict[str, int]:
        """Tokens dropped per stage since the last reset"""
        return {stage.name: stage.dropped for stage in self.stages}

    def describe(self) -> List[str]:
        return [f"{stage.name}: {'on' if stage.enabled else 'off'}" for stage in self.stages]
