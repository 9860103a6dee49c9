#!/usr/bin/env python3
"""
Answer sequence generation for the Arrow CAPTCHA
Each challenge is six arrows, each one of LEFT (0), UP (1) or RIGHT (2)
"""

import random
from enum import Enum
from typing import Optional, Sequence, Tuple

from error_handling import InvalidArgument

SEQUENCE_LENGTH = 6


class Direction(Enum):
    """Arrow orientation and the symbol the player types for it"""
    LEFT = 0
    UP = 1
    RIGHT = 2

    @property
    def code(self) -> int:
        return self.value

    @classmethod
    def from_code(cls, code: int) -> 'Direction':
        if isinstance(code, bool) or not isinstance(code, int):
            raise InvalidArgument(f"Direction code must be an integer, got {code!r}")
        try:
            return cls(code)
        except ValueError:
            raise InvalidArgument(f"Direction code must be 0, 1 or 2, got {code}")


ALPHABET = tuple(direction.code for direction in Direction)

# Production draws come from the OS entropy pool
_system_random = random.SystemRandom()


def is_valid_symbol(symbol) -> bool:
    return not isinstance(symbol, bool) and isinstance(symbol, int) and symbol in ALPHABET


def generate_sequence(rng: Optional[random.Random] = None) -> Tuple[int, ...]:
    """Draw SEQUENCE_LENGTH independent uniform symbols.

    3^6 = 729 possible answers; the puzzle is a human check, not a secret.
    """
    source = rng if rng is not None else _system_random
    return tuple(source.choice(ALPHABET) for _ in range(SEQUENCE_LENGTH))


def sequence_to_string(sequence: Sequence[int]) -> str:
    """(0, 2, 1) -> "021" """
    return ''.join(str(symbol) for symbol in sequence)


def sequence_from_string(text: str) -> Tuple[int, ...]:
    """Parse a digit string such as "021102" into a validated sequence"""
    try:
        symbols = tuple(int(ch) for ch in text)
    except ValueError:
        raise InvalidArgument(f"Sequence must contain only digits, got {text!r}")
    for symbol in symbols:
        Direction.from_code(symbol)
    return symbols
