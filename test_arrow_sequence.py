#!/usr/bin/env python3
"""
Tests for answer sequence generation
"""
import random

import pytest

from arrow_sequence import (
    ALPHABET,
    SEQUENCE_LENGTH,
    Direction,
    generate_sequence,
    is_valid_symbol,
    sequence_from_string,
    sequence_to_string,
)
from error_handling import InvalidArgument


def test_sequence_shape():
    """Six symbols, all from the arrow alphabet"""
    for _ in range(50):
        sequence = generate_sequence()
        assert len(sequence) == SEQUENCE_LENGTH
        assert all(symbol in ALPHABET for symbol in sequence)


def test_seeded_source_is_reproducible():
    assert generate_sequence(random.Random(99)) == generate_sequence(random.Random(99))


def test_all_symbols_drawn():
    rng = random.Random(3)
    seen = set()
    for _ in range(100):
        seen.update(generate_sequence(rng))
    assert seen == {0, 1, 2}


def test_direction_codes():
    assert Direction.LEFT.code == 0
    assert Direction.UP.code == 1
    assert Direction.RIGHT.code == 2
    assert Direction.from_code(2) is Direction.RIGHT


@pytest.mark.parametrize("code", [3, -1, True, "1", 1.0])
def test_direction_rejects_bad_codes(code):
    with pytest.raises(InvalidArgument):
        Direction.from_code(code)


def test_symbol_validation():
    assert is_valid_symbol(0) and is_valid_symbol(2)
    assert not is_valid_symbol(3)
    assert not is_valid_symbol(False)
    assert not is_valid_symbol(None)


def test_string_conversion():
    assert sequence_to_string((0, 2, 1, 1, 0, 2)) == "021102"
    assert sequence_from_string("021102") == (0, 2, 1, 1, 0, 2)
    with pytest.raises(InvalidArgument):
        sequence_from_string("0x1")
    with pytest.raises(InvalidArgument):
        sequence_from_string("013")
