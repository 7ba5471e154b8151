"""
Tests for greedy sequence decoding.
"""

import numpy as np
import pytest

from captcha_solver.sequence_decoder import DEFAULT_CHARSET, SequenceDecoder


def one_hot(decoder, path):
    """Score matrix whose per-row argmax follows ``path``."""
    matrix = np.zeros((len(path), decoder.num_classes), dtype=np.float32)
    for row, index in enumerate(path):
        matrix[row, index] = 1.0
    return matrix


class TestSequenceDecoder:

    def test_default_alphabet(self):
        decoder = SequenceDecoder()
        assert len(DEFAULT_CHARSET) == 36
        assert decoder.blank_index == 36
        assert decoder.num_classes == 37

    def test_empty_alphabet_rejected(self):
        with pytest.raises(ValueError):
            SequenceDecoder("")

    def test_duplicate_symbols_keep_first(self):
        decoder = SequenceDecoder("ABAC")
        assert decoder.alphabet == ["A", "B", "C"]
        assert decoder.blank_index == 3

    def test_blanks_dropped_and_repeats_collapsed(self):
        decoder = SequenceDecoder("ABC")
        blank = decoder.blank_index
        matrix = one_hot(decoder, [0, blank, 1, 1, 2])

        assert decoder.decode(matrix) == "ABC"

    def test_repeated_symbol_collapses(self):
        decoder = SequenceDecoder("ABC")
        assert decoder.decode(one_hot(decoder, [0, 0, 0])) == "A"

    def test_blank_separates_equal_symbols(self):
        decoder = SequenceDecoder("ABC")
        blank = decoder.blank_index
        assert decoder.decode(one_hot(decoder, [0, blank, 0])) == "AA"

    def test_all_blank_decodes_to_empty(self):
        decoder = SequenceDecoder("ABC")
        blank = decoder.blank_index
        assert decoder.decode(one_hot(decoder, [blank, blank])) == ""

    def test_empty_matrix(self):
        decoder = SequenceDecoder("ABC")
        assert decoder.decode(np.zeros(0)) == ""

    def test_flat_buffer_is_accepted(self):
        decoder = SequenceDecoder("ABC")
        matrix = one_hot(decoder, [2, 3, 1])
        assert decoder.decode(matrix.ravel().tolist()) == "CB"

    def test_truncated_buffer_uses_full_rows_only(self):
        decoder = SequenceDecoder("ABC")
        flat = one_hot(decoder, [0, 3, 1]).ravel()

        # Declares 3 timesteps but the last row is incomplete
        assert decoder.decode(flat[:-2], timesteps=3) == "A"

    def test_timesteps_limits_rows(self):
        decoder = SequenceDecoder("ABC")
        matrix = one_hot(decoder, [0, 3, 1, 3, 2])
        assert decoder.decode(matrix, timesteps=3) == "AB"

    def test_ties_go_to_lowest_index(self):
        decoder = SequenceDecoder("ABC")
        matrix = np.array([[0.5, 0.5, 0.0, 0.5]])
        np.testing.assert_array_equal(decoder.best_path(matrix), [0])

    def test_decode_path_seeds_previous_with_blank(self):
        decoder = SequenceDecoder("ABC")
        assert decoder.decode_path([3, 2, 2, 3, 2]) == "CC"

    def test_encode_path_round_trips_repeats(self):
        decoder = SequenceDecoder(DEFAULT_CHARSET)
        path = decoder.encode_path("AAB9")

        assert path[1::2] == [decoder.blank_index] * 4
        assert decoder.decode_path(path) == "AAB9"

    def test_encode_path_unknown_symbol(self):
        decoder = SequenceDecoder("ABC")
        with pytest.raises(ValueError, match="not in the alphabet"):
            decoder.encode_path("AZ")
