"""
Sequence Decoder module.

Greedy CTC decoding of a per-timestep class score matrix into text. Each row
of the matrix holds one score per alphabet symbol followed by one score for
the reserved blank symbol, whose index is ``len(alphabet)``.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import numpy as np


DEFAULT_CHARSET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


class SequenceDecoder:
    """Collapse score matrices into strings over a fixed alphabet."""

    def __init__(self, alphabet: Iterable[str] = DEFAULT_CHARSET):
        """Initialize the decoder.

        Args:
            alphabet: Recognizable symbols in class-index order. Duplicates
                are dropped, keeping the first occurrence.
        """
        symbols = list(dict.fromkeys(alphabet))
        if not symbols:
            raise ValueError("Alphabet must contain at least one symbol")
        self.alphabet = symbols

    @property
    def blank_index(self) -> int:
        return len(self.alphabet)

    @property
    def num_classes(self) -> int:
        return len(self.alphabet) + 1

    def best_path(self, matrix: Sequence[float] | np.ndarray, timesteps: Optional[int] = None) -> np.ndarray:
        """Per-timestep argmax indices.

        Ties go to the lowest index. Only complete rows are used: if the
        buffer is shorter than ``timesteps * num_classes`` the path ends at
        the last full timestep.

        Args:
            matrix: Flat buffer or (timesteps, num_classes) array of scores
            timesteps: Declared number of timesteps; defaults to every full row

        Returns:
            Integer array of selected class indices
        """
        scores = np.asarray(matrix, dtype=np.float64).ravel()
        available = scores.size // self.num_classes
        if timesteps is None:
            timesteps = available
        steps = max(0, min(timesteps, available))
        if steps == 0:
            return np.zeros(0, dtype=np.int64)
        rows = scores[: steps * self.num_classes].reshape(steps, self.num_classes)
        return rows.argmax(axis=1)

    def decode(self, matrix: Sequence[float] | np.ndarray, timesteps: Optional[int] = None) -> str:
        """Decode a score matrix into text.

        A symbol is emitted when the selected index is not blank and differs
        from the previous timestep's index; the previous index starts as
        blank and is updated every step. This drops blanks and collapses
        repeats, while a blank between two equal symbols keeps both.
        """
        return self.decode_path(self.best_path(matrix, timesteps))

    def decode_path(self, path: Iterable[int]) -> str:
        """Collapse an index path into text."""
        blank = self.blank_index
        previous = blank
        chars = []
        for index in path:
            index = int(index)
            if index != blank and index != previous:
                chars.append(self.alphabet[index])
            previous = index
        return "".join(chars)

    def encode_path(self, text: str) -> list:
        """Index path for ``text`` with a blank after every symbol.

        Decoding the path returns ``text`` unchanged, repeats included.
        """
        index = {symbol: i for i, symbol in enumerate(self.alphabet)}
        path = []
        for char in text:
            if char not in index:
                raise ValueError(f"Symbol {char!r} is not in the alphabet")
            path.extend((index[char], self.blank_index))
        return path
