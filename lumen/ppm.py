"""
Plain-text PPM (P3) output.

Layout:
    P3
    <width> <height>
    255
    <r g b tokens, one image row per block of lines>

Each image row starts on a new line and is wrapped so that no line is
longer than 70 characters. Tokens are separated by single spaces and
lines carry no trailing whitespace.
"""

from __future__ import annotations
import sys
from pathlib import Path
from typing import Iterable, Iterator, List, TextIO, Tuple, Union

MAX_LINE_LENGTH = 70
MAX_COLOR_VALUE = 255

Pixel = Tuple[int, int, int]


class PPMWriteError(OSError):
    """The destination could not be opened or written."""


def wrap_tokens(tokens: Iterable[str], width: int = MAX_LINE_LENGTH) -> Iterator[str]:
    """Greedily pack tokens into space-separated lines of at most `width` chars."""
    line: List[str] = []
    length = 0
    for token in tokens:
        added = len(token) if not line else len(token) + 1
        if line and length + added > width:
            yield ' '.join(line)
            line = [token]
            length = len(token)
        else:
            line.append(token)
            length += added
    if line:
        yield ' '.join(line)


def _row_tokens(row: Iterable[Pixel]) -> Iterator[str]:
    for pixel in row:
        for value in pixel:
            value = int(value)
            if not 0 <= value <= MAX_COLOR_VALUE:
                raise ValueError(f"Pixel value out of range [0, {MAX_COLOR_VALUE}]: {value}")
            yield str(value)


def iter_ppm_lines(width: int, height: int, pixels: Iterable[Pixel]) -> Iterator[str]:
    """Yield the lines of a P3 image (without newlines).

    Args:
        width: Image width in pixels
        height: Image height in pixels
        pixels: Row-major (r, g, b) triples, top row first
    """
    yield 'P3'
    yield f'{width} {height}'
    yield str(MAX_COLOR_VALUE)

    pixel_iter = iter(pixels)
    for row_index in range(height):
        row = [next(pixel_iter, None) for _ in range(width)]
        if any(p is None for p in row):
            raise ValueError(f"Expected {width * height} pixels, ran out in row {row_index}")
        yield from wrap_tokens(_row_tokens(row))

    if next(pixel_iter, None) is not None:
        raise ValueError(f"More than {width * height} pixels supplied")


def write_ppm(stream: TextIO, width: int, height: int, pixels: Iterable[Pixel]) -> None:
    """Write a P3 image to an open text stream."""
    try:
        for line in iter_ppm_lines(width, height, pixels):
            stream.write(line)
            stream.write('\n')
        stream.flush()
    except OSError as e:
        raise PPMWriteError(f"Failed to write PPM output: {e}") from e


def save_ppm(destination: Union[str, Path], width: int, height: int, pixels: Iterable[Pixel]) -> None:
    """Write a P3 image to a file path, or to stdout when destination is '-'."""
    if str(destination) == '-':
        write_ppm(sys.stdout, width, height, pixels)
        return

    try:
        f = open(destination, 'w', encoding='ascii', newline='\n')
    except OSError as e:
        raise PPMWriteError(f"Cannot open {destination} for writing: {e}") from e

    with f:
        write_ppm(f, width, height, pixels)
