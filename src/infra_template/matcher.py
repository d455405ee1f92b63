"""
Character matching primitives for the template grammar

The source is held as a list of code points with END_SYMBOL appended, so the
grammar can always look at buffer[position]: running off the end of the input
is an ordinary failed match instead of an index error.
"""

from typing import List

# One past the largest Unicode code point; never produced by a str.
END_SYMBOL = 0x110000


def to_buffer(source: str) -> List[int]:
    """Return the code points of source followed by END_SYMBOL"""
    buffer = [ord(ch) for ch in source]
    buffer.append(END_SYMBOL)
    return buffer


class Matcher:
    """
    Primitive predicates over a code point buffer.

    Every predicate either consumes input and returns True, or leaves
    position untouched and returns False.
    """

    def __init__(self, source: str = ""):
        self.source = source
        self.buffer = to_buffer(source)
        self.position = 0

    def peek(self) -> int:
        return self.buffer[self.position]

    def at_end(self) -> bool:
        return self.buffer[self.position] == END_SYMBOL

    def match_dot(self) -> bool:
        """Match any single character except the end of input"""
        if self.buffer[self.position] != END_SYMBOL:
            self.position += 1
            return True
        return False

    def match_char(self, ch: str) -> bool:
        if self.buffer[self.position] == ord(ch):
            self.position += 1
            return True
        return False

    def match_range(self, lower: str, upper: str) -> bool:
        c = self.buffer[self.position]
        if ord(lower) <= c <= ord(upper):
            self.position += 1
            return True
        return False

    def match_any_of(self, chars: str) -> bool:
        c = self.buffer[self.position]
        if c != END_SYMBOL and chr(c) in chars:
            self.position += 1
            return True
        return False

    def match_string(self, literal: str) -> bool:
        """Match literal as a whole; on a partial match nothing is consumed"""
        start = self.position
        for ch in literal:
            if self.buffer[self.position] != ord(ch):
                self.position = start
                return False
            self.position += 1
        return True
