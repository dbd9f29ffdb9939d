"""
LC-3 Operand Classifier
=======================

This module decides what kind of operand a raw token is, using only the
token's own characters, and which descriptor-table categories accept which
kinds.

Operand Syntax
--------------
| Syntax        | Kind      | Example          |
|---------------|-----------|------------------|
| R0 .. R7      | REGISTER  | R3               |
| x + 1-4 hex   | IMMEDIATE | x3000, xF        |
| # + 1-5 dec   | IMMEDIATE | #10, #-5         |
| = immediate   | LITERAL   | =#25, =xFFFF     |
| "..."         | STRING    | "Hello"          |
| letter + 0-6  | SYMBOL    | LOOP, Data2      |
| anything else | MALFORMED | R8, xyz, 1abc    |

A token that starts with 'R' or 'x' is never a symbol: 'R8' and 'xyz'
are malformed rather than symbol references.

Categories
----------
Descriptor-table slots declare categories (ADDRESS, REGISTER, IMMEDIATE,
INDEX, STRING, TRAPVECT) rather than kinds. `category_allows` is the fixed
mapping between the two.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional
import re


# =============================================================================
# Operand Kinds and Categories
# =============================================================================

class ArgKind(Enum):
    """Syntactic kind of an operand token."""
    REGISTER = auto()
    IMMEDIATE = auto()
    LITERAL = auto()
    SYMBOL = auto()
    STRING = auto()
    MALFORMED = auto()

    def __str__(self) -> str:
        return self.name.lower()


class ArgCategory(Enum):
    """Category of operand a descriptor-table slot accepts."""
    ADDRESS = auto()
    REGISTER = auto()
    IMMEDIATE = auto()
    INDEX = auto()
    STRING = auto()
    TRAPVECT = auto()

    def __str__(self) -> str:
        return {
            ArgCategory.ADDRESS: "address",
            ArgCategory.REGISTER: "register",
            ArgCategory.IMMEDIATE: "immediate",
            ArgCategory.INDEX: "index",
            ArgCategory.STRING: "string",
            ArgCategory.TRAPVECT: "trap vector",
        }[self]


# Which operand kinds each category accepts. MALFORMED appears nowhere.
CATEGORY_RULES: dict[ArgCategory, frozenset[ArgKind]] = {
    ArgCategory.ADDRESS: frozenset({ArgKind.IMMEDIATE, ArgKind.LITERAL, ArgKind.SYMBOL}),
    ArgCategory.REGISTER: frozenset({ArgKind.REGISTER}),
    ArgCategory.IMMEDIATE: frozenset({ArgKind.IMMEDIATE, ArgKind.SYMBOL}),
    ArgCategory.INDEX: frozenset({ArgKind.IMMEDIATE, ArgKind.SYMBOL}),
    ArgCategory.STRING: frozenset({ArgKind.STRING}),
    ArgCategory.TRAPVECT: frozenset({ArgKind.IMMEDIATE, ArgKind.SYMBOL}),
}


# =============================================================================
# Token Patterns
# =============================================================================

REGISTER_PATTERN = re.compile(r"^R[0-7]$")
HEX_PATTERN = re.compile(r"^x[0-9a-fA-F]{1,4}$")
DECIMAL_PATTERN = re.compile(r"^#-?[0-9]{1,5}$")
STRING_PATTERN = re.compile(r'^".*"$', re.DOTALL)
SYMBOL_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]{0,6}$")

# Bit width of an address field. Address fields are range-checked against
# the whole 16-bit space; the page check supplies the real restriction.
ADDRESS_WIDTH = 9


def classify(token: str) -> ArgKind:
    """
    Determine the kind of an operand token.

    Args:
        token: Raw operand text, e.g. "R1", "#-5", "=x10", "LOOP"

    Returns:
        The ArgKind of the token (MALFORMED if it fits no rule)
    """
    if not token:
        return ArgKind.MALFORMED

    lead = token[0]
    if lead == "R":
        return ArgKind.REGISTER if REGISTER_PATTERN.match(token) else ArgKind.MALFORMED
    if lead == "=":
        return ArgKind.LITERAL if classify(token[1:]) is ArgKind.IMMEDIATE else ArgKind.MALFORMED
    if lead == "x":
        return ArgKind.IMMEDIATE if HEX_PATTERN.match(token) else ArgKind.MALFORMED
    if lead == "#":
        return ArgKind.IMMEDIATE if DECIMAL_PATTERN.match(token) else ArgKind.MALFORMED
    if lead == '"':
        return ArgKind.STRING if len(token) >= 2 and STRING_PATTERN.match(token) else ArgKind.MALFORMED
    if SYMBOL_PATTERN.match(token):
        return ArgKind.SYMBOL
    return ArgKind.MALFORMED


def parse_immediate(token: str) -> int:
    """
    Convert an immediate (or a literal's inner immediate) to an integer.

    The base comes from the leading character: 'x' is hexadecimal, '#' is
    signed decimal. A leading '=' is skipped.

    Args:
        token: A token classified as IMMEDIATE or LITERAL

    Returns:
        The signed integer value

    Raises:
        ValueError: If the token is not an immediate or literal
    """
    if token.startswith("="):
        token = token[1:]
    if classify(token) is not ArgKind.IMMEDIATE:
        raise ValueError(f"not an immediate: {token!r}")
    if token[0] == "x":
        return int(token[1:], 16)
    return int(token[1:])


def category_allows(category: ArgCategory, kind: ArgKind) -> bool:
    """Return True if a slot of `category` accepts an operand of `kind`."""
    return kind in CATEGORY_RULES[category]


def out_of_bounds(value: int, width: int, base: Optional[str]) -> bool:
    """
    Check a value against the range of a `width`-bit field.

    Address (9-bit) fields accept the full unsigned 16-bit range. Other
    fields accept [0, 2^(width-1) - 1], shifted down by 2^(width-2) when the
    operand was written in decimal ('#'), giving a signed range.

    Args:
        value: Resolved operand value
        width: Field width in bits
        base: Leading character of the operand's immediate ('x' or '#'),
              or None for symbols

    Returns:
        True if the value does not fit
    """
    if width == ADDRESS_WIDTH:
        low, high = 0, 0xFFFF
    else:
        shift = width - 1
        low, high = 0, (1 << shift) - 1
        if base == "#":
            offset = 1 << (shift - 1)
            low -= offset
            high -= offset
    return not (low <= value <= high)


# =============================================================================
# Classified Operand
# =============================================================================

@dataclass(frozen=True)
class Operand:
    """
    An operand token together with its classification.

    Attributes:
        text: The operand exactly as written
        kind: Its ArgKind
        value: Register number, immediate value or literal value;
               None for symbols, strings and malformed tokens
        base: 'x' or '#' for immediates and literals, else None
    """
    text: str
    kind: ArgKind
    value: Optional[int] = None
    base: Optional[str] = None

    @classmethod
    def parse(cls, token: str) -> "Operand":
        """Classify `token` and pre-compute its numeric value."""
        kind = classify(token)
        value = None
        base = None
        if kind is ArgKind.REGISTER:
            value = int(token[1])
        elif kind is ArgKind.IMMEDIATE:
            value = parse_immediate(token)
            base = token[0]
        elif kind is ArgKind.LITERAL:
            value = parse_immediate(token)
            base = token[1]
        return cls(token, kind, value, base)

    @property
    def string_body(self) -> str:
        """Characters between the quotes of a STRING operand."""
        if self.kind is not ArgKind.STRING:
            raise ValueError(f"not a string operand: {self.text!r}")
        return self.text[1:-1]

    def __str__(self) -> str:
        return self.text
