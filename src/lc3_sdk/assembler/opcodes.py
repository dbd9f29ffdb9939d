"""
LC-3 Instruction and Pseudo-Op Descriptor Tables
================================================

This module defines the instruction set of the target machine: for every
machine mnemonic its 16-bit template and the format of each operand slot,
and for every assembler directive its arity and accepted operand kinds.

Templating
----------
A template has every statically known bit set. Operands are merged in by
masking them to the slot width, shifting them to the slot position and
OR-ing them into the template:

    ADD   template 0001 0000 0000 0000
          slots    ---- 1112 2233 3333

    BRNZ  template 0000 1100 0000 0000
          slots    ---- ---1 1111 1111

ADD and AND are irregular: their third slot is one 6-bit
REGISTER|IMMEDIATE field. Bit 5 says whether bits 4-0 hold a register
number or a 5-bit immediate, and the code generator sets it explicitly.

Relocation
----------
The 9-bit page-offset address fields (branches, JMP, JSR and the
PC-relative loads and stores) are the ones marked `allows_relative`; a
relocatable symbol there is tagged M1. Index, immediate and trap-vector
fields still take relocatable symbols, tagged M0.

The tables are built once at import time and never mutated.
"""

from dataclasses import dataclass
from typing import Optional

from lc3_sdk.assembler.operands import ArgCategory, ArgKind, category_allows


# Maximum number of operands on any record.
MAX_ARGS = 3

# Bit position of the register/immediate discriminator in ADD and AND.
IMMEDIATE_FLAG_BIT = 5

# Mnemonics whose final slot carries the discriminator.
IMMEDIATE_FLAG_OPS = frozenset({"ADD", "AND"})

# Width of a .FILL data word.
DATA_WIDTH = 16


# =============================================================================
# Descriptor Types
# =============================================================================

@dataclass(frozen=True)
class SlotFormat:
    """
    Format of one operand slot in a machine instruction.

    Attributes:
        position: Bit index of the slot's least significant bit
        width: Slot width in bits
        categories: Operand categories the slot accepts
        allows_relative: True for address fields the linker relocates as a
            whole page offset (M1)
    """
    position: int
    width: int
    categories: frozenset[ArgCategory]
    allows_relative: bool = False

    def allows(self, kind: ArgKind) -> bool:
        """Return True if an operand of `kind` is legal in this slot."""
        return any(category_allows(category, kind) for category in self.categories)

    @property
    def mask(self) -> int:
        return (1 << self.width) - 1


@dataclass(frozen=True)
class MachineOp:
    """
    Descriptor of one machine instruction.

    Attributes:
        mnemonic: Upper-case mnemonic
        template: 16-bit encoding with the fixed bits set
        slots: Operand slot formats, in operand order
    """
    mnemonic: str
    template: int
    slots: tuple[SlotFormat, ...] = ()

    def __repr__(self) -> str:
        return f"MachineOp({self.mnemonic}, template=x{self.template:04X}, args={len(self.slots)})"

    @property
    def allows_relative(self) -> bool:
        return bool(self.slots) and self.slots[-1].allows_relative


@dataclass(frozen=True)
class PseudoOp:
    """
    Descriptor of one assembler directive.

    Attributes:
        mnemonic: Directive name including the leading '.'
        min_args: Fewest operands accepted
        max_args: Most operands accepted
        kinds: Operand kinds accepted in every position
        allows_relative: True if the operand may be a relocatable symbol
        consumes_storage: True if the directive can advance the location counter
    """
    mnemonic: str
    min_args: int
    max_args: int
    kinds: frozenset[ArgKind]
    allows_relative: bool = False
    consumes_storage: bool = False

    def allows(self, kind: ArgKind) -> bool:
        return kind in self.kinds


def _reg(position: int) -> SlotFormat:
    return SlotFormat(position, 3, frozenset({ArgCategory.REGISTER}))


def _addr() -> SlotFormat:
    return SlotFormat(0, 9, frozenset({ArgCategory.ADDRESS}), allows_relative=True)


def _index() -> SlotFormat:
    return SlotFormat(0, 6, frozenset({ArgCategory.INDEX}))


def _reg_or_imm() -> SlotFormat:
    return SlotFormat(0, 6, frozenset({ArgCategory.REGISTER, ArgCategory.IMMEDIATE}))


# =============================================================================
# Machine Operation Table
# =============================================================================
# Layout comments: dashes are fixed bits, digit N marks the Nth operand.
# =============================================================================

MACHINE_OPS: dict[str, MachineOp] = {
    op.mnemonic: op
    for op in (
        # 0001 ---- ---- ----   ---- 1112 2233 3333
        MachineOp("ADD", 0x1000, (_reg(9), _reg(6), _reg_or_imm())),
        # 0101 ---- ---- ----   ---- 1112 2233 3333
        MachineOp("AND", 0x5000, (_reg(9), _reg(6), _reg_or_imm())),

        # Conditional branches: 0000 nzp1 1111 1111
        MachineOp("BRN", 0x0800, (_addr(),)),
        MachineOp("BRZ", 0x0400, (_addr(),)),
        MachineOp("BRP", 0x0200, (_addr(),)),
        MachineOp("BRNZ", 0x0C00, (_addr(),)),
        MachineOp("BRNP", 0x0A00, (_addr(),)),
        MachineOp("BRZP", 0x0600, (_addr(),)),
        MachineOp("BRNZP", 0x0E00, (_addr(),)),

        # 1000 0000 0000 0000
        MachineOp("DBUG", 0x8000),

        # 0100 0--1 1111 1111 (JMP) / 0100 1--1 1111 1111 (JSR)
        MachineOp("JMP", 0x4000, (_addr(),)),
        MachineOp("JSR", 0x4800, (_addr(),)),

        # 1100 0--1 1122 2222 (JMPR) / 1100 1--1 1122 2222 (JSRR)
        MachineOp("JMPR", 0xC000, (_reg(6), _index())),
        MachineOp("JSRR", 0xC800, (_reg(6), _index())),

        # PC-page loads and stores: ---- 1112 2222 2222
        MachineOp("LD", 0x2000, (_reg(9), _addr())),
        MachineOp("LDI", 0xA000, (_reg(9), _addr())),
        MachineOp("LEA", 0xE000, (_reg(9), _addr())),
        MachineOp("ST", 0x3000, (_reg(9), _addr())),
        MachineOp("STI", 0xB000, (_reg(9), _addr())),

        # Base+index loads and stores: ---- 1112 2233 3333
        MachineOp("LDR", 0x6000, (_reg(9), _reg(6), _index())),
        MachineOp("STR", 0x7000, (_reg(9), _reg(6), _index())),

        # 1001 1112 22-- ----
        MachineOp("NOT", 0x9000, (_reg(9), _reg(6))),

        # 1101 0000 0000 0000
        MachineOp("RET", 0xD000),

        # 1111 ---- 1111 1111
        MachineOp("TRAP", 0xF000, (SlotFormat(0, 8, frozenset({ArgCategory.TRAPVECT})),)),
    )
}


# =============================================================================
# Pseudo-Operation Table
# =============================================================================

_VALUE_KINDS = frozenset({ArgKind.IMMEDIATE, ArgKind.SYMBOL})

PSEUDO_OPS: dict[str, PseudoOp] = {
    op.mnemonic: op
    for op in (
        PseudoOp(".ORIG", 0, 1, frozenset({ArgKind.IMMEDIATE})),
        PseudoOp(".END", 0, 1, _VALUE_KINDS, allows_relative=True),
        PseudoOp(".EQU", 1, 1, _VALUE_KINDS, allows_relative=True),
        PseudoOp(".FILL", 1, 1, _VALUE_KINDS, allows_relative=True, consumes_storage=True),
        PseudoOp(".STRZ", 1, 1, frozenset({ArgKind.STRING}), consumes_storage=True),
        PseudoOp(".BLKW", 1, 1, _VALUE_KINDS, consumes_storage=True),
        PseudoOp(".ENT", 1, MAX_ARGS, frozenset({ArgKind.SYMBOL})),
        PseudoOp(".EXT", 1, MAX_ARGS, frozenset({ArgKind.SYMBOL})),
    )
}

# Slot used for the single .FILL operand when computing relocations.
FILL_SLOT = SlotFormat(0, DATA_WIDTH, frozenset({ArgCategory.ADDRESS}), allows_relative=True)


# =============================================================================
# Lookup Functions
# =============================================================================

def is_machine_op(name: str) -> bool:
    return name in MACHINE_OPS


def is_pseudo_op(name: str) -> bool:
    return name in PSEUDO_OPS


def has_op(name: str) -> bool:
    """Return True if `name` is a machine op or a directive."""
    return name in MACHINE_OPS or name in PSEUDO_OPS


def get_machine_op(name: str) -> Optional[MachineOp]:
    return MACHINE_OPS.get(name)


def get_pseudo_op(name: str) -> Optional[PseudoOp]:
    return PSEUDO_OPS.get(name)


def arg_count(name: str) -> int:
    """
    Number of operands a machine op takes, or the most a directive takes.

    Raises:
        KeyError: If `name` is not in either table
    """
    if name in MACHINE_OPS:
        return len(MACHINE_OPS[name].slots)
    return PSEUDO_OPS[name].max_args


def arg_range(name: str) -> tuple[int, int]:
    """
    Return (fewest, most) operands accepted by `name`.

    Raises:
        KeyError: If `name` is not in either table
    """
    if name in MACHINE_OPS:
        count = len(MACHINE_OPS[name].slots)
        return count, count
    op = PSEUDO_OPS[name]
    return op.min_args, op.max_args


def slot_format(name: str, index: int) -> SlotFormat:
    """
    Return the format of operand `index` of machine op `name`.

    Raises:
        KeyError: If `name` is not a machine op
        IndexError: If the op has no such slot
    """
    return MACHINE_OPS[name].slots[index]


def template(name: str) -> int:
    """
    Return the 16-bit template of machine op `name`.

    Raises:
        KeyError: If `name` is not a machine op
    """
    return MACHINE_OPS[name].template


def allows_relative(name: str) -> bool:
    """
    Return True if the final operand of `name` may be a relocatable symbol.

    Raises:
        KeyError: If `name` is not in either table
    """
    if name in MACHINE_OPS:
        return MACHINE_OPS[name].allows_relative
    return PSEUDO_OPS[name].allows_relative
