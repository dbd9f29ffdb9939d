# =============================================================================
# test_parser.py - Parser (First Pass) Tests
# =============================================================================
# Tests for line splitting and the first pass of the LC-3 assembler.
#
# Test coverage includes:
#   - Fixed-column line grammar, comments, .STRZ strings
#   - Location counter for every directive
#   - Symbol, literal, entry and external collection
#   - Segment structure: .ORIG, .END, relocatable segments
#   - Operand count/kind validation
#   - Resource-limit warnings and the record ceiling
# =============================================================================

import pytest

from lc3_sdk.assembler.operands import ArgKind
from lc3_sdk.assembler.parser import Parser, is_comment, parse_source, split_line
from lc3_sdk.config import AssemblerConfig
from lc3_sdk.errors import (
    AssemblerError,
    AssemblySyntaxError,
    DirectiveError,
    DuplicateSymbolError,
    ErrorCode,
    ErrorReporter,
    OperandError,
    OperandRangeError,
    SegmentError,
    UndefinedSymbolError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def rec(label: str = "", opcode: str = "", operands: str = "") -> str:
    """Build one source line with the label, opcode and operands in their columns."""
    return f"{label:<6}   {opcode:<5}   {operands}".rstrip()


def source(*lines: str) -> str:
    return "\n".join(lines) + "\n"


def segment(*body: str, orig: str = "x3000", end: str = "") -> str:
    """Wrap body lines in a TEST segment."""
    return source(rec("TEST", ".ORIG", orig), *body, rec("", ".END", end))


# =============================================================================
# Line Splitting Tests
# =============================================================================

class TestSplitLine:
    """The fixed-column line grammar."""

    def test_label_opcode_operands(self):
        parsed = split_line(rec("LOOP", "ADD", "R1,R1,#-1"), 4)
        assert parsed.line_number == 4
        assert parsed.label == "LOOP"
        assert parsed.opcode == "ADD"
        assert [op.text for op in parsed.operands] == ["R1", "R1", "#-1"]
        assert [op.kind for op in parsed.operands] == [
            ArgKind.REGISTER, ArgKind.REGISTER, ArgKind.IMMEDIATE,
        ]

    def test_no_label_no_operands(self):
        parsed = split_line(rec("", "RET"), 1)
        assert parsed.label is None
        assert parsed.opcode == "RET"
        assert parsed.operands == ()

    def test_trailing_comment(self):
        parsed = split_line(rec("", "LD", "R0,DATA ; load it"), 1)
        assert [op.text for op in parsed.operands] == ["R0", "DATA"]

    def test_comment_directly_after_operands(self):
        parsed = split_line(rec("", "BRP", "LOOP;again"), 1)
        assert [op.text for op in parsed.operands] == ["LOOP"]

    def test_comment_lines(self):
        assert is_comment("; a comment")
        assert is_comment(";")
        assert not is_comment(" ; indented")

    def test_strz_keeps_blanks_and_punctuation(self):
        parsed = split_line(rec("MSG", ".STRZ", '"Done; a, b"  ; trailing'), 1)
        (operand,) = parsed.operands
        assert operand.kind is ArgKind.STRING
        assert operand.string_body == "Done; a, b"

    def test_strz_ends_at_first_closing_quote(self):
        with pytest.raises(AssemblySyntaxError) as exc_info:
            split_line(rec("", ".STRZ", '"ab"cd"'), 3)
        assert exc_info.value.code == ErrorCode.MALFORMED_OPERAND

    def test_unterminated_string(self):
        with pytest.raises(AssemblySyntaxError) as exc_info:
            split_line(rec("", ".STRZ", '"never closed'), 3)
        assert exc_info.value.code == ErrorCode.UNTERMINATED_STRING
        assert exc_info.value.line == 3

    @pytest.mark.parametrize("label", ["R1", "xval", "1abc", "LOOP_1", "Rx"])
    def test_invalid_labels(self, label):
        with pytest.raises(AssemblySyntaxError) as exc_info:
            split_line(rec(label, "RET"), 1)
        assert exc_info.value.code == ErrorCode.INVALID_LABEL

    def test_label_may_start_with_other_letters(self):
        assert split_line(rec("yes", "RET"), 1).label == "yes"
        assert split_line(rec("Xray", "RET"), 1).label == "Xray"

    @pytest.mark.parametrize("line", [
        "",
        "      ",
        "LOOP ADD R1,R1,R1",            # opcode not in column 10
        "         ADD R1,R1,R1",        # operands not in column 18
        "           ADD     R1,R1,R1",  # opcode starts in column 11
        "LOOP    XADD     R1",          # text in the label gap
    ])
    def test_malformed_records(self, line):
        with pytest.raises(AssemblySyntaxError) as exc_info:
            split_line(line, 1)
        assert exc_info.value.code == ErrorCode.MALFORMED_RECORD

    def test_too_many_operands(self):
        with pytest.raises(AssemblySyntaxError) as exc_info:
            split_line(rec("", "ADD", "R1,R2,R3,R4"), 1)
        assert exc_info.value.code == ErrorCode.TOO_MANY_OPERANDS

    @pytest.mark.parametrize("operands", ["R1,,R2", "R1,R8", "R1,", "=LOOP"])
    def test_malformed_operands(self, operands):
        with pytest.raises(AssemblySyntaxError) as exc_info:
            split_line(rec("", "ADD", operands), 1)
        assert exc_info.value.code == ErrorCode.MALFORMED_OPERAND


# =============================================================================
# Location Counter Tests
# =============================================================================

class TestLocations:
    """Addresses assigned to records and labels."""

    def test_machine_ops_take_one_word(self):
        program = parse_source(segment(
            rec("A", "ADD", "R1,R1,R1"),
            rec("B", "RET"),
        ))
        assert program.symbol_value("A") == 0x3000
        assert program.symbol_value("B") == 0x3001
        assert program.length == 2

    def test_strz_takes_length_plus_one(self):
        program = parse_source(segment(
            rec("MSG", ".STRZ", '"Hi"'),
            rec("NEXT", "RET"),
        ))
        assert program.symbol_value("NEXT") == 0x3003

    def test_empty_string_takes_one_word(self):
        program = parse_source(segment(
            rec("MSG", ".STRZ", '""'),
            rec("NEXT", "RET"),
        ))
        assert program.symbol_value("NEXT") == 0x3001

    def test_blkw_immediate(self):
        program = parse_source(segment(
            rec("BUF", ".BLKW", "#10"),
            rec("NEXT", ".FILL", "x0"),
        ))
        assert program.symbol_value("BUF") == 0x3000
        assert program.symbol_value("NEXT") == 0x300A
        assert program.length == 11

    def test_blkw_absolute_symbol(self):
        program = parse_source(segment(
            rec("SIZE", ".EQU", "#4"),
            rec("BUF", ".BLKW", "SIZE"),
            rec("NEXT", "RET"),
        ))
        assert program.symbol_value("NEXT") == 0x3004

    def test_non_storage_records_have_no_location(self):
        program = parse_source(segment(
            rec("", ".EXT", "PUTS"),
            rec("", "RET"),
        ))
        locations = [(r.opcode, r.location) for r in program]
        assert locations == [(".ORIG", None), (".EXT", None), ("RET", 0x3000), (".END", None)]

    def test_segment_overflow(self):
        with pytest.raises(SegmentError) as exc_info:
            parse_source(segment(
                rec("", "RET"),
                rec("", "RET"),
                orig="xFFFE",
            ))
        assert exc_info.value.code == ErrorCode.SEGMENT_OVERFLOW
        assert exc_info.value.line == 3

    def test_word_at_top_of_memory_is_rejected(self):
        with pytest.raises(SegmentError) as exc_info:
            parse_source(segment(rec("TOP", "RET"), orig="xFFFF"))
        assert exc_info.value.code == ErrorCode.SEGMENT_OVERFLOW
        assert exc_info.value.line == 2

    def test_last_usable_word(self):
        program = parse_source(segment(rec("TOP", "RET"), orig="xFFFE"))
        assert program.symbol_value("TOP") == 0xFFFE
        assert program.length == 1

    def test_literal_pool_reaching_top_of_memory(self):
        with pytest.raises(SegmentError) as exc_info:
            parse_source(segment(rec("", "LD", "R0,=#1"), orig="xFFFE"))
        assert exc_info.value.code == ErrorCode.SEGMENT_OVERFLOW


# =============================================================================
# Symbol and Directive Tests
# =============================================================================

class TestDirectives:
    """.ORIG, .EQU, .ENT, .EXT and .END handling."""

    def test_orig_sets_segment(self):
        program = parse_source(segment(rec("", "RET"), orig="x3000"))
        assert program.segment_name == "TEST"
        assert program.first_address == 0x3000
        assert not program.relocatable
        assert not program.has_symbol("TEST")

    def test_orig_without_operand_is_relocatable(self):
        program = parse_source(segment(rec("START", "RET"), orig=""))
        assert program.relocatable
        assert program.first_address == 0
        assert program.symbol_value("START") == 0
        assert program.is_relative("START")

    def test_orig_requires_label(self):
        with pytest.raises(DirectiveError):
            parse_source(source(rec("", ".ORIG", "x3000"), rec("", ".END")))

    def test_orig_decimal_out_of_range(self):
        with pytest.raises(DirectiveError) as exc_info:
            parse_source(segment(rec("", "RET"), orig="#70000"))
        assert exc_info.value.code == ErrorCode.OPERAND_OUT_OF_BOUNDS

    def test_equ_immediate(self):
        program = parse_source(segment(rec("TEN", ".EQU", "#10"), rec("", "RET")))
        assert program.symbol_value("TEN") == 10
        assert not program.is_relative("TEN")

    def test_equ_copies_symbol(self):
        program = parse_source(segment(
            rec("HERE", "RET"),
            rec("ALIAS", ".EQU", "HERE"),
            orig="",
        ))
        assert program.symbol_value("ALIAS") == 0
        assert program.is_relative("ALIAS")

    def test_equ_requires_label(self):
        with pytest.raises(DirectiveError):
            parse_source(segment(rec("", ".EQU", "#1")))

    def test_equ_forward_reference(self):
        with pytest.raises(UndefinedSymbolError):
            parse_source(segment(rec("A", ".EQU", "LATER"), rec("LATER", "RET")))

    def test_equ_external(self):
        with pytest.raises(DirectiveError):
            parse_source(segment(rec("", ".EXT", "PUTS"), rec("A", ".EQU", "PUTS")))

    def test_entries_and_externals(self):
        program = parse_source(segment(
            rec("", ".ENT", "MAIN,DATA"),
            rec("", ".EXT", "PUTS,GETC"),
            rec("MAIN", "RET"),
            rec("DATA", ".FILL", "#0"),
        ))
        assert program.entry_symbols == ["MAIN", "DATA"]
        assert program.external_symbols == ["PUTS", "GETC"]

    def test_entry_never_defined(self):
        with pytest.raises(UndefinedSymbolError):
            parse_source(segment(rec("", ".ENT", "MAIN"), rec("", "RET")))

    def test_end_default_exec_absolute(self):
        program = parse_source(segment(rec("", "RET")))
        assert program.exec_address == 0x3000

    def test_end_default_exec_relocatable(self):
        """A relocatable segment without an .END operand starts at the literal pool."""
        program = parse_source(segment(rec("", "LD", "R0,=#1"), orig=""))
        assert program.exec_address == 1
        assert program.literal_address(1) == 1

    def test_end_symbol(self):
        program = parse_source(segment(rec("", "RET"), rec("MAIN", "RET"), end="MAIN"))
        assert program.exec_address == 0x3001

    def test_end_immediate(self):
        program = parse_source(segment(rec("", "RET"), end="x3000"))
        assert program.exec_address == 0x3000

    def test_end_undefined_symbol(self):
        with pytest.raises(UndefinedSymbolError):
            parse_source(segment(rec("", "RET"), end="MAIN"))

    def test_end_before_segment(self):
        with pytest.raises(DirectiveError):
            parse_source(segment(rec("", "RET"), end="x2000"))

    def test_label_on_end(self):
        with pytest.raises(DirectiveError):
            parse_source(source(rec("TEST", ".ORIG", "x3000"), rec("DONE", ".END")))

    def test_lines_after_end_are_ignored(self):
        program = parse_source(segment(rec("", "RET")) + "this is not assembly\n")
        assert program.record_count() == 3

    def test_program_is_frozen(self):
        program = parse_source(segment(rec("", "RET")))
        assert program.frozen


# =============================================================================
# Literal Tests
# =============================================================================

class TestLiterals:
    """Literal collection and placement."""

    def test_literal_deduplication(self):
        program = parse_source(segment(
            rec("", "LD", "R0,=#25"),
            rec("", "LD", "R1,=#25"),
        ))
        assert program.literal_count() == 1
        assert program.literal_address(25) == 0x3002
        assert program.length == 3

    def test_pool_follows_code_in_order(self):
        program = parse_source(segment(
            rec("", "LD", "R0,=#7"),
            rec("", "LD", "R1,=x3"),
            rec("", "LD", "R2,=#7"),
        ))
        assert program.literals == [(7, 0x3003), (3, 0x3004)]

    def test_literal_outside_ld(self):
        with pytest.raises(OperandError) as exc_info:
            parse_source(segment(rec("", "LDI", "R0,=#1")))
        assert exc_info.value.code == ErrorCode.LITERAL_NOT_ALLOWED

    def test_literal_not_allowed_in_fill(self):
        with pytest.raises(OperandError) as exc_info:
            parse_source(segment(rec("", ".FILL", "=#1")))
        assert exc_info.value.code == ErrorCode.INVALID_OPERAND_KIND

    def test_literal_out_of_range(self):
        with pytest.raises(OperandRangeError):
            parse_source(segment(rec("", "LD", "R0,=#99999")))


# =============================================================================
# Structural Error Tests
# =============================================================================

class TestStructure:
    """Segment structure and operand validation errors."""

    def test_missing_orig(self):
        with pytest.raises(SegmentError) as exc_info:
            parse_source(source(rec("", "RET"), rec("", ".END")))
        assert exc_info.value.code == ErrorCode.MISSING_ORIG
        assert exc_info.value.line == 1

    def test_only_comments(self):
        with pytest.raises(SegmentError) as exc_info:
            parse_source(source("; nothing here"))
        assert exc_info.value.code == ErrorCode.MISSING_ORIG

    def test_extra_orig(self):
        with pytest.raises(SegmentError) as exc_info:
            parse_source(segment(rec("MORE", ".ORIG", "x4000")))
        assert exc_info.value.code == ErrorCode.EXTRA_ORIG

    def test_missing_end(self):
        with pytest.raises(SegmentError) as exc_info:
            parse_source(source(rec("TEST", ".ORIG", "x3000"), rec("", "RET")))
        assert exc_info.value.code == ErrorCode.MISSING_END

    def test_unknown_opcode(self):
        with pytest.raises(OperandError) as exc_info:
            parse_source(segment(rec("", "NOP")))
        assert exc_info.value.code == ErrorCode.UNKNOWN_OPCODE

    def test_lowercase_opcode_is_unknown(self):
        with pytest.raises(OperandError) as exc_info:
            parse_source(segment(rec("", "add", "R1,R1,R1")))
        assert exc_info.value.code == ErrorCode.UNKNOWN_OPCODE

    @pytest.mark.parametrize("opcode,operands", [
        ("ADD", "R1,R2"),
        ("RET", "R1"),
        ("BRP", ""),
        (".FILL", ""),
        (".ENT", ""),
    ])
    def test_wrong_operand_count(self, opcode, operands):
        with pytest.raises(OperandError) as exc_info:
            parse_source(segment(rec("", opcode, operands)))
        assert exc_info.value.code == ErrorCode.WRONG_OPERAND_COUNT

    @pytest.mark.parametrize("opcode,operands", [
        ("ADD", "R1,#1,R2"),
        ("NOT", "R1,LOOP"),
        ("LD", "LOOP,R1"),
        ("TRAP", "R0"),
        (".FILL", "R1"),
        (".STRZ", "LOOP"),
        (".ENT", "x3000"),
    ])
    def test_invalid_operand_kind(self, opcode, operands):
        with pytest.raises(OperandError) as exc_info:
            parse_source(segment(rec("", opcode, operands)))
        assert exc_info.value.code == ErrorCode.INVALID_OPERAND_KIND

    def test_duplicate_symbol(self):
        with pytest.raises(DuplicateSymbolError) as exc_info:
            parse_source(segment(
                rec("LOOP", "ADD", "R1,R1,#-1"),
                rec("LOOP", "BRP", "LOOP"),
            ))
        assert exc_info.value.code == ErrorCode.DUPLICATE_SYMBOL
        assert exc_info.value.line == 3
        assert exc_info.value.original_line == 2

    def test_blkw_forward_reference(self):
        with pytest.raises(DirectiveError):
            parse_source(segment(rec("", ".BLKW", "SIZE"), rec("SIZE", ".EQU", "#2")))

    def test_blkw_relocatable_symbol(self):
        with pytest.raises(DirectiveError):
            parse_source(segment(rec("HERE", "RET"), rec("", ".BLKW", "HERE"), orig=""))

    @pytest.mark.parametrize("size", ["#0", "#-3"])
    def test_blkw_must_be_positive(self, size):
        with pytest.raises(DirectiveError):
            parse_source(segment(rec("", ".BLKW", size)))

    def test_blkw_negative_symbol(self):
        with pytest.raises(DirectiveError) as exc_info:
            parse_source(segment(
                rec("NEG", ".EQU", "#-1"),
                rec("", ".BLKW", "NEG"),
                orig="x0000",
            ))
        assert exc_info.value.code == ErrorCode.INVALID_DIRECTIVE
        assert exc_info.value.line == 3

    def test_blkw_negative_symbol_through_equ(self):
        with pytest.raises(DirectiveError):
            parse_source(segment(
                rec("NEG", ".EQU", "#-2"),
                rec("ALIAS", ".EQU", "NEG"),
                rec("", ".BLKW", "ALIAS"),
                orig="x0000",
            ))

    def test_negative_equ_is_stored_as_a_word(self):
        program = parse_source(segment(rec("NEG", ".EQU", "#-1")))
        symbol = program.get_symbol("NEG")
        assert symbol.value == 0xFFFF
        assert symbol.signed_value == -1

    def test_read_failure_is_wrapped(self):
        def lines():
            yield rec("TEST", ".ORIG", "x3000")
            raise OSError("device went away")

        with pytest.raises(AssemblerError) as exc_info:
            Parser().parse(lines())
        assert exc_info.value.code == ErrorCode.IO_ERROR
        assert isinstance(exc_info.value.__cause__, OSError)


# =============================================================================
# Resource Limit Tests
# =============================================================================

class TestLimits:
    """Soft limits produce warnings, not errors."""

    def test_symbol_table_full(self):
        reporter = ErrorReporter()
        config = AssemblerConfig(max_symbols=1)
        program = Parser(config, reporter).parse(segment(
            rec("A", "RET"),
            rec("B", "RET"),
        ).splitlines())
        assert program.has_symbol("A")
        assert not program.has_symbol("B")
        assert [w.code for w in reporter.warnings] == [ErrorCode.SYMBOL_TABLE_FULL]
        assert reporter.warnings[0].line == 3

    def test_duplicate_checked_before_capacity(self):
        config = AssemblerConfig(max_symbols=1)
        with pytest.raises(DuplicateSymbolError):
            Parser(config).parse(segment(rec("A", "RET"), rec("A", "RET")).splitlines())

    def test_literal_pool_full(self):
        reporter = ErrorReporter()
        config = AssemblerConfig(max_literals=1)
        program = Parser(config, reporter).parse(segment(
            rec("", "LD", "R0,=#1"),
            rec("", "LD", "R0,=#1"),
            rec("", "LD", "R0,=#2"),
        ).splitlines())
        assert program.literals == [(1, 0x3003)]
        assert [w.code for w in reporter.warnings] == [ErrorCode.LITERAL_POOL_FULL]

    def test_record_ceiling(self):
        reporter = ErrorReporter()
        config = AssemblerConfig(max_records=3)
        program = Parser(config, reporter).parse(source(
            "; comments do not count",
            rec("TEST", ".ORIG", "x3000"),
            rec("", "RET"),
            rec("", "RET"),
            rec("", "RET"),
        ).splitlines())
        assert program.frozen
        assert program.record_count() == 3
        assert program.length == 2
        assert program.exec_address == 0x3000
        assert [w.code for w in reporter.warnings] == [ErrorCode.RECORD_LIMIT]
        assert reporter.warnings[0].line == 5
