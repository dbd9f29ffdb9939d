"""
LC-3 Assembler - Configuration
==============================

Resource limits for one assembly run. Configuration can come from:
- Default values (defined here)
- Command-line options (lc3asm -M/-s/-L)
- Environment variables

The limits are soft: when the symbol table or literal pool is full the
offending entry is dropped with a warning, and when the record ceiling is
reached parsing stops with a warning as if .END had been seen.
"""

from dataclasses import dataclass
import logging
import os

logger = logging.getLogger(__name__)


@dataclass
class AssemblerConfig:
    """
    Limits supplied to the parser.

    Attributes:
        max_symbols: Symbol table capacity (default: 100)
        max_literals: Literal pool capacity (default: 50)
        max_records: Records parsed before stopping (default: 2000)
    """

    max_symbols: int = 100
    max_literals: int = 50
    max_records: int = 2000

    @classmethod
    def from_env(cls) -> "AssemblerConfig":
        """
        Create AssemblerConfig from environment variables.

        Environment variables (all optional):
            LC3ASM_MAX_SYMBOLS: Symbol table capacity
            LC3ASM_MAX_LITERALS: Literal pool capacity
            LC3ASM_MAX_RECORDS: Record ceiling

        Returns:
            AssemblerConfig with values from environment variables
        """
        config = cls()

        for attr, var in (
            ("max_symbols", "LC3ASM_MAX_SYMBOLS"),
            ("max_literals", "LC3ASM_MAX_LITERALS"),
            ("max_records", "LC3ASM_MAX_RECORDS"),
        ):
            if raw := os.environ.get(var):
                try:
                    setattr(config, attr, int(raw))
                except ValueError:
                    logger.warning(f"ignoring non-integer {var}={raw!r}")

        return config

    def validate(self) -> "AssemblerConfig":
        """
        Check that every limit is positive.

        Returns:
            self, for chaining

        Raises:
            ValueError: If a limit is zero or negative
        """
        for name in ("max_symbols", "max_literals", "max_records"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        return self
