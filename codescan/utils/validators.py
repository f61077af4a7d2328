"""
==============================================================================
Validation Utilities Module
==============================================================================

Validation classes for decoded text and uploads.

This module implements:
- BarcodeValidator: Normalizes and validates linear barcode candidates
- UploadTypeValidator: Checks uploaded image MIME types

Validation Rules for Barcodes:
-----------------------------
- Normalized first: surrounding whitespace trimmed, upper-cased
- Length: 1-50 characters (configurable upper bound)
- Allowed: letters, digits, whitespace and the symbols
  - _ / . " * : ; , ' ( ) [ ] { } @ # $ % & + = ! ? | \\ ^ ~ < >

QR payloads are free-form and are never validated.

==============================================================================
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Tuple


class BarcodeValidator:
    """
    Validator for linear barcode candidates.

    Example:
        >>> validator = BarcodeValidator()
        >>> is_valid, normalized, error = validator.validate("  abc-123 ")
        >>> print(normalized)
        'ABC-123'
    """

    CHARSET = r"A-Z0-9\-_/.\s\"*:;,'()\[\]{}@#$%&+=!?|\\^~<>"

    MIN_LENGTH = 1
    MAX_LENGTH = 50

    def __init__(self, max_length: int = MAX_LENGTH) -> None:
        self._max_length = max_length
        self._pattern = re.compile(
            rf"^[{self.CHARSET}]{{{self.MIN_LENGTH},{max_length}}}$"
        )

    @staticmethod
    def normalize(text: str) -> str:
        """Trim and upper-case a raw candidate."""
        return text.strip().upper()

    def validate(self, text: Optional[str]) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Normalize and validate a barcode candidate.

        Args:
            text: Raw decoded text

        Returns:
            Tuple of (is_valid, normalized_text, error_message)
            - If valid: (True, "ABC-123", None)
            - If invalid: (False, None, "Error description")
        """
        if text is None:
            return False, None, "Barcode is required"

        normalized = self.normalize(text)

        if not normalized:
            return False, None, "Barcode cannot be empty"

        if len(normalized) > self._max_length:
            return False, None, f"Barcode must be at most {self._max_length} characters"

        if not self._pattern.match(normalized):
            return False, None, "Barcode contains unsupported characters"

        return True, normalized, None

    def is_valid(self, text: Optional[str]) -> bool:
        """Quick validation check."""
        is_valid, _, _ = self.validate(text)
        return is_valid


class UploadTypeValidator:
    """
    Validator for uploaded image MIME types.
    """

    DEFAULT_TYPES = ("image/png", "image/jpeg", "image/webp")

    def __init__(self, allowed: Iterable[str] = DEFAULT_TYPES) -> None:
        self._allowed = {t.lower() for t in allowed}

    def validate(self, content_type: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate a MIME type.

        Parameters such as ``; charset=`` are ignored.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not content_type:
            return False, "Content type is required"

        base = content_type.split(";", 1)[0].strip().lower()

        if base not in self._allowed:
            return False, f"Unsupported file type: {base}"

        return True, None

    def is_valid(self, content_type: Optional[str]) -> bool:
        """Quick validation check."""
        is_valid, _ = self.validate(content_type)
        return is_valid
