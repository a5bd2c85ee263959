"""Share code generation."""

import secrets
import string

CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_CODE_LENGTH = 6


class CodeGenerator:
    """Random fixed-length codes over A-Z0-9. Uniqueness is the registry's job."""

    def __init__(self, length: int = DEFAULT_CODE_LENGTH, alphabet: str = CODE_ALPHABET):
        if length < 1:
            raise ValueError("Code length must be positive")
        self.length = length
        self.alphabet = alphabet

    def generate(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))


def normalize_code(code: str) -> str:
    """Codes are case-insensitive; the canonical form is upper case."""
    return code.strip().upper()
