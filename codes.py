"""
Recharge code generation

Codes are 16 characters from an alphabet without the look-alike characters
0, 1, O and I, shown as XXXX-XXXX-XXXX-XXXX. Only the SHA-256 of the
normalized code is ever stored; redemption must hash the entered code the
same way before comparing.
"""

import re
import secrets
from hashlib import sha256
from typing import List

ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 16
GROUP_SIZE = 4

_SEPARATORS = re.compile(r"[-\s]")


def generate_code() -> str:
    raw = "".join(secrets.choice(ALPHABET) for _ in range(CODE_LENGTH))
    return "-".join(raw[i:i + GROUP_SIZE] for i in range(0, CODE_LENGTH, GROUP_SIZE))


def generate_codes(count: int) -> List[str]:
    # No uniqueness check against stored hashes
    return [generate_code() for _ in range(count)]


def normalize_code(code: str) -> str:
    return _SEPARATORS.sub("", code).upper()


def hash_code(code: str) -> str:
    return sha256(normalize_code(code).encode()).hexdigest()
