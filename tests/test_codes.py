import hashlib
import re

from codes import ALPHABET, generate_code, generate_codes, hash_code, normalize_code

CODE_PATTERN = re.compile(r"^[A-HJ-NP-Z2-9]{4}-[A-HJ-NP-Z2-9]{4}-[A-HJ-NP-Z2-9]{4}-[A-HJ-NP-Z2-9]{4}$")


def test_alphabet_has_no_lookalikes():
    for ch in "01OI":
        assert ch not in ALPHABET
    assert len(ALPHABET) == 32


def test_generate_code_format():
    for _ in range(200):
        assert CODE_PATTERN.match(generate_code())


def test_generate_codes_count():
    codes = generate_codes(25)
    assert len(codes) == 25
    assert all(CODE_PATTERN.match(c) for c in codes)


def test_normalize_strips_separators_and_uppercases():
    assert normalize_code(" abcd-efgh ijkl\tmnop ") == "ABCDEFGHIJKLMNOP"


def test_hash_is_insensitive_to_formatting():
    expected = hash_code("ABCD-EFGH-IJKL-MNOP")
    assert hash_code("abcdefghijklmnop") == expected
    assert hash_code("ABCD EFGH IJKL MNOP") == expected
    assert hash_code("abcd-EFGH ijkl-mnop") == expected


def test_hash_is_sha256_hex_of_normalized_code():
    digest = hash_code("abcd-efgh-ijkl-mnop")
    assert re.fullmatch(r"[0-9a-f]{64}", digest)
    assert digest == hashlib.sha256(b"ABCDEFGHIJKLMNOP").hexdigest()


def test_different_codes_hash_differently():
    assert hash_code("AAAA-AAAA-AAAA-AAAA") != hash_code("AAAA-AAAA-AAAA-AAAB")
