"""Tests for room codes and personal ids/secrets."""

import string

from id_codes import (
    PERSONAL_ID_LENGTH,
    PERSONAL_SECRET_LENGTH,
    ROOM_CODE_LENGTH,
    generate_personal_id,
    generate_personal_secret,
    generate_room_code,
)

FORBIDDEN_ROOM_CODE_CHARACTERS = set("AEIOU01L")
BASE36 = set(string.digits + string.ascii_lowercase)


def test_room_codes_avoid_vowels_and_confusable_characters():
    for _ in range(5000):
        code = generate_room_code()
        assert len(code) == ROOM_CODE_LENGTH
        assert code == code.upper()
        assert not FORBIDDEN_ROOM_CODE_CHARACTERS & set(code), code
        assert "l" not in code


def test_room_codes_vary():
    codes = {generate_room_code() for _ in range(200)}
    assert len(codes) > 150


def test_personal_id_is_fixed_length_base36():
    personal_id = generate_personal_id()
    assert len(personal_id) == PERSONAL_ID_LENGTH == 12
    assert set(personal_id) <= BASE36


def test_personal_secret_is_fixed_length_base36():
    secret = generate_personal_secret()
    assert len(secret) == PERSONAL_SECRET_LENGTH == 36
    assert set(secret) <= BASE36


def test_secrets_are_not_repeated():
    secrets = {generate_personal_secret() for _ in range(1000)}
    assert len(secrets) == 1000
