import secrets
import string

ROOM_CODE_LENGTH = 4
PERSONAL_ID_LENGTH = 12
PERSONAL_SECRET_LENGTH = 36

# Base-31 digits, remapped so codes never spell anything or contain 0/1/l
_BASE31_DIGITS = string.digits + "abcdefghijklmnopqrstu"
_ROOM_CODE_REMAP = str.maketrans({
    "a": "v",
    "e": "w",
    "i": "x",
    "o": "y",
    "u": "z",
    "0": "k",
    "1": "m",
    "l": "q",
})

_BASE36_DIGITS = string.digits + string.ascii_lowercase


def generate_room_code() -> str:
    """Random 4-character room code, uppercase, no vowels and no 0, 1 or l.

    Not unique on its own: callers retry until the code is unused.
    """
    value = secrets.randbelow(len(_BASE31_DIGITS) ** ROOM_CODE_LENGTH)
    digits = []
    for _ in range(ROOM_CODE_LENGTH):
        value, remainder = divmod(value, len(_BASE31_DIGITS))
        digits.append(_BASE31_DIGITS[remainder])
    return "".join(reversed(digits)).translate(_ROOM_CODE_REMAP).upper()


def _generate_base36(length: int) -> str:
    return "".join(secrets.choice(_BASE36_DIGITS) for _ in range(length))


def generate_personal_id() -> str:
    return _generate_base36(PERSONAL_ID_LENGTH)


def generate_personal_secret() -> str:
    return _generate_base36(PERSONAL_SECRET_LENGTH)
