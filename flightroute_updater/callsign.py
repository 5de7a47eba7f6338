"""
Flightroute Updater - 識別子の検証と分類

責務:
  - Mode S / Nナンバー / コールサイン の書式検証
  - コールサインを ICAO形式 / IATA形式 / その他 に分類

分類は入力文字列だけで決まる純粋関数であり、DBや外部状態には触れない。
"""
from errors import ConversionError, IdentityKind, ValidationError
from models import Callsign, RegistrationNumber, TransponderCode
from n_number import ALLCHARS, registration_to_transponder

_HEX_CHARS = frozenset("0123456789ABCDEF")
_LETTERS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
_CALLSIGN_CHARS = _LETTERS | frozenset("0123456789")

CALLSIGN_MIN_LENGTH = 4
CALLSIGN_MAX_LENGTH = 8
REGISTRATION_MIN_LENGTH = 2
REGISTRATION_MAX_LENGTH = 6
TRANSPONDER_LENGTH = 6


def _is_callsign_char(c: str) -> bool:
    return c in _CALLSIGN_CHARS


def classify_transponder(raw: str) -> TransponderCode:
    """6桁の16進数（大文字小文字を問わない）のみ受け付ける"""
    value = raw.upper()
    if len(value) == TRANSPONDER_LENGTH and all(c in _HEX_CHARS for c in value):
        return TransponderCode(value)
    raise ValidationError(IdentityKind.TRANSPONDER, value)


def classify_registration(raw: str) -> RegistrationNumber:
    """
    N + 英数字(I/O除く)、全体で2〜6文字のみ受け付ける。
    桁の並び順など変換可能かどうかは n_number 側で判定する。
    """
    value = raw.upper()
    if (
        value.startswith("N")
        and REGISTRATION_MIN_LENGTH <= len(value) <= REGISTRATION_MAX_LENGTH
        and all(c in ALLCHARS for c in value)
    ):
        return RegistrationNumber(value)
    raise ValidationError(IdentityKind.REGISTRATION, value)


def _is_n_number(value: str) -> bool:
    """Nナンバーとして書式が正しく、かつMode Sに変換できるか"""
    try:
        registration = classify_registration(value)
        registration_to_transponder(registration)
    except (ValidationError, ConversionError):
        return False
    return True


def classify_callsign(raw: str) -> Callsign:
    """
    コールサインを検証し、形式ごとに分類する。

    判定順:
      1. 先頭3文字がすべて英字 → ICAO形式（最優先）
      2. 先頭2文字が英数字 → IATA形式。
         ただし入力全体が変換可能なNナンバーであれば、航空会社コードではなく
         機体登録記号とみなして その他 に分類する。
      3. それ以外 → その他
    """
    value = raw.upper()
    if not (
        CALLSIGN_MIN_LENGTH <= len(value) <= CALLSIGN_MAX_LENGTH
        and all(_is_callsign_char(c) for c in value)
    ):
        raise ValidationError(IdentityKind.CALLSIGN, value)

    icao_prefix, icao_suffix = value[:3], value[3:]
    iata_prefix, iata_suffix = value[:2], value[2:]

    if all(c in _LETTERS for c in icao_prefix):
        return Callsign.icao(icao_prefix, icao_suffix)

    if all(_is_callsign_char(c) for c in iata_prefix):
        # N123AB などは IATA形式 "N1" + "23AB" とも読めてしまう
        if _is_n_number(value):
            return Callsign.other(value)
        return Callsign.iata(iata_prefix, iata_suffix)

    return Callsign.other(value)
