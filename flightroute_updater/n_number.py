"""
Flightroute Updater - Nナンバー → Mode S 変換

米国の民間機(0xA00001-0xADF7C7)は、Nナンバーの各桁を順に
ブロック単位でオフセットとして積み上げることで24bitアドレスが決まる。

ブロックサイズ:
  - 1桁目 = 101711 (数字1つごとに 1 + 英字サフィックス600 + 10 * 2桁目ブロック)
  - 2桁目 = 10111
  - 3桁目 = 951
  - 4桁目 = 35     (末尾なし1 + 英字1文字24 + 数字10)
英字サフィックス(最大2文字, I/O除く)は各桁の直後、数字より先に並ぶ。
"""
from errors import ConversionError
from models import RegistrationNumber, TransponderCode

CHARSET = "ABCDEFGHJKLMNPQRSTUVWXYZ"   # I と O を除く
DIGITSET = "0123456789"
ALLCHARS = CHARSET + DIGITSET

# 英字サフィックスの総数: なし + 24 * (1文字 + 2文字目24通り)
SUFFIX_SIZE = 1 + len(CHARSET) * (1 + len(CHARSET))
BUCKET4_SIZE = 1 + len(CHARSET) + len(DIGITSET)
BUCKET3_SIZE = len(DIGITSET) * BUCKET4_SIZE + SUFFIX_SIZE
BUCKET2_SIZE = len(DIGITSET) * BUCKET3_SIZE + SUFFIX_SIZE
BUCKET1_SIZE = len(DIGITSET) * BUCKET2_SIZE + SUFFIX_SIZE

US_CIVIL_START = 0xA00001
US_CIVIL_END = 0xADF7C7

_MAX_TAIL_LENGTH = 5


def _suffix_offset(suffix: str) -> int:
    """英字サフィックス(1〜2文字)のブロック内オフセット"""
    if len(suffix) > 2 or any(c not in CHARSET for c in suffix):
        raise ConversionError(f"invalid letter suffix: {suffix!r}")
    count = (len(CHARSET) + 1) * CHARSET.index(suffix[0]) + 1
    if len(suffix) == 2:
        count += CHARSET.index(suffix[1]) + 1
    return count


def registration_to_transponder(registration: RegistrationNumber) -> TransponderCode:
    """
    NナンバーをMode Sコードに変換する。

    変換できない登録記号（先頭が0、英字の後に数字、3文字以上の英字など）は
    ConversionError を送出する。
    """
    tail = str(registration).upper()
    if not tail.startswith("N"):
        raise ConversionError(f"not an N-number: {tail!r}")
    tail = tail[1:]
    if not tail or len(tail) > _MAX_TAIL_LENGTH:
        raise ConversionError(f"invalid N-number length: N{tail!r}")
    if tail[0] not in "123456789":
        raise ConversionError(f"N-number must start with 1-9: N{tail}")

    output = US_CIVIL_START
    for i, c in enumerate(tail):
        if i == _MAX_TAIL_LENGTH - 1:
            # 5文字目は数字・英字どちらも1文字のみ
            if c not in ALLCHARS:
                raise ConversionError(f"invalid character {c!r} in N{tail}")
            output += ALLCHARS.index(c) + 1
        elif c in CHARSET:
            output += _suffix_offset(tail[i:])
            break
        elif c in DIGITSET:
            if i == 0:
                output += (int(c) - 1) * BUCKET1_SIZE
            elif i == 1:
                output += int(c) * BUCKET2_SIZE + SUFFIX_SIZE
            elif i == 2:
                output += int(c) * BUCKET3_SIZE + SUFFIX_SIZE
            else:
                output += int(c) * BUCKET4_SIZE + SUFFIX_SIZE
        else:
            raise ConversionError(f"invalid character {c!r} in N{tail}")

    if output > US_CIVIL_END:
        raise ConversionError(f"N{tail} is outside the US civil block")
    return TransponderCode(f"{output:06X}")
