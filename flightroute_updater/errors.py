"""
Flightroute Updater - 例外定義

責務:
  - 識別子の検証エラー・変換エラー・永続層/キャッシュ層エラーの分類
  - 外部ライブラリ(asyncpg / redis)の例外はリポジトリ層・キャッシュ層で
    ここで定義した例外に包み直してから送出する
"""
from enum import Enum


class IdentityKind(Enum):
    TRANSPONDER = "transponder"     # Mode S (24bit HEX)
    REGISTRATION = "registration"   # Nナンバー
    CALLSIGN = "callsign"           # 便名コールサイン


class FlightrouteError(Exception):
    """本パッケージが送出する例外の基底クラス"""


class ValidationError(FlightrouteError, ValueError):
    """識別子の書式違反。違反した文法の種別と、大文字化済みの入力値を保持する。"""

    def __init__(self, kind: IdentityKind, value: str):
        self.kind = kind
        self.value = value
        super().__init__(f"invalid {kind.value}: {value!r}")


class ConversionError(FlightrouteError):
    """Nナンバー → Mode S 変換の失敗"""


class PersistentStoreError(FlightrouteError):
    """PostgreSQLへの問い合わせ・書き込みの失敗"""


class DataIntegrityError(PersistentStoreError):
    """結合結果が論理モデルの不変条件（出発地・到着地は必須）を満たさない"""


class CacheError(FlightrouteError):
    """Redisへの接続・コマンド実行の失敗"""
