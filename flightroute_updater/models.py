"""
Flightroute Updater - データモデル定義

各Entityの責務:
  - TransponderCode / RegistrationNumber: 検証済みの機体識別子（不変）
  - Callsign: 検証済みの便名コールサイン（ICAO形式 / IATA形式 / その他 の直和型）
  - Airline / Airport: ルートに結合される航空会社・空港の表示用情報
  - Route: コールサインと出発地・経由地・到着地の対応（DBから読み出す）
  - AirportRef: 更新時に使う空港のID
  - UpdatedFlightroute: 一括更新の入力1行分
"""
from dataclasses import dataclass, fields
from enum import Enum, auto
from typing import Any, Mapping, Optional

from errors import DataIntegrityError


@dataclass(frozen=True)
class TransponderCode:
    """Mode S コード（大文字の16進6桁）"""
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RegistrationNumber:
    """Nナンバー（米国の機体登録記号）"""
    value: str

    def __str__(self) -> str:
        return self.value


class CallsignKind(Enum):
    ICAO = auto()    # 3文字の航空会社コード + 便名 (例: BAW123)
    IATA = auto()    # 2文字の航空会社コード + 便名 (例: BA123)
    OTHER = auto()   # 分解できない、またはNナンバーそのもの


@dataclass(frozen=True)
class Callsign:
    """
    検証済みのコールサイン。

    ICAO / IATA では prefix に航空会社コード、suffix に便名部分を持つ。
    OTHER では prefix は空文字で、suffix に入力全体を持つ。
    """
    kind: CallsignKind
    prefix: str
    suffix: str

    @classmethod
    def icao(cls, prefix: str, suffix: str) -> "Callsign":
        return cls(CallsignKind.ICAO, prefix, suffix)

    @classmethod
    def iata(cls, prefix: str, suffix: str) -> "Callsign":
        return cls(CallsignKind.IATA, prefix, suffix)

    @classmethod
    def other(cls, value: str) -> "Callsign":
        return cls(CallsignKind.OTHER, "", value)

    def __str__(self) -> str:
        return f"{self.prefix}{self.suffix}"


@dataclass
class Airline:
    """ルートに紐づく航空会社（航空会社コード経由で解決した場合のみ存在）"""
    name: Optional[str] = None
    callsign: Optional[str] = None
    country_name: Optional[str] = None
    country_iso_name: Optional[str] = None
    iata: Optional[str] = None
    icao: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Optional["Airline"]:
        airline = cls(**{
            f.name: record.get(f"airline_{f.name}") for f in fields(cls)
        })
        if airline.name is None and airline.iata is None and airline.icao is None:
            return None
        return airline


@dataclass
class Airport:
    """
    空港の表示用情報。

    DB側ではサブクエリの結果としてどのカラムもNULLになり得るため、
    全フィールドをOptionalとして持つ。
    """
    country_name: Optional[str] = None
    country_iso_name: Optional[str] = None
    elevation: Optional[int] = None
    iata_code: Optional[str] = None
    icao_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    municipality: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any], position: str) -> Optional["Airport"]:
        """
        結合済みの1行から `{position}_airport_*` カラムを取り出す。
        空港が結合されなかった（ICAOコードも名称もない）場合はNoneを返す。
        """
        airport = cls(**{
            f.name: record.get(f"{position}_airport_{f.name}") for f in fields(cls)
        })
        if airport.icao_code is None and airport.name is None:
            return None
        return airport


@dataclass
class Route:
    """DBから読み出したフライトルート"""
    flightroute_id: int
    callsign: str
    origin: Airport
    destination: Airport
    callsign_iata: Optional[str] = None
    callsign_icao: Optional[str] = None
    airline: Optional[Airline] = None
    midpoint: Optional[Airport] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Route":
        """
        フラットな結合結果からRouteを組み立てる。

        出発地・到着地は論理上必須のため、結合できていなければ
        DataIntegrityError を送出する。
        """
        record = dict(record)
        flightroute_id = record["flightroute_id"]
        origin = Airport.from_record(record, "origin")
        destination = Airport.from_record(record, "destination")
        if origin is None or destination is None:
            missing = "origin" if origin is None else "destination"
            raise DataIntegrityError(
                f"flightroute {flightroute_id} has no {missing} airport"
            )
        return cls(
            flightroute_id=flightroute_id,
            callsign=record["callsign"],
            callsign_iata=record.get("callsign_iata") or None,
            callsign_icao=record.get("callsign_icao") or None,
            airline=Airline.from_record(record),
            origin=origin,
            midpoint=Airport.from_record(record, "midpoint"),
            destination=destination,
        )


@dataclass(frozen=True)
class AirportRef:
    """IATAコードから解決した空港のID"""
    airport_id: int


@dataclass
class UpdatedFlightroute:
    """一括更新の入力1行（コールサイン, 新しい出発地IATA, 新しい到着地IATA）"""
    callsign: str
    origin: str
    destination: str

    def __post_init__(self):
        for name in ("callsign", "origin", "destination"):
            value = getattr(self, name)
            if not value or not value.strip():
                raise ValueError(f"{name} must not be empty")
            setattr(self, name, value.strip().upper())
