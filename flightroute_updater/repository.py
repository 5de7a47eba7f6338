"""
Flightroute Updater - リポジトリ層

責務:
  - フライトルートの検索（航空会社コード+便名 / コールサイン文字列の完全一致）
  - IATAコードからの空港ID解決
  - ルートの出発地・到着地の書き換え

設計方針:
  - asyncpg コネクションプールから接続を取得して操作する
  - asyncpg / ソケットの例外は PersistentStoreError に包み直して送出する
  - 複数行がヒットし得る検索は flightroute_id の昇順で先頭1件を採用する
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Optional

import asyncpg

from errors import PersistentStoreError
from models import AirportRef, Route

logger = logging.getLogger(__name__)


class CodeLength(Enum):
    SHORT = "iata"   # 2文字の航空会社コード
    LONG = "icao"    # 3文字の航空会社コード


# ─────────────────────────────────
# 空港カラム（出発地・経由地・到着地で共通）
#   (出力カラム, 結合テーブル, 結合キー, 取得カラム)
# ─────────────────────────────────
_AIRPORT_LOOKUPS = (
    ("country_name", "country", "country_id", "country_name"),
    ("country_iso_name", "country", "country_id", "country_iso_name"),
    ("municipality", "airport_municipality", "airport_municipality_id", "municipality"),
    ("icao_code", "airport_icao_code", "airport_icao_code_id", "icao_code"),
    ("iata_code", "airport_iata_code", "airport_iata_code_id", "iata_code"),
    ("name", "airport_name", "airport_name_id", "name"),
    ("elevation", "airport_elevation", "airport_elevation_id", "elevation"),
    ("latitude", "airport_latitude", "airport_latitude_id", "latitude"),
    ("longitude", "airport_longitude", "airport_longitude_id", "longitude"),
)


def _airport_columns(alias: str, position: str) -> str:
    return ",\n".join(
        f"    (SELECT {column} FROM airport oa JOIN {table} USING({key}) "
        f"WHERE oa.airport_id = {alias}.airport_id) AS {position}_airport_{output}"
        for output, table, key, column in _AIRPORT_LOOKUPS
    )


_AIRPORT_SELECT = ",\n".join(
    _airport_columns(alias, position)
    for alias, position in (("apo", "origin"), ("apm", "midpoint"), ("apd", "destination"))
)

_AIRPORT_JOINS = '''
LEFT JOIN airport apo ON apo.airport_id = fl.airport_origin_id
LEFT JOIN airport apm ON apm.airport_id = fl.airport_midpoint_id
LEFT JOIN airport apd ON apd.airport_id = fl.airport_destination_id
'''

# ─────────────────────────────────
# コールサイン文字列の完全一致（Nナンバー・単発の便名など）
# ─────────────────────────────────
QUERY_BY_CALLSIGN = f'''
SELECT
    fl.flightroute_id,
    $1::text AS callsign,
    NULL AS callsign_iata,
    NULL AS callsign_icao,
    NULL AS airline_name,
    NULL AS airline_callsign,
    NULL AS airline_iata,
    NULL AS airline_icao,
    NULL AS airline_country_name,
    NULL AS airline_country_iso_name,
{_AIRPORT_SELECT}
FROM flightroute fl
LEFT JOIN flightroute_callsign flc USING(flightroute_callsign_id)
LEFT JOIN flightroute_callsign_inner fci
    ON fci.flightroute_callsign_inner_id = flc.callsign_id
{_AIRPORT_JOINS}
WHERE fci.callsign = $1
ORDER BY fl.flightroute_id
LIMIT 1
'''

_AIRLINE_SELECT = '''
    fl.flightroute_id,
    concat($1::text, $2::text) AS callsign,
    concat(ai.iata_prefix, (SELECT callsign FROM flightroute_callsign_inner
        WHERE flightroute_callsign_inner_id = flc.iata_prefix_id)) AS callsign_iata,
    concat(ai.icao_prefix, (SELECT callsign FROM flightroute_callsign_inner
        WHERE flightroute_callsign_inner_id = flc.icao_prefix_id)) AS callsign_icao,
    ai.airline_name,
    ai.airline_callsign,
    ai.iata_prefix AS airline_iata,
    ai.icao_prefix AS airline_icao,
    (SELECT country_name FROM country WHERE country_id = ai.country_id) AS airline_country_name,
    (SELECT country_iso_name FROM country WHERE country_id = ai.country_id) AS airline_country_iso_name,
'''


def _query_by_airline(prefix_column: str) -> str:
    """
    航空会社コード($1) + 便名($2) で検索するクエリ。
    同じコードを持つ航空会社が複数あれば airline_id の最小を採用する。
    """
    return f'''
SELECT
{_AIRLINE_SELECT}
{_AIRPORT_SELECT}
FROM flightroute fl
LEFT JOIN flightroute_callsign flc USING(flightroute_callsign_id)
LEFT JOIN flightroute_callsign_inner fci
    ON fci.flightroute_callsign_inner_id = flc.callsign_id
LEFT JOIN airline ai ON ai.airline_id = flc.airline_id
{_AIRPORT_JOINS}
WHERE
    flc.airline_id = (
        SELECT airline_id FROM airline
        WHERE {prefix_column} = $1
        ORDER BY airline_id
        LIMIT 1
    )
AND
    flc.icao_prefix_id = (
        SELECT flightroute_callsign_inner_id FROM flightroute_callsign_inner
        WHERE callsign = $2
        LIMIT 1
    )
ORDER BY fl.flightroute_id
LIMIT 1
'''


QUERY_BY_AIRLINE = {
    CodeLength.SHORT: _query_by_airline("iata_prefix"),
    CodeLength.LONG: _query_by_airline("icao_prefix"),
}

QUERY_AIRPORT_BY_IATA = '''
SELECT airport_id
FROM airport
LEFT JOIN airport_iata_code ai USING(airport_iata_code_id)
WHERE ai.iata_code = $1
ORDER BY airport_id
LIMIT 1
'''

QUERY_UPDATE_ENDPOINTS = '''
UPDATE flightroute
SET airport_origin_id = $1, airport_destination_id = $2
WHERE flightroute_id = $3
'''

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class FlightrouteRepository:
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    @asynccontextmanager
    async def _connection(self, action: str):
        """プールから接続を借り、DB由来の例外を PersistentStoreError に変換する。"""
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except _STORE_ERRORS as e:
            raise PersistentStoreError(f"{action}: {e.__class__.__name__}: {e}") from e

    # ─────────────────────────────────
    # 検索: 航空会社コード + 便名
    # ─────────────────────────────────
    async def lookup_by_airline_and_suffix(
        self, code: str, suffix: str, code_length: CodeLength
    ) -> Optional[Route]:
        """航空会社コード(2文字 or 3文字) と便名部分でルートを検索する。"""
        async with self._connection(f"lookup {code}{suffix}") as conn:
            record = await conn.fetchrow(QUERY_BY_AIRLINE[code_length], code, suffix)
        if record is None:
            return None
        return Route.from_record(record)

    # ─────────────────────────────────
    # 検索: コールサイン文字列の完全一致
    # ─────────────────────────────────
    async def lookup_by_callsign(self, callsign: str) -> Optional[Route]:
        async with self._connection(f"lookup {callsign}") as conn:
            record = await conn.fetchrow(QUERY_BY_CALLSIGN, callsign)
        if record is None:
            return None
        return Route.from_record(record)

    # ─────────────────────────────────
    # 空港ID解決
    # ─────────────────────────────────
    async def get_airport(self, iata_code: str) -> Optional[AirportRef]:
        async with self._connection(f"airport {iata_code}") as conn:
            airport_id = await conn.fetchval(QUERY_AIRPORT_BY_IATA, iata_code)
        if airport_id is None:
            return None
        return AirportRef(airport_id)

    # ─────────────────────────────────
    # 更新: 出発地・到着地
    # ─────────────────────────────────
    async def update_route_endpoints(
        self, flightroute_id: int, origin: AirportRef, destination: AirportRef
    ) -> None:
        """
        出発地と到着地を単一のUPDATE文で書き換える。
        楽観ロックは行わず、後勝ちとなる。
        """
        async with self._connection(f"update flightroute {flightroute_id}") as conn:
            status = await conn.execute(
                QUERY_UPDATE_ENDPOINTS,
                origin.airport_id, destination.airport_id, flightroute_id,
            )
        if status == "UPDATE 0":
            logger.warning(f"更新対象なし: flightroute_id={flightroute_id}")
