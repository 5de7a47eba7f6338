"""
テスト用のインメモリ代替実装

  - FakePool / FakeConnection: asyncpg.Pool の acquire / fetchrow / fetchval / execute
  - FakeRedis: redis.asyncio.Redis の delete
  - FakeRepository: FlightrouteRepository と同じインターフェース
"""
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from redis.exceptions import ConnectionError as RedisConnectionError

from errors import PersistentStoreError
from models import AirportRef, Route


def make_record(
    flightroute_id: int = 1,
    callsign: str = "BAW123",
    callsign_iata: Optional[str] = "BA123",
    callsign_icao: Optional[str] = "BAW123",
    with_airline: bool = True,
    origin: Optional[str] = "EGLL",
    destination: Optional[str] = "KJFK",
    midpoint: Optional[str] = None,
) -> Dict[str, Any]:
    """クエリ結果1行分と同じ形の dict を作る"""
    record: Dict[str, Any] = {
        "flightroute_id": flightroute_id,
        "callsign": callsign,
        "callsign_iata": callsign_iata,
        "callsign_icao": callsign_icao,
        "airline_name": "British Airways" if with_airline else None,
        "airline_callsign": "SPEEDBIRD" if with_airline else None,
        "airline_iata": "BA" if with_airline else None,
        "airline_icao": "BAW" if with_airline else None,
        "airline_country_name": "United Kingdom" if with_airline else None,
        "airline_country_iso_name": "GB" if with_airline else None,
    }
    for position, icao in (("origin", origin), ("midpoint", midpoint), ("destination", destination)):
        present = icao is not None
        record.update({
            f"{position}_airport_country_name": "Somewhere" if present else None,
            f"{position}_airport_country_iso_name": "XX" if present else None,
            f"{position}_airport_elevation": 83 if present else None,
            f"{position}_airport_iata_code": icao[1:] if present else None,
            f"{position}_airport_icao_code": icao,
            f"{position}_airport_latitude": 51.4706 if present else None,
            f"{position}_airport_longitude": -0.461941 if present else None,
            f"{position}_airport_municipality": "Town" if present else None,
            f"{position}_airport_name": f"{icao} Airport" if present else None,
        })
    return record


def make_route(**kwargs) -> Route:
    return Route.from_record(make_record(**kwargs))


# ─────────────────────────────────
# asyncpg
# ─────────────────────────────────
class FakeConnection:
    """
    respond(method, query, args) の戻り値をそのまま返す。
    例外インスタンスが返された場合は送出する。
    """

    def __init__(self, respond: Callable[[str, str, tuple], Any]):
        self._respond = respond
        self.calls: List[Tuple[str, str, tuple]] = []

    async def _call(self, method: str, query: str, args: tuple):
        self.calls.append((method, query, args))
        result = self._respond(method, query, args)
        if isinstance(result, BaseException):
            raise result
        return result

    async def fetchrow(self, query: str, *args):
        return await self._call("fetchrow", query, args)

    async def fetchval(self, query: str, *args):
        return await self._call("fetchval", query, args)

    async def execute(self, query: str, *args):
        return await self._call("execute", query, args)


class _Acquire:
    def __init__(self, conn: FakeConnection):
        self._conn = conn

    async def __aenter__(self) -> FakeConnection:
        return self._conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakePool:
    def __init__(self, respond: Callable[[str, str, tuple], Any]):
        self.conn = FakeConnection(respond)

    def acquire(self) -> _Acquire:
        return _Acquire(self.conn)


# ─────────────────────────────────
# redis
# ─────────────────────────────────
class FakeRedis:
    def __init__(
        self,
        data: Optional[Dict[str, str]] = None,
        fail: bool = False,
        fail_keys: Iterable[str] = (),
    ):
        self.data: Dict[str, str] = dict(data or {})
        self.fail = fail
        self.fail_keys = set(fail_keys)
        self.deleted: List[str] = []

    async def delete(self, *keys: str) -> int:
        if self.fail:
            raise RedisConnectionError("Connection refused")
        removed = 0
        for key in keys:
            if key in self.fail_keys:
                raise RedisConnectionError(f"Error while deleting {key}")
            self.deleted.append(key)
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


# ─────────────────────────────────
# リポジトリ
# ─────────────────────────────────
class FakeRepository:
    def __init__(
        self,
        airline_routes: Optional[Dict[tuple, Route]] = None,
        callsign_routes: Optional[Dict[str, Route]] = None,
        airports: Optional[Dict[str, int]] = None,
    ):
        self.airline_routes = airline_routes or {}
        self.callsign_routes = callsign_routes or {}
        self.airports = airports or {}
        self.airline_error: Optional[str] = None
        self.callsign_error: Optional[str] = None
        self.update_error: Optional[str] = None
        self.calls: List[tuple] = []
        self.updates: List[Tuple[int, AirportRef, AirportRef]] = []

    async def lookup_by_airline_and_suffix(self, code, suffix, code_length):
        self.calls.append(("airline", code, suffix, code_length))
        if self.airline_error:
            raise PersistentStoreError(self.airline_error)
        return self.airline_routes.get((code, suffix, code_length))

    async def lookup_by_callsign(self, callsign):
        self.calls.append(("callsign", callsign))
        if self.callsign_error:
            raise PersistentStoreError(self.callsign_error)
        return self.callsign_routes.get(callsign)

    async def get_airport(self, iata_code):
        airport_id = self.airports.get(iata_code)
        return AirportRef(airport_id) if airport_id is not None else None

    async def update_route_endpoints(self, flightroute_id, origin, destination):
        if self.update_error:
            raise PersistentStoreError(self.update_error)
        self.updates.append((flightroute_id, origin, destination))
