"""
リポジトリ層テスト（asyncpg はインメモリの代替で置き換える）

検証項目:
  1. コードの長さに応じたクエリの選択とパラメータ
  2. 複数行ヒット時の並び順指定
  3. 空港ID解決・出発地/到着地の更新
  4. DB例外の PersistentStoreError への変換
"""
import asyncio
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import asyncpg

from errors import DataIntegrityError, PersistentStoreError
from fakes import FakePool, make_record
from models import AirportRef
from repository import (
    QUERY_AIRPORT_BY_IATA,
    QUERY_BY_AIRLINE,
    QUERY_BY_CALLSIGN,
    QUERY_UPDATE_ENDPOINTS,
    CodeLength,
    FlightrouteRepository,
)

passed = 0
failed = 0


def run_test(name, func):
    global passed, failed
    try:
        func()
        passed += 1
        print(f"  ✅ {name}")
    except AssertionError as e:
        failed += 1
        print(f"  ❌ {name}: {e}")
    except Exception as e:
        failed += 1
        print(f"  ❌ {name}: 例外発生 {e.__class__.__name__}: {e}")


def _repo(respond):
    pool = FakePool(respond)
    return FlightrouteRepository(pool), pool.conn


# ═══════════════════════════════════════
# 1. クエリの選択
# ═══════════════════════════════════════
def test_lookup_long_code():
    """3文字コードは icao_prefix で検索し、結果を Route に変換する"""
    repo, conn = _repo(lambda method, query, args: make_record())
    route = asyncio.run(repo.lookup_by_airline_and_suffix("BAW", "123", CodeLength.LONG))
    assert route.flightroute_id == 1
    assert route.airline.icao == "BAW"
    method, query, args = conn.calls[0]
    assert method == "fetchrow"
    assert query == QUERY_BY_AIRLINE[CodeLength.LONG]
    assert "icao_prefix = $1" in query
    assert args == ("BAW", "123")

def test_lookup_short_code():
    """2文字コードは iata_prefix で検索する"""
    repo, conn = _repo(lambda method, query, args: None)
    route = asyncio.run(repo.lookup_by_airline_and_suffix("BA", "123", CodeLength.SHORT))
    assert route is None
    _, query, args = conn.calls[0]
    assert query == QUERY_BY_AIRLINE[CodeLength.SHORT]
    assert "iata_prefix = $1" in query
    assert args == ("BA", "123")

def test_lookup_callsign():
    """完全一致検索はコールサイン文字列1つだけを渡す"""
    record = make_record(callsign="N123AB", callsign_iata=None, callsign_icao=None, with_airline=False)
    repo, conn = _repo(lambda method, query, args: record)
    route = asyncio.run(repo.lookup_by_callsign("N123AB"))
    assert route.callsign == "N123AB"
    assert route.airline is None
    _, query, args = conn.calls[0]
    assert query == QUERY_BY_CALLSIGN
    assert args == ("N123AB",)


# ═══════════════════════════════════════
# 2. 並び順
# ═══════════════════════════════════════
def test_queries_pick_lowest_id():
    """複数行ヒットし得るクエリはすべて flightroute_id 昇順の先頭1件"""
    for query in (QUERY_BY_CALLSIGN, *QUERY_BY_AIRLINE.values()):
        assert "ORDER BY fl.flightroute_id\nLIMIT 1" in query
    for query in QUERY_BY_AIRLINE.values():
        assert "ORDER BY airline_id" in query
        assert "DISTINCT" not in query

def test_queries_select_all_airport_columns():
    """3地点ぶんの空港カラムがすべて選択される"""
    for query in (QUERY_BY_CALLSIGN, *QUERY_BY_AIRLINE.values()):
        for position in ("origin", "midpoint", "destination"):
            for column in ("icao_code", "iata_code", "name", "latitude", "longitude",
                           "elevation", "municipality", "country_name", "country_iso_name"):
                assert f"AS {position}_airport_{column}" in query, (position, column)


# ═══════════════════════════════════════
# 3. 空港・更新
# ═══════════════════════════════════════
def test_get_airport():
    """IATAコードから AirportRef を返す。なければ None"""
    repo, conn = _repo(lambda method, query, args: 42 if args == ("LHR",) else None)
    assert asyncio.run(repo.get_airport("LHR")) == AirportRef(42)
    assert asyncio.run(repo.get_airport("XXX")) is None
    assert conn.calls[0] == ("fetchval", QUERY_AIRPORT_BY_IATA, ("LHR",))

def test_update_route_endpoints():
    """出発地ID, 到着地ID, ルートID の順でUPDATEする"""
    repo, conn = _repo(lambda method, query, args: "UPDATE 1")
    asyncio.run(repo.update_route_endpoints(9, AirportRef(10), AirportRef(20)))
    assert conn.calls == [("execute", QUERY_UPDATE_ENDPOINTS, (10, 20, 9))]


# ═══════════════════════════════════════
# 4. 例外変換
# ═══════════════════════════════════════
def test_interface_error_wrapped():
    """asyncpg の例外は PersistentStoreError になり、元の例外を保持する"""
    cause = asyncpg.InterfaceError("connection is closed")
    repo, _ = _repo(lambda method, query, args: cause)
    try:
        asyncio.run(repo.lookup_by_callsign("N123AB"))
    except PersistentStoreError as e:
        assert e.__cause__ is cause
        assert "N123AB" in str(e)
    else:
        raise AssertionError("例外が発生しなかった")

def test_os_error_wrapped():
    """接続断(OSError)も PersistentStoreError になる"""
    repo, _ = _repo(lambda method, query, args: ConnectionRefusedError("refused"))
    try:
        asyncio.run(repo.update_route_endpoints(1, AirportRef(1), AirportRef(2)))
    except PersistentStoreError as e:
        assert isinstance(e.__cause__, ConnectionRefusedError)
    else:
        raise AssertionError("例外が発生しなかった")

def test_integrity_error_propagates():
    """出発地の欠けた行は DataIntegrityError としてそのまま送出される"""
    repo, _ = _repo(lambda method, query, args: make_record(origin=None))
    try:
        asyncio.run(repo.lookup_by_callsign("BAW123"))
    except DataIntegrityError:
        pass
    else:
        raise AssertionError("例外が発生しなかった")


# ═══════════════════════════════════════
# 実行
# ═══════════════════════════════════════
if __name__ == '__main__':
    sections = [
        ("クエリの選択", [
            ("3文字コード", test_lookup_long_code),
            ("2文字コード", test_lookup_short_code),
            ("完全一致", test_lookup_callsign),
        ]),
        ("並び順・カラム", [
            ("最小IDを採用", test_queries_pick_lowest_id),
            ("空港カラム", test_queries_select_all_airport_columns),
        ]),
        ("空港・更新", [
            ("空港ID解決", test_get_airport),
            ("出発地/到着地の更新", test_update_route_endpoints),
        ]),
        ("例外変換", [
            ("asyncpg例外", test_interface_error_wrapped),
            ("OSError", test_os_error_wrapped),
            ("不変条件違反", test_integrity_error_propagates),
        ]),
    ]

    for section_name, tests in sections:
        print(f"\n[{section_name}]")
        for test_name, test_func in tests:
            run_test(test_name, test_func)

    print(f"\n{'='*50}")
    print(f"結果: {passed} 件通過, {failed} 件失敗 / 全 {passed+failed} 件")
    if failed > 0:
        print("❌ テスト失敗あり")
        sys.exit(1)
    else:
        print("✅ 全テスト通過")
