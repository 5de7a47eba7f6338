"""
Flightroute Updater - ルート解決

責務:
  - コールサインの形式に応じた検索方法の選択とフォールバック
  - ルート更新後のキャッシュ無効化

検索の流れ:
  ICAO / IATA → 航空会社コード + 便名で検索
             └ 見つからない(またはDBエラー) → 連結文字列の完全一致で検索
  その他     → 完全一致で検索（フォールバックなし）
"""
import logging
from typing import List, Optional

from cache import RouteCache
from errors import CacheError, PersistentStoreError
from models import AirportRef, Callsign, CallsignKind, Route
from repository import CodeLength, FlightrouteRepository

logger = logging.getLogger(__name__)

_CODE_LENGTHS = {
    CallsignKind.IATA: CodeLength.SHORT,
    CallsignKind.ICAO: CodeLength.LONG,
}


class RouteResolver:
    def __init__(self, repository: FlightrouteRepository, cache: RouteCache):
        self._repo = repository
        self._cache = cache

    # ─────────────────────────────────
    # 検索
    # ─────────────────────────────────
    async def find(self, callsign: Callsign) -> Optional[Route]:
        """
        コールサインに対応するルートを返す。見つからなければNone。

        航空会社コードでの検索中のDBエラーは「該当なし」として扱い、
        完全一致検索へ進む。完全一致検索のDBエラーはそのまま送出する。
        """
        handlers = {
            CallsignKind.ICAO: self._find_by_airline,
            CallsignKind.IATA: self._find_by_airline,
            CallsignKind.OTHER: self._find_by_callsign,
        }
        return await handlers[callsign.kind](callsign)

    async def _find_by_airline(self, callsign: Callsign) -> Optional[Route]:
        code_length = _CODE_LENGTHS[callsign.kind]
        try:
            route = await self._repo.lookup_by_airline_and_suffix(
                callsign.prefix, callsign.suffix, code_length
            )
        except PersistentStoreError as e:
            logger.warning(
                f"航空会社コード検索に失敗 ({callsign}, {code_length.value}): {e} "
                f"→ 完全一致検索へ"
            )
            route = None

        if route is not None:
            return route
        logger.debug(f"航空会社コードで該当なし: {callsign} → 完全一致検索へ")
        return await self._find_by_callsign(callsign)

    async def _find_by_callsign(self, callsign: Callsign) -> Optional[Route]:
        return await self._repo.lookup_by_callsign(str(callsign))

    # ─────────────────────────────────
    # 更新 + キャッシュ無効化
    # ─────────────────────────────────
    async def update(
        self, route: Route, origin: AirportRef, destination: AirportRef
    ) -> None:
        """
        ルートの出発地・到着地を書き換え、表示形式ごとのキャッシュを削除する。

        キャッシュは上書きせず削除のみ行い、次回読み出し時に再計算させる。
        DB書き込みに失敗した場合はキャッシュに触れずに送出する。
        キーの削除は1件ずつ独立に試み、失敗があれば最初の CacheError を送出する。
        """
        await self._repo.update_route_endpoints(route.flightroute_id, origin, destination)

        errors: List[CacheError] = []
        for display in (route.callsign_iata, route.callsign_icao):
            if not display:
                continue
            try:
                await self._cache.delete(display)
            except CacheError as e:
                logger.error(f"キャッシュ削除に失敗: {e}")
                errors.append(e)
        if errors:
            raise errors[0]
