"""
Flightroute Updater - キャッシュ層

API側はコールサインの表示形式ごとに、結合済みのルート情報を
"callsign::<表示形式>" というキーでRedisにキャッシュしている。
ルートを書き換えたら該当キーを削除し、次回読み出し時に再計算させる。
"""
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from errors import CacheError

logger = logging.getLogger(__name__)

KEY_PREFIX = "callsign::"


def cache_key(display_callsign: str) -> str:
    return f"{KEY_PREFIX}{display_callsign}"


class RouteCache:
    def __init__(self, client: redis.Redis):
        self._client = client

    async def delete(self, display_callsign: str) -> bool:
        """
        キーを削除する。キーが存在しなかった場合は何もせず False を返す。
        接続・コマンドの失敗は CacheError として送出する。
        """
        key = cache_key(display_callsign)
        try:
            removed = await self._client.delete(key)
        except (RedisError, OSError) as e:
            raise CacheError(f"failed to delete {key}: {e}") from e
        logger.debug(f"キャッシュ削除: {key} ({'削除' if removed else '未登録'})")
        return bool(removed)
