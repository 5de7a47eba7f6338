"""
Flightroute Updater - 一括更新

責務:
  - 修正リスト(CSV: callsign,origin,destination)の読み込み
  - 1行ごとに コールサイン分類 → ルート検索 → 空港解決 → 更新 を実行
  - 実行結果の集計とレポート
  - グレースフルシャットダウン

行単位のスキップ条件（エラーではない）:
  - コールサインの書式不正
  - ルートが見つからない
  - 出発地・到着地のどちらかの空港が見つからない
DB・Redisのエラーはその行だけ失敗として記録し、次の行へ進む。
"""
import asyncio
import csv
import logging
import signal
import time
from enum import Enum
from typing import List

from cache import RouteCache
from callsign import classify_callsign
from db_config import INPUT_CSV, LOG_LEVEL, create_pool, create_redis
from errors import FlightrouteError, ValidationError
from models import UpdatedFlightroute
from repository import FlightrouteRepository
from resolver import RouteResolver

logger = logging.getLogger("flightroute_updater")

PROGRESS_INTERVAL = 100   # 進捗ログの出力間隔（行）


class Outcome(Enum):
    UPDATED = "updated"          # 更新済み
    DRY_RUN = "dry_run"          # 更新可能だが --dry-run のため未更新
    INVALID = "invalid"          # コールサインの書式不正
    NOT_FOUND = "not_found"      # ルートなし
    NO_AIRPORT = "no_airport"    # 空港が解決できない


# ─────────────────────────────────
# 入力読み込み
# ─────────────────────────────────
def load_input(path: str) -> List[UpdatedFlightroute]:
    """
    CSVを読み込み、入力行のリストを返す。
    空欄を含む行は読み飛ばす。Excel保存のBOM付きファイルも受け付ける。
    """
    rows: List[UpdatedFlightroute] = []
    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        for line_no, line in enumerate(reader, start=2):
            try:
                rows.append(UpdatedFlightroute(
                    line.get("callsign"),
                    line.get("origin"),
                    line.get("destination"),
                ))
            except ValueError as e:
                logger.debug(f"読み飛ばし {path}:{line_no}: {e}")
    return rows


# ═══════════════════════════════════════
# 一括更新本体
# ═══════════════════════════════════════

class FlightrouteUpdater:
    def __init__(
        self,
        resolver: RouteResolver,
        repository: FlightrouteRepository,
        dry_run: bool = False,
    ):
        self._resolver = resolver
        self._repo = repository
        self._dry_run = dry_run
        self._shutdown_event = asyncio.Event()
        self._stats = {outcome.value: 0 for outcome in Outcome}
        self._stats["errors"] = 0
        self._start_time: float = 0.0

    @property
    def stats(self) -> dict:
        return dict(self._stats)

    # ─────────────────────────────────
    # 1行分の処理
    # ─────────────────────────────────
    async def process(self, row: UpdatedFlightroute) -> Outcome:
        """
        1行分の修正を反映する。
        スキップ条件に当たった場合はその種別を返し、DB・Redisのエラーは送出する。
        """
        try:
            callsign = classify_callsign(row.callsign)
        except ValidationError as e:
            logger.debug(f"スキップ (書式不正): {e}")
            return Outcome.INVALID

        route = await self._resolver.find(callsign)
        if route is None:
            logger.debug(f"スキップ (ルートなし): {callsign}")
            return Outcome.NOT_FOUND

        origin = await self._repo.get_airport(row.origin)
        destination = await self._repo.get_airport(row.destination)
        if origin is None or destination is None:
            logger.debug(
                f"スキップ (空港なし): {callsign} {row.origin}→{row.destination}"
            )
            return Outcome.NO_AIRPORT

        if self._dry_run:
            logger.info(
                f"[dry-run] {callsign} (id={route.flightroute_id}): "
                f"{route.origin.iata_code}→{route.destination.iata_code} "
                f"を {row.origin}→{row.destination} に変更予定"
            )
            return Outcome.DRY_RUN

        await self._resolver.update(route, origin, destination)
        logger.debug(
            f"更新: {callsign} (id={route.flightroute_id}) "
            f"{row.origin}→{row.destination}"
        )
        return Outcome.UPDATED

    # ─────────────────────────────────
    # エントリポイント
    # ─────────────────────────────────
    async def run(self, rows: List[UpdatedFlightroute]) -> dict:
        """全行を先頭から逐次処理し、集計結果を返す。"""
        self._start_time = time.monotonic()
        logger.info(
            f"一括更新開始 | 件数={len(rows)} | "
            f"モード={'dry-run' if self._dry_run else '更新'}"
        )

        for i, row in enumerate(rows, start=1):
            if self._shutdown_event.is_set():
                logger.warning(f"停止要求により中断 ({i - 1}/{len(rows)} 件処理済み)")
                break

            try:
                outcome = await self.process(row)
                self._stats[outcome.value] += 1
            except FlightrouteError as e:
                self._stats["errors"] += 1
                logger.error(f"処理エラー ({row.callsign}): {e}", exc_info=True)

            if i % PROGRESS_INTERVAL == 0:
                elapsed = time.monotonic() - self._start_time
                logger.info(
                    f"■ 進捗 [{elapsed:.0f}秒経過] {i}/{len(rows)} | "
                    f"更新={self._stats['updated']} | エラー={self._stats['errors']}"
                )

        self._print_final_report(time.monotonic() - self._start_time)
        return self.stats

    def _print_final_report(self, total_time: float):
        """実行完了時の集計レポート。"""
        s = self._stats
        logger.info(
            f"\n"
            f"{'='*60}\n"
            f"  一括更新完了レポート\n"
            f"{'='*60}\n"
            f"  所要時間        : {total_time:.1f}秒\n"
            f"{'─'*60}\n"
            f"  更新            : {s['updated']}\n"
            f"  更新予定(dry)   : {s['dry_run']}\n"
            f"  書式不正        : {s['invalid']}\n"
            f"  ルートなし      : {s['not_found']}\n"
            f"  空港なし        : {s['no_airport']}\n"
            f"  エラー          : {s['errors']}\n"
            f"{'='*60}"
        )

    def handle_shutdown(self):
        """シグナルハンドラ: 処理中の行を終えたら停止する。"""
        logger.warning("停止シグナル受信。処理中の行を完了して終了します...")
        self._shutdown_event.set()


async def main(input_path: str, dry_run: bool = False) -> dict:
    rows = load_input(input_path)

    pool = await create_pool()
    redis_client = None
    try:
        redis_client = await create_redis()
        repository = FlightrouteRepository(pool)
        resolver = RouteResolver(repository, RouteCache(redis_client))
        updater = FlightrouteUpdater(resolver, repository, dry_run=dry_run)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, updater.handle_shutdown)
            except NotImplementedError:
                pass

        return await updater.run(rows)
    finally:
        if redis_client is not None:
            await redis_client.aclose()
        await pool.close()


# ─────────────────────────────────
# CLI
# ─────────────────────────────────
if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="フライトルート出発地・到着地の一括修正")
    parser.add_argument(
        "--input",
        default=INPUT_CSV,
        help=f"修正リストCSV (デフォルト: {INPUT_CSV})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="検索と空港解決のみ行い、DB・キャッシュは変更しない",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    asyncio.run(main(args.input, dry_run=args.dry_run))
