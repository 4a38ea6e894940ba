"""Epic Games Store offer ミラー — メインエントリーポイント.

処理フロー:
  1. ストア全体の offer を searchStore クエリで全ページ取得・保存
  2. 追加 namespace ごとに catalogOffers クエリで全ページ取得・保存
  3. 保存済み offer からインデックスを再生成
  4. 実行メトリクスを書き出し
  5. database ディレクトリを git でコミット・プッシュ

通信エラー (TransportError) はどのフェーズでも実行全体を中断し、
インデックス更新・同期は行わない。
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from pathlib import Path

import requests

from src.config import (
    COUNTRY,
    DATABASE_DIR,
    GIT_BRANCH,
    GIT_REMOTE,
    LOCALE,
    LOG_DIR,
    NAMESPACES,
    OFFERS_DIR,
    PAGE_SIZE,
)
from src.fetcher import FetchError
from src.indexer import rebuild
from src.models import RunMetrics
from src.paginator import drain_all
from src.queries import (
    NAMESPACE_OFFERS_QUERY,
    STORE_OFFERS_QUERY,
    load_query,
    select_catalog_offers,
    select_search_store,
)
from src.store import OfferStore, write_json_atomic
from src.sync import publish

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """ロギングの初期設定."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / f"mirror_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


@contextmanager
def _phase(metrics: RunMetrics, name: str):
    """フェーズの所要時間を metrics に記録する."""
    logger.info("--- %s 開始 ---", name)
    started = time.monotonic()
    try:
        yield
    finally:
        metrics.durations[name] = time.monotonic() - started
        logger.info("--- %s 終了 (%.1f 秒) ---", name, metrics.durations[name])


def run(
    database_dir: Path = DATABASE_DIR,
    offers_dir: Path | None = None,
    namespaces: list[str] = NAMESPACES,
    page_size: int = PAGE_SIZE,
    remote: str | None = GIT_REMOTE,
    branch: str | None = GIT_BRANCH,
    **fetch_kwargs,
) -> RunMetrics:
    """メイン処理. 計測値を返す."""
    metrics = RunMetrics()
    session = fetch_kwargs.pop("session", None)

    with (
        nullcontext(session) if session is not None else requests.Session()
    ) as session, OfferStore(offers_dir or database_dir / "offers") as store:
        with _phase(metrics, "fetch_store"):
            logger.info("ストア offer を更新中: country=%s, locale=%s", COUNTRY, LOCALE)
            drain_all(
                load_query(STORE_OFFERS_QUERY),
                {
                    "country": COUNTRY,
                    "locale": LOCALE,
                    "sortBy": "lastModifiedDate",
                    "sortDir": "DESC",
                },
                select_search_store,
                store,
                page_size=page_size,
                session=session,
                **fetch_kwargs,
            )

        with _phase(metrics, "fetch_namespaces"):
            for namespace in namespaces:
                logger.info("namespace の offer を更新中: %s", namespace)
                drain_all(
                    load_query(NAMESPACE_OFFERS_QUERY),
                    {"namespace": namespace, "country": COUNTRY, "locale": LOCALE},
                    select_catalog_offers,
                    store,
                    page_size=page_size,
                    session=session,
                    **fetch_kwargs,
                )

        metrics.offers_saved = store.saved
        if store.failed:
            logger.warning("保存に失敗した offer: %d 件", store.failed)

        with _phase(metrics, "index"):
            rebuild(store, database_dir)

    metrics.last_update = datetime.now(timezone.utc).isoformat()
    write_json_atomic(database_dir / "metrics.json", metrics.to_dict())

    with _phase(metrics, "publish"):
        publish(database_dir, changed=metrics.offers_saved > 0, remote=remote, branch=branch)

    logger.info(
        "=== 完了: 保存 %d 件, 所要時間 %.1f 秒 ===",
        metrics.offers_saved, sum(metrics.durations.values()),
    )
    return metrics


def main() -> int:
    setup_logging()
    logger.info("=== offer ミラー 開始 ===")
    try:
        run(offers_dir=OFFERS_DIR)
    except FetchError as e:
        logger.error("取得に失敗したため中断しました: %s", e)
        return 1
    except Exception:
        logger.exception("予期しないエラーで中断しました")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
