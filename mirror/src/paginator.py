"""ページング取得ループ.

バックエンドが返した paging (start + count) を次の開始位置とし、
total に達するまでページを順に取得して OfferStore に保存する。
"""

from __future__ import annotations

import logging
from threading import Event
from typing import Callable

from src.config import PAGE_SIZE
from src.fetcher import ResultSelector, fetch_page
from src.models import PageResult
from src.store import OfferStore

logger = logging.getLogger(__name__)

PageFetcher = Callable[..., PageResult]


def drain_all(
    query: str,
    variables: dict,
    selector: ResultSelector,
    store: OfferStore,
    *,
    page_size: int = PAGE_SIZE,
    fetch: PageFetcher = fetch_page,
    stop_event: Event | None = None,
    **fetch_kwargs,
) -> list[dict]:
    """全ページを取得し、各 offer を store に保存する.

    total=0 の場合も 1 回はリクエストする（空ページを受け取って終了）。
    戻る前に store への書き込み完了を待ち合わせる。

    Args:
        page_size: 1 リクエストあたりの取得件数
        fetch: 1 ページ取得関数（fetch_page 互換）
        stop_event: セットされるとページ間で取得を打ち切る

    Returns:
        取得した offer のリスト（取得順）
    """
    offers: list[dict] = []
    start = 0
    pages = 0

    while True:
        result = fetch(query, variables, selector, start, page_size, **fetch_kwargs)
        pages += 1

        for element in result.elements:
            store.save(element)
        offers.extend(result.elements)

        paging = result.paging
        logger.info(
            "ページ %d 取得: %d 件 (start=%d, total=%d)",
            pages, len(result.elements), paging.start, paging.total,
        )

        if paging.count <= 0:
            logger.warning("paging.count が不正 (%d) のため取得を終了", paging.count)
            break
        start = paging.next_start
        if start >= paging.total:
            break
        if stop_event is not None and stop_event.is_set():
            logger.warning("中断要求により取得を終了: start=%d, total=%d", start, paging.total)
            break

    saved = store.wait()
    logger.info("取得完了: %d ページ, %d 件取得, %d 件保存", pages, len(offers), saved)
    return offers
