"""GraphQL ページ取得モジュール.

エラー分類:
  1. 構造化されたレスポンスが無い通信エラー → TransportError（リトライしない）
  2. errors と一緒に有効な data が返ってきた → 成功として扱う
  3. errors のみで有効な data が無い → RETRY_DELAY 秒待って同じ引数で再試行
     (tenacity.Retrying, MAX_RETRIES で上限を設定可能)
"""

from __future__ import annotations

import logging
import time
from typing import Callable

import requests
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    stop_never,
    wait_fixed,
)

from src.config import (
    GRAPHQL_URL,
    MAX_RETRIES,
    REQUEST_HEADERS,
    REQUEST_TIMEOUT,
    RETRY_DELAY,
)
from src.models import PageResult, Paging

logger = logging.getLogger(__name__)

ResultSelector = Callable[[dict | None], dict]


class FetchError(Exception):
    """ページ取得の失敗."""


class TransportError(FetchError):
    """通信エラー（構造化されたレスポンス無し）."""


class RetryLimitExceeded(FetchError):
    """リトライ上限に到達した."""


def _parse_page(payload: object) -> PageResult | None:
    """セレクタ適用後の payload が {elements, paging} 形式なら PageResult を返す."""
    if not isinstance(payload, dict):
        return None

    elements = payload.get("elements")
    paging = payload.get("paging")
    if not isinstance(elements, list) or not isinstance(paging, dict):
        return None

    try:
        cursor = Paging(
            start=int(paging["start"]),
            count=int(paging["count"]),
            total=int(paging["total"]),
        )
    except (KeyError, TypeError, ValueError):
        return None

    return PageResult(elements=elements, paging=cursor)


def _error_messages(body: dict) -> list[str]:
    errors = body.get("errors") or []
    if not isinstance(errors, list):
        return [str(errors)]
    return [e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors]


def request_page(
    session: requests.Session,
    query: str,
    variables: dict,
    start: int,
    count: int,
    url: str = GRAPHQL_URL,
) -> dict:
    """1 回分の GraphQL リクエストを送り、JSON オブジェクトのボディを返す.

    HTTP エラーでもボディが JSON オブジェクトならそのまま返す（GraphQL の
    errors を含むことがあるため）。

    Raises:
        TransportError: 通信失敗、またはボディが JSON オブジェクトでない場合
    """
    body = {"query": query, "variables": {**variables, "start": start, "count": count}}
    try:
        resp = session.post(url, json=body, headers=REQUEST_HEADERS, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise TransportError(f"リクエスト失敗: {e}") from e

    try:
        data = resp.json()
    except ValueError as e:
        raise TransportError(
            f"レスポンスが JSON ではありません: status={resp.status_code}"
        ) from e

    if not isinstance(data, dict):
        raise TransportError(f"想定外のレスポンス形式: status={resp.status_code}")
    return data


def _before_sleep(retry_state: RetryCallState) -> None:
    logger.info(
        "%.1f 秒後に再試行します (試行 %d 回目が失敗)",
        retry_state.upcoming_sleep, retry_state.attempt_number,
    )


def fetch_page(
    query: str,
    variables: dict,
    selector: ResultSelector,
    start: int = 0,
    count: int = 1000,
    *,
    session: requests.Session | None = None,
    retry_delay: float = RETRY_DELAY,
    max_retries: int | None = MAX_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
) -> PageResult:
    """1 ページ取得する. アプリケーションエラーは固定間隔で再試行する.

    Args:
        query: GraphQL クエリ文書
        variables: start/count 以外のクエリ変数
        selector: data から {elements, paging} を取り出す関数
        start: 取得開始位置
        count: 取得件数
        session: 使い回す requests.Session。None の場合はこの呼び出し内だけで使う
        max_retries: 再試行回数の上限。None なら無制限

    Returns:
        PageResult

    Raises:
        TransportError: 通信エラー（再試行しない）
        RetryLimitExceeded: 再試行回数が上限に達した場合
    """
    if session is None:
        with requests.Session() as own_session:
            return fetch_page(
                query, variables, selector, start, count,
                session=own_session, retry_delay=retry_delay,
                max_retries=max_retries, sleep=sleep,
            )

    def attempt() -> PageResult | None:
        body = request_page(session, query, variables, start, count)
        page = _parse_page(selector(body.get("data")))
        if page is None:
            logger.warning(
                "ページ取得エラー: start=%d, count=%d, errors=%s",
                start, count, _error_messages(body) or "応答形式が不正",
            )
        elif body.get("errors"):
            logger.warning(
                "部分エラーを含むレスポンスを採用: start=%d, errors=%s",
                start, _error_messages(body),
            )
        return page

    # TransportError は retry 条件に含めないのでそのまま送出される
    retrying = Retrying(
        retry=retry_if_result(lambda page: page is None),
        wait=wait_fixed(retry_delay),
        stop=stop_never if max_retries is None else stop_after_attempt(max_retries + 1),
        sleep=sleep,
        before_sleep=_before_sleep,
    )
    try:
        return retrying(attempt)
    except RetryError as e:
        raise RetryLimitExceeded(
            f"リトライ上限 {max_retries} 回に到達: start={start}, count={count}"
        ) from e
