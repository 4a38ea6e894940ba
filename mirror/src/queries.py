"""GraphQL クエリ文書の読み込みと結果セレクタ.

クエリ文書は queries/*.graphql をそのまま送信する（中身は解釈しない）。
セレクタはレスポンスの data から {elements, paging} 部分を取り出す純粋関数。
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from src.config import QUERIES_DIR

STORE_OFFERS_QUERY = "FetchStoreOffersQuery"
NAMESPACE_OFFERS_QUERY = "FetchStoreOffersByNamespaceQuery"


@lru_cache(maxsize=None)
def load_query(name: str, queries_dir: Path = QUERIES_DIR) -> str:
    """queries_dir/{name}.graphql を読み込む."""
    return (queries_dir / f"{name}.graphql").read_text(encoding="utf-8")


def _deep_get(d: dict, *keys: str):
    """ネストされた dict から安全に値を取得する."""
    for key in keys:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d


def select_search_store(data: dict | None) -> dict:
    """Catalog.searchStore を取り出す."""
    return _deep_get(data, "Catalog", "searchStore") or {}


def select_catalog_offers(data: dict | None) -> dict:
    """Catalog.catalogOffers を取り出す."""
    return _deep_get(data, "Catalog", "catalogOffers") or {}
