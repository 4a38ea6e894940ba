"""派生インデックスの再生成.

保存済み offer を全件走査し、以下の 4 ファイルを毎回ゼロから作り直す:
  - namespaces.json: namespace -> offer id のリスト
  - titles.json:     offer id -> タイトル
  - tags.json:       tag id -> tag
  - list.json:       offer ごとの要約タプル

4 ファイルは全部そろって置き換わるか、1 つも置き換わらないかのどちらか。
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from src.models import IndexSet
from src.store import OfferStore

logger = logging.getLogger(__name__)

THUMBNAIL_TYPE = "Thumbnail"


def to_epoch_seconds(value: str | None) -> int:
    """ISO 8601 文字列を UNIX 秒に変換する. 文字列以外や変換できない値は 0."""
    if not value or not isinstance(value, str):
        return 0
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        logger.debug("日時の変換に失敗: %r", value)
        return 0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def find_thumbnail(offer: dict) -> str:
    """keyImages のうち最初の Thumbnail の URL. 無ければ空文字."""
    images = offer.get("keyImages")
    if not isinstance(images, list):
        return ""
    for image in images:
        if isinstance(image, dict) and image.get("type") == THUMBNAIL_TYPE:
            return image.get("url") or ""
    return ""


def to_list_entry(offer: dict) -> list:
    """list.json の 1 行分を作る."""
    categories = offer.get("categories")
    if not isinstance(categories, list):
        categories = []
    seller = offer.get("seller")
    if not isinstance(seller, dict):
        seller = {}
    return [
        offer["id"],
        offer.get("namespace") or "",
        offer.get("title") or "",
        [c["path"] for c in categories if isinstance(c, dict) and c.get("path")],
        seller.get("name") or "",
        to_epoch_seconds(offer.get("creationDate")),
        to_epoch_seconds(offer.get("lastModifiedDate")),
        find_thumbnail(offer),
        offer.get("productSlug") or "",
    ]


def _add_offer(index: IndexSet, seen: dict[str, set[str]], offer: dict) -> None:
    offer_id = offer["id"]
    entry = to_list_entry(offer)

    tags = offer.get("tags") or []
    if not isinstance(tags, list):
        raise TypeError(f"tags が配列ではありません: {type(tags).__name__}")

    namespace = offer.get("namespace")
    if namespace:
        ids = seen.setdefault(namespace, set())
        if offer_id not in ids:
            ids.add(offer_id)
            index.namespaces.setdefault(namespace, []).append(offer_id)

    index.titles[offer_id] = offer.get("title") or ""

    for tag in tags:
        if isinstance(tag, dict) and tag.get("id") is not None:
            index.tags[str(tag["id"])] = tag

    index.offer_list.append(entry)


def build_indexes(offers: Iterable[dict]) -> IndexSet:
    """offer 群からインデックスを作る（純粋関数）.

    形式が不正な offer はログに残してスキップする。
    """
    index = IndexSet()
    seen: dict[str, set[str]] = {}

    for offer in offers:
        try:
            _add_offer(index, seen, offer)
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning("不正な offer をスキップ: id=%r (%s)", offer.get("id") if isinstance(offer, dict) else None, e)

    return index


def write_indexes(index: IndexSet, database_dir: Path) -> list[Path]:
    """4 ファイルをまとめて書き出す.

    先にすべて一時ファイルへ書き、全部成功してから置き換える。
    書き込み途中で失敗した場合は一時ファイルを消して既存ファイルはそのまま残す。

    置き換え (os.replace) の途中で失敗した場合のみ、置き換え済みのファイルと
    未置き換えのファイルが混在しうる。この場合も残りの一時ファイルは消す。

    Returns:
        書き出したファイルのパス
    """
    database_dir.mkdir(parents=True, exist_ok=True)
    staged: list[tuple[str, Path]] = []

    try:
        for name, content in index.artifacts().items():
            fd, tmp_name = tempfile.mkstemp(dir=database_dir, prefix=f".{name}.", suffix=".tmp")
            staged.append((tmp_name, database_dir / name))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(content, f, ensure_ascii=False, separators=(",", ":"))
    except BaseException:
        for tmp_name, _ in staged:
            Path(tmp_name).unlink(missing_ok=True)
        raise

    try:
        for tmp_name, target in staged:
            os.replace(tmp_name, target)
    except BaseException:
        for tmp_name, _ in staged:
            Path(tmp_name).unlink(missing_ok=True)
        raise
    return [target for _, target in staged]


def rebuild(store: OfferStore, database_dir: Path) -> IndexSet:
    """保存済み offer からインデックスを作り直して書き出す."""
    index = build_indexes(store.iter_offers())
    write_indexes(index, database_dir)
    logger.info(
        "インデックス更新: offers=%d, namespaces=%d, tags=%d",
        len(index.offer_list), len(index.namespaces), len(index.tags),
    )
    return index
