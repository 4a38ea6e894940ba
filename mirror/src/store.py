"""offer ファイルストア.

database/offers/{id}.json に 1 offer = 1 ファイルで保存する。
書き込みはスレッドプールで並行に行い、wait() で全件の完了を待ち合わせる。
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import zlib
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from threading import Lock
from typing import Iterator

from src.config import OFFERS_DIR, WRITE_WORKERS

logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, data: object, indent: int | None = 2) -> None:
    """一時ファイルに書いてから os.replace で置き換える."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=indent)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class OfferStore:
    """offer を id ごとのファイルとして永続化する."""

    def __init__(self, offers_dir: Path = OFFERS_DIR, max_workers: int = WRITE_WORKERS):
        self.offers_dir = Path(offers_dir)
        self.offers_dir.mkdir(parents=True, exist_ok=True)
        # 同じ id は常に同じワーカーに割り当てて書き込み順を保つ
        self._workers = [
            ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"offer-writer-{i}")
            for i in range(max(1, max_workers))
        ]
        self._pending: list[Future] = []
        self._lock = Lock()
        self.saved = 0
        self.failed = 0

    def __enter__(self) -> "OfferStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def path_for(self, offer_id: str) -> Path:
        return self.offers_dir / f"{offer_id}.json"

    def is_safe_id(self, offer_id: str) -> bool:
        """id が offers_dir 直下のファイル名として安全か."""
        if any(s in offer_id for s in ("/", "\\", "..", "\0")):
            return False
        path = self.path_for(offer_id).resolve()
        return path.parent == self.offers_dir.resolve()

    def save(self, offer: dict) -> Future | None:
        """offer の書き込みを投入する. 同じ id は後勝ちで上書き.

        Returns:
            書き込み完了を表す Future。id が無い・ファイル名に使えない offer は None。
        """
        offer_id = offer.get("id") if isinstance(offer, dict) else None
        if not offer_id:
            logger.warning("id の無い offer をスキップ: %r", offer)
            with self._lock:
                self.failed += 1
            return None

        offer_id = str(offer_id)
        if not self.is_safe_id(offer_id):
            logger.warning("ファイル名に使えない id の offer をスキップ: %r", offer_id)
            with self._lock:
                self.failed += 1
            return None

        worker = self._workers[zlib.crc32(offer_id.encode("utf-8")) % len(self._workers)]
        future = worker.submit(self._write, offer_id, offer)
        with self._lock:
            self._pending.append(future)
        return future

    def _write(self, offer_id: str, offer: dict) -> bool:
        try:
            write_json_atomic(self.path_for(offer_id), offer)
        except (OSError, TypeError, ValueError) as e:
            logger.error("offer 保存失敗: id=%s, error=%s", offer_id, e)
            with self._lock:
                self.failed += 1
            return False
        with self._lock:
            self.saved += 1
        return True

    def wait(self) -> int:
        """投入済みの書き込みがすべて終わるまで待つ.

        Returns:
            今回待ち合わせた書き込みのうち成功した件数
        """
        with self._lock:
            pending, self._pending = self._pending, []
        return sum(1 for f in pending if f.result())

    def close(self) -> None:
        self.wait()
        for worker in self._workers:
            worker.shutdown(wait=True)

    def iter_offers(self) -> Iterator[dict]:
        """保存済み offer をファイル名順に遅延読み込みする. 壊れたファイルはスキップ."""
        for path in sorted(self.offers_dir.glob("*.json")):
            try:
                offer = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("offer 読み込み失敗、スキップ: %s (%s)", path.name, e)
                continue
            if not isinstance(offer, dict) or not offer.get("id"):
                logger.warning("offer 形式が不正、スキップ: %s", path.name)
                continue
            yield offer
