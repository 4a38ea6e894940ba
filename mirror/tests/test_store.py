"""store モジュールのユニットテスト."""

import json

import pytest

from src.store import OfferStore, write_json_atomic


class TestOfferStore:
    """OfferStore のテスト."""

    def test_save_writes_file(self, tmp_path):
        with OfferStore(tmp_path) as store:
            store.save({"id": "abc", "title": "Game"})
            assert store.wait() == 1

        saved = json.loads((tmp_path / "abc.json").read_text(encoding="utf-8"))
        assert saved == {"id": "abc", "title": "Game"}

    def test_last_write_wins(self, tmp_path):
        """同じ id は後から保存した内容で上書きされること."""
        with OfferStore(tmp_path, max_workers=4) as store:
            for i in range(20):
                store.save({"id": "abc", "title": f"v{i}"})
            store.wait()

        saved = json.loads((tmp_path / "abc.json").read_text(encoding="utf-8"))
        assert saved["title"] == "v19"

    def test_non_ascii_preserved(self, tmp_path):
        with OfferStore(tmp_path) as store:
            store.save({"id": "jp", "title": "フォートナイト"})

        assert "フォートナイト" in (tmp_path / "jp.json").read_text(encoding="utf-8")

    def test_wait_resets_pending(self, tmp_path):
        with OfferStore(tmp_path) as store:
            store.save({"id": "a"})
            store.save({"id": "b"})
            assert store.wait() == 2
            assert store.wait() == 0
            assert store.saved == 2


class TestIterOffers:
    """iter_offers のテスト."""

    def test_sorted_by_file_name(self, tmp_path):
        with OfferStore(tmp_path) as store:
            for offer_id in ["c", "a", "b"]:
                store.save({"id": offer_id})
            store.wait()

            assert [o["id"] for o in store.iter_offers()] == ["a", "b", "c"]

    def test_skips_malformed(self, tmp_path):
        """壊れたファイルはスキップして残りを読むこと."""
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        (tmp_path / "list.json").write_text("[1, 2]", encoding="utf-8")
        (tmp_path / "noid.json").write_text('{"title": "x"}', encoding="utf-8")
        (tmp_path / "ok.json").write_text('{"id": "ok"}', encoding="utf-8")

        with OfferStore(tmp_path) as store:
            offers = list(store.iter_offers())

        assert offers == [{"id": "ok"}]

    def test_ignores_temp_files(self, tmp_path):
        (tmp_path / ".ok.json.abc.tmp").write_text('{"id": "tmp"}', encoding="utf-8")

        with OfferStore(tmp_path) as store:
            assert list(store.iter_offers()) == []


class TestWriteJsonAtomic:
    """write_json_atomic のテスト."""

    def test_failure_keeps_existing_file(self, tmp_path):
        target = tmp_path / "a.json"
        target.write_text('{"id": "a"}', encoding="utf-8")

        with pytest.raises(TypeError):
            write_json_atomic(target, {"bad": object()})

        assert target.read_text(encoding="utf-8") == '{"id": "a"}'
        assert list(tmp_path.iterdir()) == [target]


class TestUnsafeIds:
    """ファイル名に使えない id のテスト."""

    @pytest.mark.parametrize("offer_id", ["../escaped", "../titles", "a/b", "a\\b", ".."])
    def test_rejected(self, tmp_path, offer_id):
        """offers ディレクトリの外に書き込まないこと."""
        offers_dir = tmp_path / "database" / "offers"

        with OfferStore(offers_dir) as store:
            assert store.save({"id": offer_id}) is None
            store.wait()
            assert store.failed == 1
            assert store.saved == 0

        assert sorted(p.name for p in (tmp_path / "database").iterdir()) == ["offers"]
        assert list(offers_dir.iterdir()) == []

    def test_safe_id_accepted(self, tmp_path):
        with OfferStore(tmp_path) as store:
            assert store.is_safe_id("4fe75bbc5a674f4f9b356b5c90567da5")
            assert store.is_safe_id("offer.v2")
