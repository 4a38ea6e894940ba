"""データモデル定義."""

from dataclasses import dataclass, field


@dataclass
class Paging:
    """ページングカーソル. total はバックエンドが返した値を正とする."""

    start: int
    count: int
    total: int

    @property
    def next_start(self) -> int:
        return self.start + self.count


@dataclass
class PageResult:
    """1 ページ分の取得結果."""

    elements: list[dict]
    paging: Paging


@dataclass
class IndexSet:
    """offers から再生成する派生インデックス群."""

    namespaces: dict[str, list[str]] = field(default_factory=dict)
    titles: dict[str, str] = field(default_factory=dict)
    tags: dict[str, dict] = field(default_factory=dict)
    offer_list: list[list] = field(default_factory=list)

    def artifacts(self) -> dict[str, object]:
        """ファイル名 -> 内容 の対応を返す."""
        return {
            "namespaces.json": self.namespaces,
            "titles.json": self.titles,
            "tags.json": self.tags,
            "list.json": self.offer_list,
        }


@dataclass
class RunMetrics:
    """1 回の実行の計測値. run() の戻り値として受け渡す."""

    durations: dict[str, float] = field(default_factory=dict)  # フェーズ名 -> 秒
    offers_saved: int = 0
    last_update: str = ""  # ISO 8601 (UTC)

    def to_dict(self) -> dict:
        return {
            "durations": {k: round(v, 3) for k, v in self.durations.items()},
            "offersSaved": self.offers_saved,
            "lastUpdate": self.last_update,
        }
