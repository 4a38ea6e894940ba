"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

_MIRROR_ROOT = Path(__file__).resolve().parent.parent

# --- GraphQL エンドポイント ---
GRAPHQL_URL: str = os.getenv("GRAPHQL_URL", "https://graphql.epicgames.com/graphql")
REQUEST_ORIGIN: str = os.getenv("REQUEST_ORIGIN", "https://epicgames.com")
REQUEST_HEADERS = {
    "Origin": REQUEST_ORIGIN,
    "Content-Type": "application/json",
}
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))  # 秒

# --- ストア設定 ---
LOCALE: str = os.getenv("LOCALE", "en")
COUNTRY: str = os.getenv("COUNTRY", "US")

# ストア検索以外に取得する namespace (例: "ue" = Unreal Engine マーケット)
NAMESPACES: list[str] = [
    ns.strip() for ns in os.getenv("NAMESPACES", "").split(",") if ns.strip()
]

# --- ページング・リトライ ---
PAGE_SIZE = int(os.getenv("PAGE_SIZE", "1000"))
RETRY_DELAY = float(os.getenv("RETRY_DELAY", "1.0"))  # 秒
MAX_RETRIES: int | None = int(os.getenv("MAX_RETRIES", "0")) or None  # None = 無制限

# --- 保存先 ---
DATABASE_DIR = Path(os.getenv("DATABASE_DIR", str(_PROJECT_ROOT / "database")))
OFFERS_DIR = Path(os.getenv("OFFERS_DIR", str(DATABASE_DIR / "offers")))
WRITE_WORKERS = int(os.getenv("WRITE_WORKERS", "8"))

# --- クエリ ---
QUERIES_DIR = Path(os.getenv("QUERIES_DIR", str(_MIRROR_ROOT / "queries")))

# --- Git 同期 ---
GIT_REMOTE: str | None = os.getenv("GIT_REMOTE") or None
GIT_BRANCH: str | None = os.getenv("GIT_BRANCH") or None

# --- ログ ---
LOG_DIR = Path(os.getenv("LOG_DIR", str(_MIRROR_ROOT / "logs")))
