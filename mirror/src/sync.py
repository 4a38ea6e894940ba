"""database ディレクトリを git でコミット・プッシュする."""

from __future__ import annotations

import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


def _git(args: list[str], cwd: Path, check: bool = True) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=check,
    )


def commit_message(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"Update database {now.strftime('%Y-%m-%dT%H:%M:%SZ')}"


def publish(
    database_dir: Path,
    changed: bool,
    remote: str | None = None,
    branch: str | None = None,
) -> bool:
    """database_dir の変更を 1 コミットにまとめ、remote があればプッシュする.

    Args:
        database_dir: git 管理下の database ディレクトリ
        changed: 今回の実行で何か保存したか
        remote: プッシュ先リモート名。None ならプッシュしない
        branch: プッシュ先ブランチ。None なら現在の追跡設定に従う

    Returns:
        コミットを作成したら True
    """
    if not changed:
        logger.info("変更なし。同期をスキップします。")
        return False

    cwd = Path(database_dir).resolve()
    _git(["add", "--", str(cwd)], cwd=cwd)

    # database_dir 配下に差分が無ければ exit 0
    staged = _git(["diff", "--cached", "--quiet", "--", str(cwd)], cwd=cwd, check=False)
    if staged.returncode == 0:
        logger.info("ステージされた差分なし。同期をスキップします。")
        return False

    message = commit_message()
    _git(["commit", "-m", message, "--", str(cwd)], cwd=cwd)
    logger.info("コミット作成: %s", message)

    if remote:
        push_args = ["push", remote] + ([branch] if branch else [])
        _git(push_args, cwd=cwd)
        logger.info("プッシュ完了: remote=%s, branch=%s", remote, branch or "(現在のブランチ)")

    return True
