from __future__ import annotations

from pathlib import Path

import anyio
import pytest

from diffreview.config import ReviewConfig
from diffreview.local.platform import LocalDiffError
from diffreview.local.platform import LocalPlatform
from diffreview.local.platform import parse_git_diff
from diffreview.review.models import ReviewComment

DIFF = """diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@
 import os
-import sys
+import sys, re
+import json
 print(os.getcwd())
diff --git a/docs/new.md b/docs/new.md
new file mode 100644
index 0000000..3333333
--- /dev/null
+++ b/docs/new.md
@@ -0,0 +1,2 @@
+# Title
+body
diff --git a/old.txt b/old.txt
deleted file mode 100644
index 4444444..0000000
--- a/old.txt
+++ /dev/null
@@ -1 +0,0 @@
-bye
diff --git a/a.py b/b.py
similarity index 100%
rename from a.py
rename to b.py
"""


def test_parse_git_diff_statuses_and_counts() -> None:
    files = parse_git_diff(DIFF)
    assert [(f.filename, f.status, f.additions, f.deletions) for f in files] == [
        ("src/app.py", "modified", 2, 1),
        ("docs/new.md", "added", 2, 0),
        ("old.txt", "deleted", 0, 1),
        ("b.py", "renamed", 0, 0),
    ]


def test_parse_git_diff_patch_starts_at_first_hunk() -> None:
    files = parse_git_diff(DIFF)
    assert files[0].patch is not None
    assert files[0].patch.startswith("@@ -1,3 +1,4 @@")
    assert "--- a/src/app.py" not in files[0].patch
    assert files[3].patch is None
    assert files[3].previous_filename == "a.py"


def test_parse_git_diff_empty_input() -> None:
    assert parse_git_diff("") == []


def test_patch_file_platform(tmp_path: Path) -> None:
    patch_path = tmp_path / "change.patch"
    patch_path.write_text(DIFF, encoding="utf-8")
    platform = LocalPlatform.create(ReviewConfig(git_platform="local", patch=str(patch_path)), repo_path=str(tmp_path))

    prs = anyio.run(platform.get_pull_requests, "local")
    assert len(prs) == 1
    assert prs[0].id == "local-patch"
    assert prs[0].title == "Patch: change.patch"

    files = anyio.run(platform.get_file_changes, "local", "local-patch")
    assert [f.filename for f in files] == ["src/app.py", "docs/new.md", "old.txt", "b.py"]

    assert anyio.run(platform.has_reviewed, "local", "local-patch") is False
    anyio.run(platform.post_comment, "local", "local-patch", ReviewComment(type="summary", content="x"))


def test_missing_patch_file_raises(tmp_path: Path) -> None:
    with pytest.raises(LocalDiffError):
        LocalPlatform.create(ReviewConfig(git_platform="local", patch=str(tmp_path / "missing.patch")))


def test_not_a_git_repository_raises(tmp_path: Path) -> None:
    with pytest.raises(LocalDiffError):
        LocalPlatform.create(ReviewConfig(git_platform="local"), repo_path=str(tmp_path), git_bin="definitely-not-git")
