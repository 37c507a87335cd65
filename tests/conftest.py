import sys
from pathlib import Path

import pytest

# Repo root = one level above tests/
REPO_ROOT = Path(__file__).resolve().parents[1]

# Ensure repo root is on sys.path so `import cli` works (root file).
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


INTRO_MD = """# Overview
What this topic covers.

# Setup
Install the toolchain.

# Usage
Run the cache warmer.
"""

CACHING_MD = """# Caching
A cache sits in front of the database.

## Write-through
Writes go to the cache and the database.

# Eviction
The cache uses LRU eviction when full.
"""

CATALOG_YAML = """topics:
  - id: basics
    title: Basics
    documents:
      - id: intro
        title: Introduction
        path: basics/intro.md
      - id: caching
        title: Caching
        path: basics/caching.md
  - id: extra
    title: Extra
    documents:
      - id: missing
        title: Not written yet
        path: extra/missing.md
"""

CONFIG_YAML = """app:
  catalog: catalog.yaml
  docs_root: docs
  state_file: state/progress.json
  log_dir: logs
search:
  limit: 5
"""


@pytest.fixture
def study_dir(tmp_path: Path) -> Path:
    """A small on-disk study site: config, catalog and two of three documents."""
    (tmp_path / "docs" / "basics").mkdir(parents=True)
    (tmp_path / "docs" / "basics" / "intro.md").write_text(INTRO_MD, encoding="utf-8")
    (tmp_path / "docs" / "basics" / "caching.md").write_text(CACHING_MD, encoding="utf-8")
    (tmp_path / "catalog.yaml").write_text(CATALOG_YAML, encoding="utf-8")
    (tmp_path / "config.yaml").write_text(CONFIG_YAML, encoding="utf-8")
    return tmp_path
