"""
TASKTREE - Document Store
=========================
JSON persistence for one task document.

- layout auto-detection ("items" -> flat, "todos" -> tree, bare list -> legacy tree)
- legacy migration on load
- structural validation on load
- atomic save (temp file in the same directory + os.replace)
- transactional update: load -> modify -> save, file untouched on failure
"""

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from pydantic import ValidationError

from .adapters import DocumentAdapter, FlatAdapter, TreeAdapter
from .errors import StorageError
from .schema import (
    FlatDocument,
    Layout,
    TreeDocument,
    dump_document,
    flatten,
    parse_legacy_tree,
    unflatten,
    validate_document,
)

logger = logging.getLogger("tasktree.storage")

LOCAL_DB_NAME = ".todos"
DEFAULT_DB_NAME = ".todos.json"
DB_PATH_ENV = "TASKTREE_DB_PATH"


# ============================================================
# DATA PATH DISCOVERY
# ============================================================

def find_local_db(start: Optional[Path] = None) -> Optional[Path]:
    """Nearest `.todos` file in start or any of its parents"""
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in [directory, *directory.parents]:
        candidate = candidate_dir / LOCAL_DB_NAME
        if candidate.is_dir():
            raise StorageError(f"{candidate} is a directory, not a task file")
        if candidate.is_file():
            return candidate
    return None


def resolve_data_path(
    explicit: Optional[Union[str, Path]] = None,
    cwd: Optional[Path] = None,
    home: Optional[Path] = None,
) -> Path:
    """
    Where the task document lives. First hit wins:

    1. explicit path (--data-path)
    2. `.todos` in the current directory or a parent
    3. $TASKTREE_DB_PATH
    4. ~/.todos.json
    """
    if explicit:
        return Path(explicit).expanduser()

    local = find_local_db(cwd)
    if local is not None:
        return local

    env_path = os.environ.get(DB_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()

    return (home or Path.home()) / DEFAULT_DB_NAME


# ============================================================
# LAYOUT DETECTION
# ============================================================

def detect_layout(data: Any) -> Optional[Layout]:
    """Layout of parsed JSON; None for a legacy bare list"""
    if isinstance(data, list):
        return None
    if isinstance(data, dict):
        if "items" in data:
            return Layout.FLAT
        if "todos" in data:
            return Layout.TREE
    raise StorageError("unrecognised document: expected an 'items' or 'todos' key, or a list")


def adapter_for(document) -> DocumentAdapter:
    if isinstance(document, FlatDocument):
        return FlatAdapter(document)
    return TreeAdapter(document)


def convert(adapter: DocumentAdapter, layout: Layout) -> DocumentAdapter:
    """Same items in the other layout; no-op when already there"""
    if adapter.layout == layout:
        return adapter
    if layout == Layout.FLAT:
        return FlatAdapter(flatten(adapter.document))
    return TreeAdapter(unflatten(adapter.document))


class DocumentStore:
    """One JSON task document on disk"""

    def __init__(self, path: Union[str, Path], default_layout: Layout = Layout.FLAT):
        self.path = Path(path)
        self.default_layout = default_layout

    def exists(self) -> bool:
        return self.path.is_file()

    # ========================================
    # LOAD / SAVE
    # ========================================

    def load(self) -> DocumentAdapter:
        """Adapter over the document; an empty document when the file is missing or empty"""
        if not self.exists():
            return self.empty()

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"cannot read {self.path}: {e}") from e

        if not raw.strip():
            return self.empty()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"{self.path} is not valid JSON: {e}") from e

        layout = detect_layout(data)
        try:
            if layout is None:
                document = parse_legacy_tree(data)
                logger.info(f"📦 Migrated legacy document: {self.path} ({sum(1 for _ in document.walk())} items)")
            elif layout == Layout.FLAT:
                document = FlatDocument.model_validate(data)
            else:
                document = TreeDocument.model_validate(data)
                document.relink()
        except ValidationError as e:
            raise StorageError(f"{self.path} has malformed items: {e}") from e

        problems = validate_document(document)
        if problems:
            raise StorageError(f"{self.path} is inconsistent: " + "; ".join(problems))

        adapter = adapter_for(document)
        logger.debug(f"Loaded {len(adapter)} items from {self.path} ({adapter.layout.value})")
        return adapter

    def empty(self) -> DocumentAdapter:
        if self.default_layout == Layout.TREE:
            return TreeAdapter()
        return FlatAdapter()

    def save(self, adapter: DocumentAdapter) -> None:
        """Write the document atomically"""
        payload = json.dumps(dump_document(adapter.document), indent=2, default=str)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f"{self.path.name}-",
                suffix=".tmp",
                dir=str(self.path.parent),
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.write("\n")
                os.replace(tmp_path, self.path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"cannot write {self.path}: {e}") from e

        logger.info(f"✅ Saved {len(adapter)} items to {self.path}")

    @contextmanager
    def update(self) -> Iterator[DocumentAdapter]:
        """
        Transactional load/modify/save.

            with store.update() as adapter:
                ...

        The document is only written when the block exits without an error.
        """
        adapter = self.load()
        yield adapter
        self.save(adapter)

    def init(self, layout: Optional[Layout] = None) -> bool:
        """Create an empty document; False when one already exists"""
        if self.exists():
            logger.info(f"📂 Task file already exists: {self.path}")
            return False
        layout = layout or self.default_layout
        self.save(FlatAdapter() if layout == Layout.FLAT else TreeAdapter())
        logger.info(f"🚀 Created {layout.value} task file: {self.path}")
        return True

    def migrate(self, layout: Layout) -> DocumentAdapter:
        """Rewrite the document in `layout`"""
        adapter = convert(self.load(), layout)
        self.save(adapter)
        logger.info(f"📦 Migrated {self.path} to {layout.value} layout")
        return adapter
