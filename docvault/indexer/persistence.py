"""JSON persistence for DocVault collections.

Layout of the data directory::

    collections.json   {name: {"name": ..., "timestamp": ...}}
    <name>.json        [{"pageContent": ..., "metadata": {...}}, ...]

Every write rewrites the whole file. Read and write failures are logged
and reported as absent data; they never abort the caller. There is no
file locking, so two processes writing the same directory can lose each
other's updates.
"""

import json
import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from docvault.errors import PersistenceError
from docvault.models import DocumentChunk

logger = logging.getLogger(__name__)

REGISTRY_FILE = "collections.json"


def validate_collection_name(name: str) -> str:
    """Reject names that cannot be used as a file stem inside the data directory."""
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Collection name cannot be empty")
    if name != name.strip():
        raise ValueError(f"Collection name has leading or trailing whitespace: {name!r}")
    if "/" in name or "\\" in name or "\x00" in name or name.startswith("."):
        raise ValueError(f"Invalid collection name: {name!r}")
    if f"{name}.json" == REGISTRY_FILE:
        raise ValueError(f"Collection name is reserved: {name!r}")
    return name


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CollectionPersistence:
    """Reads and writes the registry and collection files."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)

    @property
    def registry_path(self) -> Path:
        return self.data_dir / REGISTRY_FILE

    def collection_path(self, name: str) -> Path:
        return self.data_dir / f"{validate_collection_name(name)}.json"

    def _ensure_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _read_json(self, path: Path) -> Any:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Malformed JSON in {path}: {e}", path=str(path)) from e
        except OSError as e:
            raise PersistenceError(f"Cannot read {path}: {e}", path=str(path)) from e

    def _write_json(self, path: Path, data: Any) -> None:
        """Write through a temporary file so readers never see half a file."""
        try:
            self._ensure_dir()
            fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{path.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Cannot write {path}: {e}", path=str(path)) from e
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialize {path}: {e}", path=str(path)) from e

    # Registry

    def load_registry(self) -> Dict[str, Dict[str, Any]]:
        """Load the collection registry; missing or malformed means empty."""
        if not self.registry_path.exists():
            logger.debug(f"No registry file at {self.registry_path}")
            return {}

        try:
            data = self._read_json(self.registry_path)
        except PersistenceError as e:
            logger.warning(f"Ignoring unreadable registry: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring registry {self.registry_path}: expected an object")
            return {}

        registry = {}
        for name, entry in data.items():
            if not isinstance(entry, dict):
                entry = {}
            registry[name] = {"name": name, "timestamp": entry.get("timestamp")}
        return registry

    def save_registry(self, registry: Dict[str, Dict[str, Any]]) -> bool:
        """Write the registry. Returns False (after logging) on failure."""
        try:
            self._write_json(self.registry_path, registry)
        except PersistenceError as e:
            logger.error(f"Error saving collections registry: {e}")
            return False
        logger.debug(f"Saved registry with {len(registry)} collections: {', '.join(registry)}")
        return True

    def register(self, *names: str) -> bool:
        """Add or refresh registry entries for the given collections."""
        registry = self.load_registry()
        timestamp = _now_iso()
        for name in names:
            registry[name] = {"name": name, "timestamp": timestamp}
        return self.save_registry(registry)

    # Collections

    def load_collection(self, name: str) -> Optional[List[DocumentChunk]]:
        """Load a collection's chunks (without vectors).

        Returns:
            List of chunks, or None if the file is missing or unusable
        """
        path = self.collection_path(name)
        if not path.exists():
            return None

        try:
            data = self._read_json(path)
        except PersistenceError as e:
            logger.warning(f"Treating collection '{name}' as absent: {e}")
            return None

        if not isinstance(data, list):
            logger.warning(f"Invalid document data in collection {name}, expected array")
            return None

        chunks = []
        skipped = 0
        for record in data:
            if not isinstance(record, dict):
                skipped += 1
                continue
            has_content = record.get("pageContent") is not None
            has_metadata = isinstance(record.get("metadata"), dict) and bool(record["metadata"])
            if not (has_content or has_metadata):
                skipped += 1
                continue
            chunks.append(DocumentChunk.from_record(record))

        if skipped:
            logger.warning(f"Skipped {skipped} invalid records in collection {name}")
        logger.debug(f"Loaded {len(chunks)} chunks from {path}")
        return chunks

    def save_collection(self, name: str, chunks: List[DocumentChunk]) -> bool:
        """Rewrite a collection file and refresh its registry entry.

        Returns:
            True if the collection file was written
        """
        path = self.collection_path(name)
        try:
            self._write_json(path, [chunk.to_record() for chunk in chunks])
        except PersistenceError as e:
            logger.error(f"Error saving collection {name}: {e}")
            return False

        if not self.register(name):
            # The file scan in list_collection_names() recovers this entry later
            logger.warning(f"Collection '{name}' saved but its registry entry was not updated")

        logger.info(f"Saved {len(chunks)} documents to collection: {name}")
        return True

    def scan_collection_names(self) -> List[str]:
        """Collection names found as ``*.json`` files in the data directory."""
        if not self.data_dir.is_dir():
            return []
        names = []
        for path in self.data_dir.glob("*.json"):
            if path.name == REGISTRY_FILE or path.name.startswith("."):
                continue
            names.append(path.stem)
        return sorted(names)

    def list_collection_names(self) -> List[str]:
        """Merge registry entries with scanned files, reconciling the registry.

        Files with no registry entry are added to the registry. Registry
        entries with no file are still listed, with a warning.
        """
        registry = self.load_registry()
        scanned = self.scan_collection_names()

        unregistered = [name for name in scanned if name not in registry]
        if unregistered:
            logger.warning(f"Reconciling unregistered collections: {', '.join(unregistered)}")
            self.register(*unregistered)

        scanned_set = set(scanned)
        for name in registry:
            if name not in scanned_set:
                logger.warning(f"Collection metadata exists for {name} but file is missing")

        return sorted(set(registry) | scanned_set)

    def reset(self) -> None:
        """Delete the whole data directory."""
        if self.data_dir.exists():
            logger.info(f"Deleting directory: {self.data_dir}")
            shutil.rmtree(self.data_dir)
