"""
JSON document store.

The whole application state lives in one JSON file that is read and written
as a unit. Writers are serialized by an in-process lock held for the full
load/mutate/save cycle; readers never take it.
"""
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel

from schemas import COLLECTIONS, Document

logger = logging.getLogger(__name__)


def empty_document() -> Dict[str, List[Dict[str, Any]]]:
    return Document().model_dump(by_alias=True)


class JsonStore:
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.RLock()

    def initialize(self) -> Dict[str, Any]:
        """Create the file with empty collections unless a readable one exists."""
        with self._lock:
            return self.load()

    def load(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                document = json.load(fh)
        except FileNotFoundError:
            logger.info("No data file at %s, creating an empty one", self.path)
            return self._reset()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Data file %s is unreadable (%s), starting from an empty document", self.path, exc)
            return self._reset()

        if not isinstance(document, dict):
            logger.warning("Data file %s does not hold an object, starting from an empty document", self.path)
            return self._reset()

        for collection in COLLECTIONS:
            if not isinstance(document.get(collection), list):
                document[collection] = []
        return document

    def save(self, document: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".data-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    @contextmanager
    def mutate(self) -> Iterator[Dict[str, Any]]:
        """
        Load the document under the writer lock and persist it when the block
        finishes. A block that raises leaves the file untouched.
        """
        with self._lock:
            document = self.load()
            yield document
            self.save(document)

    def _reset(self) -> Dict[str, Any]:
        document = empty_document()
        self.save(document)
        return document


def create_document(document: Dict[str, Any], collection: str, data: BaseModel) -> Dict[str, Any]:
    """Append a model to a collection and return the stored dict."""
    record = data.model_dump(by_alias=True, mode="json")
    document[collection].append(record)
    return record


def get_documents(
    document: Dict[str, Any],
    collection: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    filter_dict = filter_dict or {}
    items = [
        item for item in document.get(collection, [])
        if all(item.get(key) == value for key, value in filter_dict.items())
    ]
    return items[:limit] if limit is not None else items


def find_document(document: Dict[str, Any], collection: str, **criteria) -> Optional[Dict[str, Any]]:
    matches = get_documents(document, collection, criteria, limit=1)
    return matches[0] if matches else None
