import json
import logging
import os
import tempfile
from threading import Lock

from pydantic import ValidationError

from . import settings
from .errors import ERR, StoreError
from .models import StoredDocument, StoredTest

logger = logging.getLogger(__name__)


class DocumentStore:
    """
    Key-value store of ingested documents and generated tests, kept in one JSON file.

    Layout: ``{"<documentId>": {...document...}, "tests": {"<testId>": {...}}}``.
    Document records sit at the top level so files written by older builds
    still read. The owner opens and closes it; nothing here is global.
    """

    TESTS_KEY = "tests"

    def __init__(self, path: str | None = None):
        self.path = path or os.path.join(settings.DATA_DIR, settings.STORE_FILENAME)
        self._lock = Lock()
        self._data: dict | None = None

    # --- lifecycle ---

    def open(self) -> "DocumentStore":
        with self._lock:
            if self._data is not None:
                return self
            self._data = self._load()
        logger.info("Opened document store %s (%d documents)", self.path, len(self.document_ids()))
        return self

    def close(self) -> None:
        with self._lock:
            self._data = None

    @property
    def is_open(self) -> bool:
        return self._data is not None

    def __enter__(self) -> "DocumentStore":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(ERR["store_unreadable"], f"{self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(ERR["store_unreadable"], f"{self.path}: top level is not an object")
        return data

    def _commit(self, data: dict) -> None:
        # write-then-rename; memory only changes once the file is on disk
        try:
            folder = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(folder, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=".store_", suffix=".json", dir=folder)
        except OSError as e:
            raise StoreError(ERR["store_unwritable"], str(e)) from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise StoreError(ERR["store_unwritable"], str(e)) from e
        self._data = data

    def _require_open(self) -> dict:
        if self._data is None:
            raise StoreError(ERR["store_closed"], self.path)
        return self._data

    # --- documents ---

    def document_ids(self) -> list[str]:
        data = self._require_open()
        return sorted(k for k in data if k != self.TESTS_KEY)

    def get_document(self, document_id: str) -> StoredDocument | None:
        with self._lock:
            raw = self._require_open().get(document_id)
        if raw is None or document_id == self.TESTS_KEY:
            return None
        try:
            return StoredDocument.model_validate(raw)
        except ValidationError as e:
            logger.error("Stored document %s is malformed: %s", document_id, e)
            return None

    def put_document(self, doc: StoredDocument) -> None:
        with self._lock:
            data = dict(self._require_open())
            data[doc.id] = doc.to_wire()
            self._commit(data)
        logger.info("Stored document %s", doc.id)

    def delete_document(self, document_id: str) -> bool:
        with self._lock:
            data = dict(self._require_open())
            if document_id == self.TESTS_KEY or document_id not in data:
                return False
            del data[document_id]
            self._commit(data)
        logger.info("Deleted document %s", document_id)
        return True

    # --- tests ---

    def get_test(self, test_id: str) -> StoredTest | None:
        with self._lock:
            raw = self._require_open().get(self.TESTS_KEY, {}).get(test_id)
        if raw is None:
            return None
        try:
            return StoredTest.model_validate(raw)
        except ValidationError as e:
            logger.error("Stored test %s is malformed: %s", test_id, e)
            return None

    def put_test(self, test: StoredTest) -> None:
        with self._lock:
            data = dict(self._require_open())
            data[self.TESTS_KEY] = {**data.get(self.TESTS_KEY, {}), test.id: test.to_wire()}
            self._commit(data)
        logger.info("Stored test %s (%d questions)", test.id, len(test.questions))
