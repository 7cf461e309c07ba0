# studyquiz/registry.py
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx

from . import config
from .llm import load_client

logger = logging.getLogger(__name__)

QUIZ_RESULTS = "quizResults"
FINAL_EXAM_RESULTS = "finalExamResults"
COLLECTIONS = (QUIZ_RESULTS, FINAL_EXAM_RESULTS)


class ResultsRepository:
    """
    Append-only result collections. Entries are never updated or removed.
    This base class keeps everything in memory.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[str, List[Dict[str, Any]]] = {c: [] for c in COLLECTIONS}

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        return self._data

    def _save(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        self._data = data

    @staticmethod
    def _check(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")

    def append(self, collection: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        self._check(collection)
        with self._lock:
            data = self._load()
            data.setdefault(collection, []).append(entry)
            self._save(data)
        return entry

    def list_all(self, collection: str, predicate: Optional[Callable[[Dict[str, Any]], bool]] = None) -> List[Dict[str, Any]]:
        self._check(collection)
        entries = list(self._load().get(collection, []))
        if predicate is None:
            return entries
        return [e for e in entries if predicate(e)]


class JsonFileResultsRepository(ResultsRepository):
    """
    Whole-document JSON file: read everything, append one entry, write everything.
    Concurrent writers from other processes are not coordinated; last writer wins.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        if not self.path.exists():
            return {c: [] for c in COLLECTIONS}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        for c in COLLECTIONS:
            data.setdefault(c, [])
        return data

    def _save(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        tmp.replace(self.path)

#  process-wide singletons, handed out as FastAPI dependencies

_CLIENT: Optional[httpx.AsyncClient] = None
_REPOSITORY: Optional[ResultsRepository] = None


def get_client() -> httpx.AsyncClient:
    global _CLIENT
    if _CLIENT is None:
        _CLIENT = load_client()
    return _CLIENT


async def close_client() -> None:
    global _CLIENT
    if _CLIENT is not None:
        await _CLIENT.aclose()
        _CLIENT = None


def get_repository() -> ResultsRepository:
    global _REPOSITORY
    if _REPOSITORY is None:
        if config.RESULTS_PATH:
            logger.info("Results stored in %s", config.RESULTS_PATH)
            _REPOSITORY = JsonFileResultsRepository(config.RESULTS_PATH)
        else:
            _REPOSITORY = ResultsRepository()
    return _REPOSITORY
