import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from config import Config
from models.schemas import SearchableItem, SearchQuery
from .engine import SearchEngine
from .errors import (
    EngineInitError, EngineNotInitializedError, InvalidItemError,
    OperationTimeoutError, SearchEngineError
)

logger = logging.getLogger(__name__)

# Имя команды хоста -> (метод, допустимые ключи аргумента)
COMMANDS = {
    'init_search_engine': ('init', ('storage_path', 'storagePath')),
    'add_item_to_index': ('add', ('item',)),
    'update_item_in_index': ('update', ('item',)),
    'delete_item_from_index': ('delete', ('item_id', 'itemId')),
    'search_items': ('search', ('query',)),
    'clear_search_index': ('clear', ()),
    'get_search_stats': ('stats', ()),
}


class SearchCommands:
    """
    Команды поискового движка для хост-приложения.

    Принимает и возвращает простые значения (словари, списки, строки), как в JSON-сообщениях хоста.
    Все операции выполняются в одном фоновом потоке и ждут результата с таймаутом:
    запись на диск не блокирует вызывающий поток дольше, чем Config.COMMIT_TIMEOUT.
    """

    def __init__(self):
        self._engine: Optional[SearchEngine] = None
        self._init_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="search-engine")

    def _wait(self, future: Future, name: str, timeout: float):
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            raise OperationTimeoutError(f"Search engine {name} did not finish within {timeout:g}s") from None

    def _run(self, name: str, fn: Callable, *args, timeout: float):
        return self._wait(self._executor.submit(fn, *args), name, timeout)

    def _require_engine(self) -> SearchEngine:
        engine = self._engine
        if engine is None:
            raise EngineNotInitializedError()
        return engine

    @staticmethod
    def _item(item: Union[SearchableItem, Dict[str, Any]]) -> SearchableItem:
        if isinstance(item, SearchableItem):
            return item
        try:
            return SearchableItem.from_dict(item)
        except (TypeError, ValueError) as e:
            raise InvalidItemError(f"Invalid searchable item: {e}") from e

    def init(self, storage_path: Union[str, Path]) -> None:
        """
        Открывает индекс в storage_path. Повторный вызов с тем же путём ничего не делает,
        с другим путём - ошибка. При неудаче движок остаётся неинициализированным.
        """
        if not isinstance(storage_path, (str, Path)) or not str(storage_path):
            raise EngineInitError(f"Storage path must be a non-empty string, got {storage_path!r}")
        path = Path(storage_path)
        with self._init_lock:
            if self._engine is not None:
                if self._engine.index_dir.resolve() == path.resolve():
                    return
                raise EngineInitError(f"Search engine is already initialized at {self._engine.index_dir}")

            future = self._executor.submit(SearchEngine, path)
            try:
                self._engine = self._wait(future, "init", Config.COMMIT_TIMEOUT)
            except OperationTimeoutError:
                # Движок, открытый после таймаута, никому не доступен: закрываем его
                future.add_done_callback(_close_late_engine)
                raise
        logger.info("Search engine initialized at %s", path)

    def add(self, item) -> None:
        item = self._item(item)
        self._run("add", self._require_engine().add, item, timeout=Config.COMMIT_TIMEOUT)

    def add_many(self, items) -> int:
        items = [self._item(item) for item in items]
        return self._run("add", self._require_engine().add_many, items, timeout=Config.COMMIT_TIMEOUT)

    def update(self, item) -> None:
        item = self._item(item)
        self._run("update", self._require_engine().update, item, timeout=Config.COMMIT_TIMEOUT)

    def delete(self, item_id: str) -> None:
        if not isinstance(item_id, str) or not item_id:
            raise InvalidItemError(f"Item id must be a non-empty string, got {item_id!r}")
        self._run("delete", self._require_engine().delete, item_id, timeout=Config.COMMIT_TIMEOUT)

    def search(self, query) -> List[Dict[str, Any]]:
        engine = self._require_engine()
        if not isinstance(query, SearchQuery):
            query = SearchQuery.from_dict(query)
        results = self._run("search", engine.search, query, timeout=Config.SEARCH_TIMEOUT)
        return [result.to_dict() for result in results]

    def clear(self) -> None:
        self._run("clear", self._require_engine().clear, timeout=Config.COMMIT_TIMEOUT)

    def stats(self) -> Dict[str, int]:
        return self._run("stats", self._require_engine().stats, timeout=Config.SEARCH_TIMEOUT)

    def dispatch(self, command: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Выполняет команду хоста по имени. Возвращает {"ok": True, "data": ...}
        или {"ok": False, "error": "<сообщение>"}.
        """
        payload = payload or {}
        if not isinstance(command, str) or command not in COMMANDS:
            return {'ok': False, 'error': f"Unknown command: {command}"}
        if not isinstance(payload, dict):
            return {'ok': False, 'error': f"Arguments for {command} must be an object"}

        method_name, keys = COMMANDS[command]
        args = []
        if keys:
            key = next((k for k in keys if k in payload), None)
            if key is None:
                return {'ok': False, 'error': f"Missing argument '{keys[0]}' for {command}"}
            args.append(payload[key])

        try:
            data = getattr(self, method_name)(*args)
        except SearchEngineError as e:
            logger.warning("Command %s failed: %s", command, e)
            return {'ok': False, 'error': str(e)}
        return {'ok': True, 'data': data}

    def shutdown(self) -> None:
        """Закрывает движок и останавливает фоновый поток."""
        with self._init_lock:
            engine, self._engine = self._engine, None
        if engine is not None:
            self._executor.submit(engine.close).result()
        self._executor.shutdown(wait=True)


def _close_late_engine(future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()
