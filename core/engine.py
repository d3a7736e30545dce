import threading
from pathlib import Path
from typing import Dict, Iterable, List, Union

from models.schemas import SearchableItem, SearchQuery, SearchResult
from .errors import EngineNotInitializedError
from .indexer import ItemIndexer
from .searcher import search_items


class SearchEngine:
    """
    Поисковый движок: один открытый индекс и одна блокировка на все публичные операции.
    Экземпляр создаётся хостом один раз и передаётся обработчикам явно.
    """

    def __init__(self, index_dir: Union[str, Path]):
        self.index_dir = Path(index_dir)
        self._lock = threading.RLock()
        self._indexer = ItemIndexer.open_or_create(self.index_dir)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def is_open(self) -> bool:
        return self._indexer is not None

    def _require_indexer(self) -> ItemIndexer:
        if self._indexer is None:
            raise EngineNotInitializedError("Search engine is closed")
        return self._indexer

    def add(self, item: SearchableItem) -> None:
        with self._lock:
            self._require_indexer().add(item)

    def add_many(self, items: Iterable[SearchableItem]) -> int:
        with self._lock:
            return self._require_indexer().add_many(items)

    def update(self, item: SearchableItem) -> None:
        with self._lock:
            self._require_indexer().update(item)

    def delete(self, item_id: str) -> None:
        with self._lock:
            self._require_indexer().delete(item_id)

    def clear(self) -> None:
        with self._lock:
            self._require_indexer().clear()

    def search(self, params: SearchQuery) -> List[SearchResult]:
        with self._lock:
            return search_items(self._require_indexer().snapshot(), params)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return self._require_indexer().stats()

    def doc_count(self) -> int:
        with self._lock:
            return self._require_indexer().doc_count()

    def refresh(self) -> None:
        with self._lock:
            self._require_indexer().refresh()

    def close(self) -> None:
        with self._lock:
            if self._indexer is None:
                return
            indexer, self._indexer = self._indexer, None
            indexer.close()
