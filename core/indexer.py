import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Union

from whoosh import index
from whoosh.filedb.filestore import FileStorage
from whoosh.index import LockError
from whoosh.reading import SegmentReader
from whoosh.searching import Searcher
from whoosh.writing import CLEAR, IndexingError, IndexWriter

from config import Config
from models.schemas import SearchableItem, item_schema, schema_signature
from .errors import EngineInitError, IndexCommitError, IndexLockedError, SchemaMismatchError

logger = logging.getLogger(__name__)


class ItemIndexer:
    """
    Индекс записей пользователя на основе Whoosh.

    Держит открытый индекс, эксклюзивную блокировку каталога (один писатель на путь)
    и снимок для чтения. Каждая операция изменения открывает писателя, пишет
    и фиксирует изменения одним коммитом.
    """

    def __init__(self, ix: index.Index, engine_lock, index_dir: Path):
        self.ix = ix
        self.index_dir = index_dir
        self._engine_lock = engine_lock
        self._searcher = ix.searcher()
        self._closed = False

    @classmethod
    def open_or_create(cls, index_dir: Union[str, Path]) -> "ItemIndexer":
        """
        Открывает существующий индекс или создает новый, если индекс отсутствует.
        Создает каталог при необходимости, захватывает блокировку движка
        и проверяет схему. При любой ошибке блокировка освобождается.
        """
        index_dir = Path(index_dir)
        try:
            index_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EngineInitError(f"Cannot create index directory {index_dir}: {e}") from e

        engine_lock = FileStorage(str(index_dir)).lock(Config.ENGINE_LOCK_NAME)
        try:
            acquired = engine_lock.acquire(blocking=False)
        except OSError as e:
            raise EngineInitError(f"Cannot lock index directory {index_dir}: {e}") from e
        if not acquired:
            raise IndexLockedError(f"Search index at {index_dir} is already opened by another engine")

        ix = None
        try:
            ix = cls._open_index(index_dir)
            return cls(ix, engine_lock, index_dir)
        except Exception:
            if ix is not None:
                ix.close()
            engine_lock.release()
            raise

    @staticmethod
    def _open_index(index_dir: Path) -> index.Index:
        try:
            if index.exists_in(str(index_dir)):
                ix = index.open_dir(str(index_dir))
                if schema_signature(ix.schema) != schema_signature(item_schema):
                    ix.close()
                    raise SchemaMismatchError(
                        f"Search index at {index_dir} was built with a different schema "
                        f"(fields: {', '.join(sorted(ix.schema.names()))}); rebuild it from source data"
                    )
                logger.info("Opened search index at %s", index_dir)
                return ix

            ix = index.create_in(str(index_dir), schema=item_schema)
            logger.info("Created search index at %s", index_dir)
            return ix
        except SchemaMismatchError:
            raise
        except Exception as e:
            logger.exception("Failed to open search index at %s", index_dir)
            raise EngineInitError(f"Cannot open search index at {index_dir}: {e}") from e

    # Чтение

    def snapshot(self) -> Searcher:
        """
        Текущий снимок индекса. Если после его создания был коммит,
        снимок обновляется (обновление при следующем запросе).
        """
        self._searcher = self._searcher.refresh()
        return self._searcher

    def refresh(self) -> Searcher:
        self._searcher.close()
        self._searcher = self.ix.searcher()
        return self._searcher

    def doc_count(self) -> int:
        return self.snapshot().doc_count()

    def stats(self) -> Dict[str, int]:
        """Количество живых документов в каждом сегменте текущего снимка."""
        reader = self.snapshot().reader()
        stats = {}
        for leaf, _offset in reader.leaf_readers():
            # Пустой индекс не содержит сегментов
            if isinstance(leaf, SegmentReader):
                stats[f"segment_{leaf.segment().segment_id()}"] = leaf.doc_count()
        return stats

    # Запись

    def _writer(self) -> IndexWriter:
        return self.ix.writer(limitmb=Config.WRITER_LIMIT_MB, timeout=Config.WRITER_LOCK_TIMEOUT)

    @contextmanager
    def _commit_errors(self, action: str):
        try:
            yield
        except LockError as e:
            raise IndexCommitError(f"Search index is locked, {action} failed: {e}") from e
        except (IndexingError, OSError, ValueError) as e:
            logger.exception("Search index %s failed", action)
            raise IndexCommitError(f"Search index {action} failed: {e}") from e

    def add(self, item: SearchableItem) -> None:
        """
        Добавляет запись и фиксирует изменения. Документ с тем же id,
        если он есть, заменяется в том же коммите.
        """
        self.add_many([item])

    def add_many(self, items: Iterable[SearchableItem]) -> int:
        """Добавляет пакет записей одним коммитом. Повтор id внутри пакета: побеждает последняя запись."""
        unique = {item.id: item for item in items}
        if not unique:
            return 0
        with self._commit_errors("add"), self._writer() as writer:
            for item in unique.values():
                writer.update_document(**item.to_document())
        logger.debug("Indexed %d item(s)", len(unique))
        return len(unique)

    def update(self, item: SearchableItem) -> None:
        """Удаляет документ с тем же id и добавляет новый. Оба шага буферизуются и фиксируются одним коммитом."""
        document = item.to_document()
        with self._commit_errors("update"), self._writer() as writer:
            deleted = writer.delete_by_term('id', item.id)
            writer.add_document(**document)
        logger.debug("Updated item %s (replaced %d document(s))", item.id, deleted)

    def delete(self, item_id: str) -> int:
        """Удаляет документ по точному совпадению id. Отсутствующий id - не ошибка."""
        with self._commit_errors("delete"), self._writer() as writer:
            deleted = writer.delete_by_term('id', item_id)
        logger.debug("Deleted item %s (%d document(s))", item_id, deleted)
        return deleted

    def clear(self) -> None:
        """Удаляет все документы. Индекс остается открытым."""
        with self._commit_errors("clear"):
            writer = self._writer()
            writer.commit(mergetype=CLEAR)
        logger.info("Cleared search index at %s", self.index_dir)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._searcher.close()
            self.ix.close()
        finally:
            self._engine_lock.release()
        logger.info("Closed search index at %s", self.index_dir)
