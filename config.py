from pathlib import Path
import os
from typing import Tuple

class Config:
    """Конфигурация поискового движка"""

    # Пути
    BASE_DIR = Path(__file__).parent
    INDEX_DIR = Path(os.environ.get("ITEM_SEARCH_INDEX_DIR", BASE_DIR / "search_index"))

    # Логирование
    LOG_LEVEL = os.environ.get("ITEM_SEARCH_LOG_LEVEL", "INFO").upper()

    # Поля, участвующие в полнотекстовом поиске
    DEFAULT_FIELDS: Tuple[str, ...] = ('ocr_text', 'memo', 'tags', 'location_name', 'group_title')
    # Поля, из которых строятся подсветки
    HIGHLIGHT_FIELDS: Tuple[str, ...] = ('ocr_text', 'memo', 'location_name', 'group_title')
    # Поля, проверяемые при определении matched_fields
    MATCH_FIELDS: Tuple[str, ...] = DEFAULT_FIELDS

    # Настройки поиска
    DEFAULT_LIMIT = 20
    # "range" - включительный диапазон, "exact" - точное совпадение с границей
    DATE_FILTER_MODE = os.environ.get("ITEM_SEARCH_DATE_FILTER", "range").lower()

    # Настройки записи
    WRITER_LIMIT_MB = 50  # Буфер писателя
    WRITER_LOCK_TIMEOUT = 5.0  # Ожидание WRITELOCK, секунды
    ENGINE_LOCK_NAME = "ENGINELOCK"

    # Таймауты фонового исполнителя, секунды
    COMMIT_TIMEOUT = float(os.environ.get("ITEM_SEARCH_COMMIT_TIMEOUT", 30))
    SEARCH_TIMEOUT = float(os.environ.get("ITEM_SEARCH_SEARCH_TIMEOUT", 10))
