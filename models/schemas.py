from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from whoosh import fields
from whoosh.analysis import StandardAnalyzer

from config import Config
from core.errors import QuerySyntaxError

# Анализатор для текстовых полей: разбиение на слова + нижний регистр.
# Без стоп-слов и минимальной длины, чтобы теги вида "a" или "x" оставались искомыми
text_analyzer = StandardAnalyzer(stoplist=None)


def _text_field():
    return fields.TEXT(
        stored=True,    # Хранится для подсветки и matched_fields
        phrase=True,    # Позиции слов (фразовые запросы)
        analyzer=text_analyzer
    )


# Схема индекса Whoosh. Набор полей закрыт: динамических полей нет
item_schema = fields.Schema(
    # Уникальный идентификатор записи (один нетокенизированный терм, только для удаления/замены)
    id=fields.ID(stored=True, unique=True),

    # Текст, распознанный OCR
    ocr_text=_text_field(),
    # Заметка пользователя
    memo=_text_field(),
    # Теги, склеенные через пробел в одну строку
    tags=_text_field(),
    location_name=_text_field(),
    group_title=_text_field(),

    # Даты создания и изменения (для фильтрации)
    created_at=fields.DATETIME(stored=True),
    updated_at=fields.DATETIME(stored=True),

    # Путь к изображению: только хранится, никогда не индексируется
    image_path=fields.STORED()
)


def schema_signature(schema: fields.Schema) -> List[Tuple[str, str, bool, bool]]:
    """
    Описание схемы, пригодное для сравнения: имя поля, тип, stored, unique.
    Используется для проверки схемы существующего индекса при открытии.
    """
    return [
        (name, type(field_type).__name__, bool(field_type.stored), bool(field_type.unique))
        for name, field_type in sorted(schema.items())
    ]


def to_index_datetime(value) -> datetime:
    """
    Приводит дату к наивному UTC, в котором Whoosh хранит DATETIME.
    Принимает datetime или строку ISO-8601 (в том числе с суффиксом 'Z').
    Наивные даты считаются UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}") from None
    if not isinstance(value, datetime):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _pick(data: Dict[str, Any], snake: str, camel: str, default=None):
    # Хост присылает ключи в camelCase, Python-код - в snake_case
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _check_text(value, name: str) -> None:
    if value is not None and not isinstance(value, str):
        raise ValueError(f"Field '{name}' must be a string, got {type(value).__name__}")


def _string_list(value, name: str) -> Optional[List[str]]:
    """Список строк. Одиночная строка оборачивается в список, а не разбивается на символы."""
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Field '{name}' must be a list of strings, got {type(value).__name__}")
    for element in value:
        if not isinstance(element, str):
            raise ValueError(f"Field '{name}' must contain only strings, got {type(element).__name__}")
    return list(value)


@dataclass
class SearchableItem:
    """Запись пользователя, передаваемая в индекс."""
    id: str
    ocr_text: str = ""
    memo: str = ""
    tags: List[str] = field(default_factory=list)
    location_name: Optional[str] = None
    group_title: Optional[str] = None
    image_path: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("Searchable item requires a non-empty string 'id'")
        for name in ('ocr_text', 'memo', 'location_name', 'group_title', 'image_path'):
            _check_text(getattr(self, name), name)
        self.tags = _string_list(self.tags, 'tags') or []

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchableItem":
        if not isinstance(data, dict):
            raise ValueError(f"Searchable item must be an object, got {type(data).__name__}")
        if not data.get('id'):
            raise ValueError("Searchable item requires a non-empty 'id'")
        created_at = _pick(data, 'created_at', 'createdAt')
        updated_at = _pick(data, 'updated_at', 'updatedAt')
        return cls(
            id=str(data['id']),
            ocr_text=_pick(data, 'ocr_text', 'ocrText') or "",
            memo=data.get('memo') or "",
            tags=data.get('tags') or [],
            location_name=_pick(data, 'location_name', 'locationName'),
            group_title=_pick(data, 'group_title', 'groupTitle'),
            image_path=_pick(data, 'image_path', 'imagePath'),
            created_at=to_index_datetime(created_at) if created_at else _utcnow(),
            updated_at=to_index_datetime(updated_at) if updated_at else _utcnow(),
        )

    def to_document(self) -> Dict[str, Any]:
        """
        Документ индекса. Отсутствующие необязательные поля становятся пустой строкой,
        теги склеиваются через пробел.
        """
        return {
            'id': self.id,
            'ocr_text': self.ocr_text or "",
            'memo': self.memo or "",
            'tags': " ".join(self.tags),
            'location_name': self.location_name or "",
            'group_title': self.group_title or "",
            'created_at': to_index_datetime(self.created_at),
            'updated_at': to_index_datetime(self.updated_at),
            'image_path': self.image_path or "",
        }


@dataclass
class SearchQuery:
    """Параметры поискового запроса."""
    query: str
    fields: Optional[List[str]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    tags: Optional[List[str]] = None
    limit: int = Config.DEFAULT_LIMIT

    def __post_init__(self):
        if not isinstance(self.query, str):
            raise QuerySyntaxError("Search query requires a 'query' string")
        try:
            if self.date_from is not None:
                self.date_from = to_index_datetime(self.date_from)
            if self.date_to is not None:
                self.date_to = to_index_datetime(self.date_to)
            self.fields = _string_list(self.fields, 'fields')
            self.tags = _string_list(self.tags, 'tags')
        except ValueError as e:
            raise QuerySyntaxError(str(e)) from e
        if self.limit is None:
            self.limit = Config.DEFAULT_LIMIT
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 1:
            raise QuerySyntaxError(f"Limit must be a positive integer, got {self.limit!r}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchQuery":
        if not isinstance(data, dict):
            raise QuerySyntaxError(f"Search query must be an object, got {type(data).__name__}")
        return cls(
            query=data.get('query'),
            fields=data.get('fields'),
            date_from=_pick(data, 'date_from', 'dateFrom'),
            date_to=_pick(data, 'date_to', 'dateTo'),
            tags=data.get('tags'),
            limit=data.get('limit') or Config.DEFAULT_LIMIT,
        )


@dataclass
class SearchResult:
    """Результат поиска: id, релевантность, подсветки и поля с совпадением."""
    id: str
    score: float
    highlights: List[str] = field(default_factory=list)
    matched_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'score': self.score,
            'highlights': list(self.highlights),
            'matched_fields': list(self.matched_fields),
        }
