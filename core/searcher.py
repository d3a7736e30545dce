import logging
from typing import Dict, List, Optional, Sequence

from whoosh.fields import Schema
from whoosh.qparser import FieldsPlugin, MultifieldParser, OrGroup, QueryParser
from whoosh.query import And, DateRange, Every, NullQuery, Or, Phrase, Query, Term
from whoosh.searching import Searcher

from config import Config
from models.schemas import SearchQuery, SearchResult
from .errors import QuerySyntaxError

logger = logging.getLogger(__name__)


def setup_search_parser(schema: Schema, fieldnames: Sequence[str]) -> QueryParser:
    """
    Создаёт парсер Whoosh для одного или нескольких текстовых полей.
    Слова объединяются через OR. Синтаксис "поле:значение" отключён,
    поэтому запрос не может обратиться к id/image_path или обойти ограничение по полям.
    """
    if len(fieldnames) == 1:
        parser = QueryParser(fieldnames[0], schema, group=OrGroup)
    else:
        parser = MultifieldParser(list(fieldnames), schema, group=OrGroup)
    parser.remove_plugin_class(FieldsPlugin)
    return parser


def _parse(parser: QueryParser, query_str: str) -> Query:
    try:
        return parser.parse(query_str)
    except Exception as e:
        raise QuerySyntaxError(f"Malformed search query {query_str!r}: {e}") from e


def build_text_query(schema: Schema, query_str: str, fieldnames: Optional[Sequence[str]] = None) -> Query:
    """
    Основной текстовый запрос.
    Неизвестные имена полей пропускаются; если не осталось ни одного поля, запрос ничего не находит,
    даже при пустой строке. Пустая строка (или только пробелы) совпадает со всеми документами,
    фильтры при этом применяются.
    """
    known = None
    if fieldnames is not None:
        known = [name for name in dict.fromkeys(fieldnames) if name in Config.DEFAULT_FIELDS]
        ignored = [name for name in fieldnames if name not in Config.DEFAULT_FIELDS]
        if ignored:
            logger.warning("Ignoring unknown search fields: %s", ", ".join(map(str, ignored)))
        if not known:
            return NullQuery

    if not query_str.strip():
        return Every()
    if known is None:
        return _parse(setup_search_parser(schema, Config.DEFAULT_FIELDS), query_str)
    return Or([_parse(setup_search_parser(schema, [name]), query_str) for name in known])


def build_tag_filter(schema: Schema, tag: str) -> Query:
    """
    Фильтр по одному тегу. Тег разбирается тем же анализатором, что и поле tags:
    одно слово - терм, несколько - фраза. Тег без слов ничего не находит.
    """
    words = list(schema['tags'].process_text(tag, mode='query'))
    if not words:
        return NullQuery
    if len(words) == 1:
        return Term('tags', words[0])
    return Phrase('tags', words)


def build_date_filters(date_from, date_to) -> List[Query]:
    """
    Фильтры по created_at.
    Режим "range": одна включительная граница с каждой стороны (открытая, если не задана).
    Режим "exact": каждая заданная граница должна точно совпасть с created_at.
    """
    if Config.DATE_FILTER_MODE == 'exact':
        return [DateRange('created_at', bound, bound) for bound in (date_from, date_to) if bound is not None]

    if date_from is None and date_to is None:
        return []
    if date_from is not None and date_to is not None and date_from > date_to:
        return [NullQuery]
    return [DateRange('created_at', date_from, date_to)]


def build_query(schema: Schema, params: SearchQuery) -> Query:
    """
    Текстовый запрос плюс фильтры (AND). Без фильтров возвращается сам текстовый запрос.
    Every и NullQuery не вкладываются в And: нормализация Whoosh их схлопывает.
    """
    main_query = build_text_query(schema, params.query, params.fields)

    filters = build_date_filters(params.date_from, params.date_to)
    for tag in params.tags or []:
        filters.append(build_tag_filter(schema, tag))

    if not filters:
        return main_query
    if main_query is NullQuery or any(f is NullQuery for f in filters):
        return NullQuery
    if isinstance(main_query, Every):
        return filters[0] if len(filters) == 1 else And(filters)
    return And([main_query] + filters)


def generate_highlights(stored: Dict[str, object], query_str: str) -> List[str]:
    """
    Подсветка по подстроке: для каждого поля, чей текст содержит запрос
    без учёта регистра, возвращается "поле: полный текст поля".
    """
    needle = query_str.lower()
    if not needle.strip():
        return []
    highlights = []
    for name in Config.HIGHLIGHT_FIELDS:
        text = stored.get(name)
        if text and needle in text.lower():
            highlights.append(f"{name}: {text}")
    return highlights


def get_matched_fields(stored: Dict[str, object], query_str: str) -> List[str]:
    """Поля (в порядке схемы), чей текст содержит запрос без учёта регистра."""
    needle = query_str.lower()
    if not needle.strip():
        return []
    return [
        name for name in Config.MATCH_FIELDS
        if stored.get(name) and needle in stored[name].lower()
    ]


def search_items(searcher: Searcher, params: SearchQuery) -> List[SearchResult]:
    """
    Выполняет запрос на снимке индекса и возвращает не более params.limit результатов.
    Порядок: по убыванию релевантности, при равенстве - по внутреннему номеру документа.
    """
    query = build_query(searcher.schema, params)
    logger.debug("Searching %r -> %s (limit %d)", params.query, query, params.limit)

    hits = searcher.search(query, limit=params.limit)
    results = []
    for hit in sorted(hits, key=lambda h: (-h.score, h.docnum)):
        stored = hit.fields()
        results.append(SearchResult(
            id=stored.get('id', ""),
            score=float(hit.score),
            highlights=generate_highlights(stored, params.query),
            matched_fields=get_matched_fields(stored, params.query),
        ))
    return results
