"""
Командная строка для локального поискового индекса записей.

Примеры:
    python ItemSearchCli.py add items.json
    python ItemSearchCli.py search "invoice" --tag receipt --from 2024-01-01
    python ItemSearchCli.py stats
"""
import argparse
import json
import sys
from pathlib import Path

from colorama import Fore, Style

from config import Config
from core.engine import SearchEngine
from core.errors import SearchEngineError
from core.utils import print_error, print_success, setup_logging
from models.schemas import SearchableItem, SearchQuery


def add_command(engine: SearchEngine, args) -> int:
    try:
        data = json.loads(args.file.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        print_error(f"Не удалось прочитать {args.file}: {e}")
        return 1

    records = data if isinstance(data, list) else [data]
    try:
        items = [SearchableItem.from_dict(record) for record in records]
    except (TypeError, ValueError) as e:
        print_error(f"Некорректная запись: {e}")
        return 1

    count = engine.add_many(items)
    print_success(f"Проиндексировано записей: {count}")
    return 0


def delete_command(engine: SearchEngine, args) -> int:
    engine.delete(args.item_id)
    print_success(f"Запись {args.item_id} удалена")
    return 0


def search_command(engine: SearchEngine, args) -> int:
    params = SearchQuery(
        query=args.query,
        fields=args.fields,
        date_from=args.date_from,
        date_to=args.date_to,
        tags=args.tags,
        limit=args.limit,
    )
    results = engine.search(params)
    if not results:
        print_error("Ничего не найдено")
        return 0

    for position, result in enumerate(results, 1):
        fields = ", ".join(result.matched_fields) or "-"
        print(f"{Fore.CYAN}{position}. {result.id}{Style.RESET_ALL} (score: {result.score:.3f}, поля: {fields})")
        for highlight in result.highlights:
            print(f"   {highlight}")
    print_success(f"Найдено: {len(results)}")
    return 0


def stats_command(engine: SearchEngine, args) -> int:
    stats = engine.stats()
    for segment, count in sorted(stats.items()):
        print(f"{segment}: {count}")
    print_success(f"Документов в индексе: {sum(stats.values())} (сегментов: {len(stats)})")
    return 0


def clear_command(engine: SearchEngine, args) -> int:
    engine.clear()
    print_success("Индекс очищен")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Локальный полнотекстовый поиск по записям")
    parser.add_argument('--index-dir', type=Path, default=Config.INDEX_DIR, help="Каталог индекса")
    parser.add_argument('--log-level', default=Config.LOG_LEVEL, help="Уровень логирования")
    subparsers = parser.add_subparsers(dest='command', required=True)

    add = subparsers.add_parser('add', help="Добавить или заменить записи из JSON-файла")
    add.add_argument('file', type=Path, help="JSON: одна запись или список записей")
    add.set_defaults(handler=add_command)

    delete = subparsers.add_parser('delete', help="Удалить запись по id")
    delete.add_argument('item_id')
    delete.set_defaults(handler=delete_command)

    search = subparsers.add_parser('search', help="Поиск по записям")
    search.add_argument('query', nargs='?', default="", help="Поисковая фраза (пусто - все записи)")
    search.add_argument('--field', dest='fields', action='append', help="Искать только в поле (можно повторять)")
    search.add_argument('--tag', dest='tags', action='append', help="Обязательный тег (можно повторять)")
    search.add_argument('--from', dest='date_from', help="Начальная дата, ISO-8601")
    search.add_argument('--to', dest='date_to', help="Конечная дата, ISO-8601")
    search.add_argument('--limit', type=int, default=Config.DEFAULT_LIMIT)
    search.set_defaults(handler=search_command)

    stats = subparsers.add_parser('stats', help="Количество документов по сегментам")
    stats.set_defaults(handler=stats_command)

    clear = subparsers.add_parser('clear', help="Удалить все документы")
    clear.set_defaults(handler=clear_command)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    try:
        with SearchEngine(args.index_dir) as engine:
            return args.handler(engine, args)
    except SearchEngineError as e:
        print_error(f"Ошибка: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
