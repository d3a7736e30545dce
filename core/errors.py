"""Исключения поискового движка. Все сообщения пригодны для показа хосту как есть."""


class SearchEngineError(Exception):
    """Базовая ошибка поискового движка."""


class EngineInitError(SearchEngineError):
    """Индекс не удалось открыть или создать. Движок при этом не инициализирован."""


class IndexLockedError(EngineInitError):
    """Индекс уже открыт на запись другим экземпляром движка."""


class SchemaMismatchError(EngineInitError):
    """Схема индекса на диске не совпадает со схемой приложения."""


class EngineNotInitializedError(SearchEngineError):
    def __init__(self, message: str = "Search engine not initialized"):
        super().__init__(message)


class IndexCommitError(SearchEngineError):
    """Ошибка записи или фиксации изменений индекса."""


class QuerySyntaxError(SearchEngineError):
    """Некорректный поисковый запрос."""


class OperationTimeoutError(SearchEngineError):
    """Операция не уложилась в отведённое время."""


class InvalidItemError(SearchEngineError):
    """Запись для индексации не прошла проверку."""
