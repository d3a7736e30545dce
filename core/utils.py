import logging

from colorama import Fore, Style

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO"):
    """
    Настройка корневого логгера.
    Неизвестное имя уровня заменяется на INFO.
    """
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT
    )


def print_success(message: str):
    """
    Выводит сообщение в консоль зеленым цветом,
    обозначая успешное выполнение операции.
    """
    print(f"{Fore.GREEN}{message}{Style.RESET_ALL}")


def print_error(message: str):
    """
    Выводит сообщение в консоль красным цветом,
    обозначая ошибку или важное предупреждение.
    """
    print(f"{Fore.RED}{message}{Style.RESET_ALL}")
