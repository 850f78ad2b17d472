# api/backend/errors.py
"""Ошибки хранилища сигналов и формы добавления."""


class SignalStoreError(Exception):
    """Сбой чтения/записи в хранилище (сеть, HTTP, БД)."""


class SignalNotFound(SignalStoreError):
    def __init__(self, signal_id: str) -> None:
        self.signal_id = signal_id
        super().__init__(f"Signal not found: {signal_id}")


class InvalidSignalForm(ValueError):
    """Форма нового сигнала не прошла проверку.

    Attributes:
        field: имя поля формы, к которому относится ошибка
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")
