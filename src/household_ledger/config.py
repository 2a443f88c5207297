"""
Модуль конфигурации приложения Household Ledger.

Содержит настройки:
- Основные параметры приложения (название, версия)
- Настройки базы данных (путь)
- Параметры сверки расписаний (глубина просмотра назад, лимит вхождений)
- Настройки логирования и форматов вывода
- Персистентность настроек (загрузка/сохранение)
- Управление пользовательской директорией данных
"""

import os
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Переменная окружения для переопределения директории данных
DATA_DIR_ENV = "HOUSEHOLD_LEDGER_DATA_DIR"


class Config:
    """
    Класс конфигурации приложения.
    Реализует паттерн Singleton для доступа к настройкам из любой части приложения.

    Все пользовательские данные (БД, логи, настройки) хранятся в
    директории ~/.household_ledger_data/ (или в HOUSEHOLD_LEDGER_DATA_DIR).
    """

    _instance = None

    # Константы приложения
    APP_NAME = "Household Ledger"
    VERSION = "1.0.0"

    @staticmethod
    def get_user_data_dir() -> Path:
        """
        Возвращает путь к директории пользовательских данных.

        Создаёт директорию и поддиректорию logs/ для файлов логов.

        Returns:
            Path: Путь к директории данных
        """
        override = os.environ.get(DATA_DIR_ENV)
        data_dir = Path(override) if override else Path.home() / ".household_ledger_data"

        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Директория пользовательских данных: {data_dir}")

        logs_dir = data_dir / "logs"
        logs_dir.mkdir(exist_ok=True)
        logger.debug(f"Директория логов: {logs_dir}")

        return data_dir

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._initialized = True

        self.user_data_dir = self.get_user_data_dir()

        # Пути к файлам
        self.db_path: str = str(self.user_data_dir / "ledger.db")
        self.config_file: str = str(self.user_data_dir / "config.json")
        self.log_file: str = str(self.user_data_dir / "logs" / "household_ledger.log")

        # Настройки логирования
        self.log_level: str = "INFO"

        # Настройки форматов
        self.date_format: str = "%d.%m.%Y"
        self.currency_symbol: str = "€"

        # Параметры сверки расписаний
        self.lookback_months: int = 3
        self.occurrence_hard_cap: int = 500
        self.occurrence_cache_size: int = 1024
        self.default_lookahead_days: int = 7

        self.load()

    def load(self) -> None:
        """
        Загружает настройки из файла конфигурации.

        Если файл не существует, используются значения по умолчанию.
        Путь к БД не загружается из конфигурации.
        """
        if not os.path.exists(self.config_file):
            logger.info(f"Файл конфигурации не найден, используются значения по умолчанию: {self.config_file}")
            return

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            self.log_level = data.get("log_level", "INFO")
            self.date_format = data.get("date_format", "%d.%m.%Y")
            self.currency_symbol = data.get("currency_symbol", "€")
            self.lookback_months = int(data.get("lookback_months", 3))
            self.occurrence_hard_cap = int(data.get("occurrence_hard_cap", 500))
            self.occurrence_cache_size = int(data.get("occurrence_cache_size", 1024))
            self.default_lookahead_days = int(data.get("default_lookahead_days", 7))

            logger.info(f"Конфигурация загружена из {self.config_file}")

        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Ошибка при загрузке конфигурации: {e}")

    def save(self) -> None:
        """
        Сохраняет текущие настройки в файл конфигурации.
        """
        data = {
            "log_level": self.log_level,
            "date_format": self.date_format,
            "currency_symbol": self.currency_symbol,
            "lookback_months": self.lookback_months,
            "occurrence_hard_cap": self.occurrence_hard_cap,
            "occurrence_cache_size": self.occurrence_cache_size,
            "default_lookahead_days": self.default_lookahead_days,
        }

        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=4, ensure_ascii=False)
            logger.info(f"Конфигурация сохранена в {self.config_file}")
        except OSError as e:
            logger.error(f"Ошибка при сохранении конфигурации: {e}")


# Глобальный экземпляр конфигурации
settings = Config()
