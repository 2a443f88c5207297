"""
Модуль управления базой данных для Household Ledger.

Содержит функции для:
- Инициализации базы данных и создания таблиц
- Управления сессиями БД через контекстный менеджер
- Обработки ошибок с автоматическим откатом транзакций

Путь к базе данных по умолчанию определяется в config.py через settings.db_path
"""

from contextlib import contextmanager
from typing import Generator, Optional
import logging
import atexit

from sqlalchemy import create_engine, Engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError

from household_ledger.config import settings

logger = logging.getLogger(__name__)


# Глобальные переменные для engine и session factory
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None

# Категория дохода для возвратов долгов
DEBT_REPAYMENT_CATEGORY = "Возврат долга"


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """Включает проверку внешних ключей для каждого нового соединения SQLite."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_default_categories(session: Session) -> None:
    """
    Создаёт предопределённые категории при первом запуске.
    """
    from household_ledger.models import CategoryDB, TransactionType

    try:
        existing_count = session.query(CategoryDB).count()

        if existing_count > 0:
            logger.info(f"Категории уже существуют ({existing_count} шт.), пропускаем инициализацию")
            return

        logger.info("Инициализация предопределённых категорий...")

        income_categories = [
            "Зарплата",
            "Аренда",
            DEBT_REPAYMENT_CATEGORY,
            "Прочие доходы"
        ]

        expense_categories = [
            "Продукты",
            "Жильё",
            "Коммунальные услуги",
            "Подписки",
            "Транспорт",
            "Прочие расходы"
        ]

        for name in income_categories:
            session.add(CategoryDB(name=name, type=TransactionType.INCOME, is_system=True))
            logger.debug(f"Добавлена категория дохода: {name}")

        for name in expense_categories:
            session.add(CategoryDB(name=name, type=TransactionType.EXPENSE, is_system=True))
            logger.debug(f"Добавлена категория расхода: {name}")

        session.commit()

        total_created = len(income_categories) + len(expense_categories)
        logger.info(f"Успешно создано {total_created} предопределённых категорий")

    except SQLAlchemyError as e:
        logger.error(f"Ошибка при инициализации категорий: {e}")
        session.rollback()
        raise


def init_db(database_url: Optional[str] = None) -> Engine:
    """
    Инициализирует подключение к базе данных и создаёт таблицы.

    Args:
        database_url: URL базы данных (по умолчанию SQLite в settings.db_path)

    Returns:
        Созданный Engine
    """
    global _engine, _SessionLocal

    from household_ledger.models import Base

    try:
        if database_url is None:
            database_url = f"sqlite:///{settings.db_path}"

        logger.info(f"Инициализация базы данных: {database_url}")

        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        _engine = create_engine(database_url, connect_args=connect_args, echo=False)
        enable_sqlite_foreign_keys(_engine)

        Base.metadata.create_all(bind=_engine)
        logger.info("Таблицы базы данных успешно созданы/проверены")

        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=_engine
        )

        with get_db_session() as session:
            init_default_categories(session)

        atexit.register(close_db)

        logger.info("База данных успешно инициализирована")
        return _engine

    except SQLAlchemyError as e:
        logger.error(f"Ошибка при инициализации базы данных: {e}")
        raise


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Контекстный менеджер для работы с сессией базы данных.

    Example:
        >>> init_db()
        >>> with get_db_session() as session:
        ...     report = process_schedules(session)
    """
    if _SessionLocal is None:
        error_msg = "База данных не инициализирована. Вызовите init_db() перед использованием."
        logger.error(error_msg)
        raise RuntimeError(error_msg)

    session: Session = _SessionLocal()

    try:
        logger.debug("Создана новая сессия БД")
        yield session

    except SQLAlchemyError as e:
        logger.error(f"Ошибка SQLAlchemy, откат транзакции: {e}")
        session.rollback()
        raise

    except Exception as e:
        logger.error(f"Неожиданная ошибка, откат транзакции: {e}")
        session.rollback()
        raise

    finally:
        session.close()
        logger.debug("Сессия БД закрыта")


def close_db() -> None:
    """
    Закрывает соединение с базой данных и освобождает ресурсы.
    """
    global _engine, _SessionLocal

    if _engine is not None:
        logger.info("Закрытие соединения с базой данных...")
        _engine.dispose()
        _engine = None
        _SessionLocal = None
        logger.info("Соединение с базой данных закрыто")
