"""
Модуль моделей данных для Household Ledger.

Содержит:
- SQLAlchemy модели справочников (категории, способы оплаты, источники дохода,
  магазины, должники)
- SQLAlchemy модели расписаний и ожидающих вхождений
- SQLAlchemy модели фактических операций (доходы, расходы с позициями и долями)
- Pydantic модели для создания записей с валидацией
- Pydantic модели результатов расчёта долгов
"""

from datetime import datetime
from datetime import date as date_type
from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Optional, Union
import uuid

from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime, Enum as SQLEnum, Boolean,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship, DeclarativeBase
from pydantic import BaseModel, field_validator, model_validator, Field, ConfigDict

from .enums import (
    TransactionType, RecurrenceType, PendingStatus, SplitType, ExpenseStatus,
    DebtDirection
)


def _new_id() -> str:
    return str(uuid.uuid4())


# Декларативная база для SQLAlchemy моделей
class Base(DeclarativeBase):
    """Базовый класс для всех SQLAlchemy моделей."""
    pass


# =============================================================================
# Справочники
# =============================================================================

class CategoryDB(Base):
    """
    Справочник категорий для классификации операций.

    Attributes:
        id: Уникальный идентификатор категории (UUID)
        name: Название категории (уникальное)
        type: Тип категории (доход или расход)
        is_system: Признак системной категории (нельзя удалить)
        created_at: Дата создания категории
        updated_at: Дата последнего обновления
    """
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    name = Column(String, nullable=False, unique=True)
    type = Column(SQLEnum(TransactionType), nullable=False)
    is_system = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class PaymentMethodDB(Base):
    """
    Способ оплаты (карта, счёт, наличные).

    Attributes:
        id: Уникальный идентификатор (UUID)
        name: Название (уникальное)
        initial_funds: Начальный остаток
        is_active: Признак активности
    """
    __tablename__ = "payment_methods"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    name = Column(String, nullable=False, unique=True)
    initial_funds = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)


class IncomeSourceDB(Base):
    """Источник дохода (работодатель, арендатор и т.п.)."""
    __tablename__ = "income_sources"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    name = Column(String, nullable=False, unique=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)


class StoreDB(Base):
    """Магазин или получатель платежа для расходов."""
    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    name = Column(String, nullable=False, unique=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)


class DebtorDB(Base):
    """
    Должник / контрагент, с которым у пользователя взаимные долги.

    Attributes:
        id: Уникальный идентификатор (UUID)
        name: Имя (уникальное)
        is_active: Признак активности
        created_at: Дата создания записи
        updated_at: Дата последнего обновления
    """
    __tablename__ = "debtors"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    name = Column(String, nullable=False, unique=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


# =============================================================================
# Расписания
# =============================================================================

class ScheduleDB(Base):
    """
    Регулярное обязательство (доход или расход).

    Одна таблица хранит оба вида расписаний: для дохода заполнен
    income_source_id, для расхода — store_id. Доменный контрагент
    доступен через counterparty_id / counterparty_name.

    Attributes:
        id: Уникальный идентификатор (UUID)
        kind: Вид расписания (доход или расход)
        income_source_id: Источник дохода (только для INCOME)
        store_id: Получатель платежа (только для EXPENSE)
        category_id: Категория (опционально)
        debtor_id: Связанный должник (опционально, например общая подписка)
        payment_method_id: Способ оплаты
        expected_amount: Ожидаемая сумма (None = сумма подтверждается вручную)
        recurrence_rule: Строка правила FREQ=...;INTERVAL=...
        day_of_month: Якорный день месяца (1-31)
        day_of_week: Якорный день недели (0=воскресенье..6=суббота)
        month_of_year: Якорный месяц (0=январь..11=декабрь)
        requires_confirmation: Вхождения требуют подтверждения пользователем
        lookahead_days: На сколько дней вперёд показывать ожидающие вхождения
        is_active: Признак активности (мягкое удаление)
        note: Примечание
        created_at: Момент создания (раньше него вхождения не генерируются)
        updated_at: Дата последнего обновления
    """
    __tablename__ = "schedules"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    kind = Column(SQLEnum(TransactionType), nullable=False, index=True)
    income_source_id = Column(String(36), ForeignKey("income_sources.id"), nullable=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    debtor_id = Column(String(36), ForeignKey("debtors.id"), nullable=True)
    payment_method_id = Column(String(36), ForeignKey("payment_methods.id"), nullable=False)
    expected_amount = Column(Numeric(12, 2), nullable=True)
    recurrence_rule = Column(String, nullable=False)
    day_of_month = Column(Integer, nullable=True)
    day_of_week = Column(Integer, nullable=True)
    month_of_year = Column(Integer, nullable=True)
    requires_confirmation = Column(Boolean, default=False, nullable=False)
    lookahead_days = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, index=True)
    note = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Связи
    income_source = relationship("IncomeSourceDB")
    store = relationship("StoreDB")
    category = relationship("CategoryDB")
    debtor = relationship("DebtorDB")
    payment_method = relationship("PaymentMethodDB")
    pending_occurrences = relationship("PendingOccurrenceDB", back_populates="schedule")

    @property
    def counterparty_id(self) -> Optional[str]:
        """ID контрагента: источник дохода для INCOME, магазин для EXPENSE."""
        if self.kind == TransactionType.INCOME:
            return self.income_source_id
        return self.store_id

    @property
    def counterparty_name(self) -> Optional[str]:
        """Название контрагента в зависимости от вида расписания."""
        counterparty = self.income_source if self.kind == TransactionType.INCOME else self.store
        return counterparty.name if counterparty is not None else None


class PendingOccurrenceDB(Base):
    """
    Неподтверждённое вхождение расписания.

    На пару (schedule_id, planned_date) допускается не более одной строки:
    уникальность обеспечивается ограничением на уровне БД.

    Attributes:
        id: Уникальный идентификатор (UUID)
        schedule_id: Ссылка на расписание
        planned_date: Плановая дата вхождения
        amount: Сумма (по умолчанию ожидаемая сумма расписания, может быть None)
        status: Статус (хранятся только PENDING)
        created_at: Дата создания записи
    """
    __tablename__ = "pending_occurrences"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    schedule_id = Column(String(36), ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False)
    planned_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=True)
    status = Column(SQLEnum(PendingStatus), default=PendingStatus.PENDING, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    # Связи
    schedule = relationship("ScheduleDB", back_populates="pending_occurrences")

    __table_args__ = (
        UniqueConstraint("schedule_id", "planned_date", name="uq_pending_occurrences_schedule_date"),
    )


# =============================================================================
# Фактические операции
# =============================================================================

class IncomeDB(Base):
    """
    Фактический доход (поступление на способ оплаты).

    Создаётся вручную, из расписания (автоматически или после подтверждения)
    и при погашении долга должником.

    Attributes:
        id: Уникальный идентификатор (UUID)
        payment_method_id: Куда поступили средства
        income_source_id: Источник дохода (опционально)
        category_id: Категория (опционально)
        debtor_id: Должник, если это возврат долга
        amount: Сумма
        income_date: Дата поступления
        note: Примечание
        schedule_id: Расписание, из которого создан доход
        planned_date: Плановая дата вхождения расписания
    """
    __tablename__ = "incomes"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    payment_method_id = Column(String(36), ForeignKey("payment_methods.id"), nullable=False)
    income_source_id = Column(String(36), ForeignKey("income_sources.id"), nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    debtor_id = Column(String(36), ForeignKey("debtors.id"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    income_date = Column(Date, nullable=False, index=True)
    note = Column(String, nullable=True)
    schedule_id = Column(String(36), ForeignKey("schedules.id", ondelete="SET NULL"), nullable=True)
    planned_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    income_source = relationship("IncomeSourceDB")

    __table_args__ = (
        Index("ix_incomes_schedule_id_planned_date", "schedule_id", "planned_date"),
    )


class ExpenseDB(Base):
    """
    Расход (чек). Может быть детализированным (с позициями) или с общей суммой.

    Attributes:
        id: Уникальный идентификатор (UUID)
        expense_date: Дата расхода
        store_id: Магазин / получатель
        category_id: Категория (опционально)
        payment_method_id: Способ оплаты (None для неоплаченного долга)
        note: Примечание
        discount_percentage: Скидка на чек в процентах (0-100)
        is_non_itemised: Расход без позиций, сумма в non_itemised_total
        non_itemised_total: Общая сумма для расхода без позиций
        split_type: Способ разделения между должниками
        own_shares: Доли пользователя (для TOTAL_SPLIT)
        total_shares: Кэш знаменателя долей (если <= 0, пересчитывается)
        owed_to_debtor_id: Должник, которому пользователь должен по этому чеку
        status: Статус оплаты
        is_tentative: Черновик (не учитывается в долгах)
        schedule_id: Расписание, из которого создан расход
        planned_date: Плановая дата вхождения расписания
    """
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    expense_date = Column(Date, nullable=False, index=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    payment_method_id = Column(String(36), ForeignKey("payment_methods.id"), nullable=True)
    note = Column(String, nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    is_non_itemised = Column(Boolean, nullable=False, default=False)
    non_itemised_total = Column(Numeric(12, 2), nullable=True)
    split_type = Column(SQLEnum(SplitType), nullable=False, default=SplitType.NONE)
    own_shares = Column(Integer, nullable=False, default=0)
    total_shares = Column(Integer, nullable=False, default=0)
    owed_to_debtor_id = Column(String(36), ForeignKey("debtors.id"), nullable=True, index=True)
    status = Column(SQLEnum(ExpenseStatus), nullable=False, default=ExpenseStatus.PAID)
    is_tentative = Column(Boolean, nullable=False, default=False)
    schedule_id = Column(String(36), ForeignKey("schedules.id", ondelete="SET NULL"), nullable=True)
    planned_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Связи
    store = relationship("StoreDB")
    owed_to_debtor = relationship("DebtorDB", foreign_keys=[owed_to_debtor_id])
    line_items = relationship("LineItemDB", back_populates="expense", cascade="all, delete-orphan")
    splits = relationship("ExpenseSplitDB", back_populates="expense", cascade="all, delete-orphan")
    debtor_payments = relationship("DebtorPaymentDB", back_populates="expense", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_expenses_schedule_id_planned_date", "schedule_id", "planned_date"),
    )


class LineItemDB(Base):
    """
    Позиция чека.

    Attributes:
        id: Уникальный идентификатор (UUID)
        expense_id: Ссылка на расход
        description: Название товара
        quantity: Количество
        unit_price: Цена за единицу
        is_excluded_from_discount: Скидка чека на позицию не распространяется
        debtor_id: Должник, за которым закреплена позиция (для LINE_ITEM)
    """
    __tablename__ = "line_items"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    expense_id = Column(String(36), ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String, nullable=True)
    quantity = Column(Numeric(10, 3), nullable=False, default=Decimal("1"))
    unit_price = Column(Numeric(12, 2), nullable=False)
    is_excluded_from_discount = Column(Boolean, nullable=False, default=False)
    debtor_id = Column(String(36), ForeignKey("debtors.id"), nullable=True, index=True)

    expense = relationship("ExpenseDB", back_populates="line_items")
    debtor = relationship("DebtorDB")


class ExpenseSplitDB(Base):
    """Доля должника в расходе с разделением TOTAL_SPLIT."""
    __tablename__ = "expense_splits"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    expense_id = Column(String(36), ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    debtor_id = Column(String(36), ForeignKey("debtors.id"), nullable=False, index=True)
    split_part = Column(Integer, nullable=False, default=1)

    expense = relationship("ExpenseDB", back_populates="splits")
    debtor = relationship("DebtorDB")


class DebtorPaymentDB(Base):
    """
    Отметка о погашении доли должника по расходу.

    Attributes:
        id: Уникальный идентификатор (UUID)
        expense_id: Расход
        debtor_id: Должник, погасивший долю
        paid_date: Дата погашения
        income_id: Доход, которым оформлено погашение (опционально)
    """
    __tablename__ = "debtor_payments"

    id = Column(String(36), primary_key=True, default=_new_id, index=True)
    expense_id = Column(String(36), ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False)
    debtor_id = Column(String(36), ForeignKey("debtors.id"), nullable=False)
    paid_date = Column(Date, nullable=False)
    income_id = Column(String(36), ForeignKey("incomes.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    expense = relationship("ExpenseDB", back_populates="debtor_payments")
    income = relationship("IncomeDB")

    __table_args__ = (
        UniqueConstraint("expense_id", "debtor_id", name="uq_debtor_payments_expense_debtor"),
    )


# =============================================================================
# Pydantic модели: правило повторения и расписания
# =============================================================================

class RecurrenceRule(BaseModel):
    """
    Разобранное правило повторения.

    Attributes:
        type: Частота повторения
        interval: Интервал (каждые N единиц), не меньше 1
    """
    type: RecurrenceType
    interval: int = Field(default=1, ge=1)

    model_config = ConfigDict(frozen=True)


class ScheduleBase(BaseModel):
    """
    Общие поля расписаний дохода и расхода.

    Attributes:
        category_id: ID категории (опционально)
        debtor_id: ID связанного должника (опционально)
        payment_method_id: ID способа оплаты
        expected_amount: Ожидаемая сумма (None = вводится при подтверждении)
        recurrence_rule: Строка правила (проверяется сервисом)
        day_of_month: Якорный день месяца (1-31)
        day_of_week: Якорный день недели (0=воскресенье)
        month_of_year: Якорный месяц (0=январь)
        requires_confirmation: Требовать подтверждения вхождений
        lookahead_days: Горизонт ожидающих вхождений в днях (None = из настроек)
        is_active: Флаг активности
        note: Примечание
        create_for_past_period: Дозаполнить вхождения за прошедший месяц
    """
    category_id: Optional[str] = None
    debtor_id: Optional[str] = None
    payment_method_id: str
    expected_amount: Optional[Decimal] = Field(None, ge=Decimal("0"))
    recurrence_rule: str = "FREQ=MONTHLY;INTERVAL=1"
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    month_of_year: Optional[int] = Field(None, ge=0, le=11)
    requires_confirmation: bool = False
    lookahead_days: Optional[int] = Field(None, ge=0)
    is_active: bool = True
    note: Optional[str] = None
    create_for_past_period: bool = False

    @field_validator('note')
    @classmethod
    def strip_note(cls, v: Optional[str]) -> Optional[str]:
        """Обрезает пробелы; пустое примечание превращается в None."""
        if v is None:
            return None
        v = v.strip()
        return v or None


class IncomeScheduleCreate(ScheduleBase):
    """Расписание дохода: контрагент — источник дохода."""
    kind: Literal["income"] = "income"
    income_source_id: str


class ExpenseScheduleCreate(ScheduleBase):
    """Расписание расхода: контрагент — магазин / получатель."""
    kind: Literal["expense"] = "expense"
    store_id: str


ScheduleCreate = Annotated[
    Union[IncomeScheduleCreate, ExpenseScheduleCreate],
    Field(discriminator="kind"),
]


class PendingOccurrence(BaseModel):
    """
    Pydantic модель для чтения ожидающего вхождения из БД.
    """
    id: str
    schedule_id: str
    planned_date: date_type
    amount: Optional[Decimal] = None
    status: PendingStatus = PendingStatus.PENDING

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Pydantic модели: расходы
# =============================================================================

class LineItemCreate(BaseModel):
    """Позиция чека при создании расхода."""
    description: Optional[str] = None
    quantity: Decimal = Field(default=Decimal("1"), gt=Decimal("0"))
    unit_price: Decimal = Field(ge=Decimal("0"))
    is_excluded_from_discount: bool = False
    debtor_id: Optional[str] = None


class SplitCreate(BaseModel):
    """Доля должника для разделения TOTAL_SPLIT."""
    debtor_id: str
    split_part: int = Field(default=1, gt=0)


class ExpenseCreate(BaseModel):
    """
    Pydantic модель для создания расхода с разделением.

    Для расхода без позиций обязателен non_itemised_total, позиции не допускаются.
    Расход-долг перед должником (owed_to_debtor_id) всегда создаётся со статусом
    UNPAID и без способа оплаты.
    """
    expense_date: date_type
    store_id: Optional[str] = None
    category_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    note: Optional[str] = None
    discount_percentage: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    is_non_itemised: bool = False
    non_itemised_total: Optional[Decimal] = Field(None, ge=Decimal("0"))
    split_type: SplitType = SplitType.NONE
    own_shares: int = Field(default=0, ge=0)
    total_shares: Optional[int] = None
    owed_to_debtor_id: Optional[str] = None
    status: ExpenseStatus = ExpenseStatus.PAID
    is_tentative: bool = False
    line_items: List[LineItemCreate] = Field(default_factory=list)
    splits: List[SplitCreate] = Field(default_factory=list)

    @model_validator(mode='after')
    def check_itemisation(self) -> "ExpenseCreate":
        """Проверка согласованности позиций, суммы и способа разделения."""
        if self.is_non_itemised:
            if self.non_itemised_total is None:
                raise ValueError('Для расхода без позиций необходимо указать сумму')
            if self.line_items:
                raise ValueError('Расход без позиций не может содержать позиции')
            if self.split_type == SplitType.LINE_ITEM:
                raise ValueError('Разделение по позициям недоступно для расхода без позиций')
        if self.split_type != SplitType.TOTAL_SPLIT and self.splits:
            raise ValueError('Доли должников допустимы только для разделения total_split')
        # Долг перед должником создаётся неоплаченным, оплата через mark_expense_paid
        if self.owed_to_debtor_id:
            if self.payment_method_id:
                raise ValueError('Долг перед должником не может иметь способ оплаты до погашения')
            self.status = ExpenseStatus.UNPAID
        return self


# =============================================================================
# Pydantic модели: результаты расчёта долгов
# =============================================================================

class DebtorShare(BaseModel):
    """
    Доля одного должника в расходе (для отображения).

    Attributes:
        debtor_id: ID должника
        name: Имя должника
        amount: Сумма доли
        is_paid: Доля погашена
        shares: Доли должника (TOTAL_SPLIT)
        total_shares: Всего долей (TOTAL_SPLIT)
        item_count: Количество позиций должника (LINE_ITEM)
        total_items: Всего позиций в чеке (LINE_ITEM)
    """
    debtor_id: str
    name: Optional[str] = None
    amount: Decimal
    is_paid: bool = False
    shares: Optional[int] = None
    total_shares: Optional[int] = None
    item_count: Optional[int] = None
    total_items: Optional[int] = None


class OwnShare(BaseModel):
    """Доля пользователя в расходе с разделением TOTAL_SPLIT."""
    amount: Decimal
    shares: int
    total_shares: int


class DebtSummary(BaseModel):
    """Разбивка расхода по должникам."""
    debtors: List[DebtorShare] = Field(default_factory=list)
    own_share: Optional[OwnShare] = None


class FormDebtorAmount(BaseModel):
    """Предварительная сумма должника в форме редактирования."""
    name: Optional[str] = None
    amount: Decimal
    debtor_id: Optional[str] = None


class FormDebtSummary(BaseModel):
    """Предварительный расчёт долей в форме редактирования расхода."""
    debtors: List[FormDebtorAmount] = Field(default_factory=list)
    self_amount: Optional[Decimal] = None


class ProcessedExpense(BaseModel):
    """
    Расход с точки зрения долга конкретного должника.

    Attributes:
        expense_id: ID расхода
        expense_date: Дата
        store_name: Магазин
        note: Примечание
        direction: Направление долга
        total_amount: Итог расхода со скидкой
        amount: Сумма долга по этому расходу
        is_settled: Долг погашен
        split_part: Доли должника (TOTAL_SPLIT)
        total_shares: Всего долей (TOTAL_SPLIT)
    """
    expense_id: str
    expense_date: date_type
    store_name: Optional[str] = None
    note: Optional[str] = None
    direction: DebtDirection
    split_type: SplitType
    total_amount: Decimal
    amount: Decimal
    is_settled: bool
    split_part: Optional[int] = None
    total_shares: Optional[int] = None


class EntityDebts(BaseModel):
    """
    Итог взаимных долгов с должником.

    net_balance > 0 означает, что должник должен пользователю.
    """
    receipts: List[ProcessedExpense] = Field(default_factory=list)
    debt_to_entity: Decimal = Decimal("0")
    debt_to_me: Decimal = Decimal("0")
    net_balance: Decimal = Decimal("0")


class DebtorBalance(BaseModel):
    """Сальдо по одному должнику."""
    debtor_id: str
    name: str
    debt_to_entity: Decimal
    debt_to_me: Decimal
    net_balance: Decimal


class ApportionmentResult(BaseModel):
    """
    Результат деления итога по долям.

    Пустой debtor_amounts и own_amount=None означают, что деление не
    выполнялось (total_shares <= 0).
    """
    total_shares: int
    debtor_amounts: Dict[str, Decimal] = Field(default_factory=dict)
    own_amount: Optional[Decimal] = None
