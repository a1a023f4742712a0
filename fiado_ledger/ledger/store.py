"""
Ledger Store

The authoritative record of customers, sales and payments, and the only
place their balances change.

FLOW for every mutation:
1. Validate input (no storage access yet)
2. Resolve the referenced customer / sale (NotFoundError if missing)
3. Compute the new balance
4. Write everything inside ONE storage transaction
5. Audit

DESIGN DECISION: the credit limit never blocks a sale. add_sale reports
is_over_limit and the caller decides how loudly to warn.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import AsyncIterator, Callable, Iterable, NoReturn, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from fiado_ledger.audit import AuditLogger
from fiado_ledger.config import LedgerSettings, get_settings
from fiado_ledger.errors import NotFoundError, PersistenceError, ValidationError
from fiado_ledger.models.ledger import (
    AlertSummary,
    Customer,
    CustomerStatus,
    DailySummary,
    Payment,
    PaymentMethod,
    Sale,
    SaleItem,
    SaleResult,
    SaleWithCustomer,
)
from fiado_ledger.receipts import compute_due_date
from fiado_ledger.rules import derivations
from fiado_ledger.services.storage import LedgerStorageInterface, StorageError


Amount = Union[Decimal, int, float, str]
ItemInput = Union[SaleItem, dict]


def _to_decimal(value: Amount, field: str) -> Decimal:
    """Convert caller input to a finite Decimal or raise ValidationError."""
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount for {field}: {value!r}", field=field)
    if not result.is_finite():
        raise ValidationError(f"Invalid amount for {field}: {value!r}", field=field)
    return result


def parse_credit_limit(
    raw: Optional[Union[Amount, None]],
    default: Optional[Decimal] = None,
) -> Decimal:
    """
    Turn free-form credit limit input into a Decimal.

    Empty, unparsable or zero input falls back to the default limit
    (1000 unless configured otherwise). Negative numbers are returned
    as-is so registration rejects them.
    """
    if default is None:
        default = get_settings().ledger.default_credit_limit
    if raw is None:
        return default
    text = str(raw).strip().replace(",", ".")
    if not text:
        return default
    try:
        value = _to_decimal(text, "credit_limit")
    except ValidationError:
        return default
    return value if value != 0 else default


class LedgerStore:
    """
    Accounting core of the fiado ledger.

    Holds no state of its own: every call reads the latest snapshot from
    storage, so two stores over the same storage agree.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            storage: Persistence backend
            audit_logger: Optional audit logger; if None, nothing is audited
            settings: Ledger settings; defaults to the cached app settings
            clock: Returns "now"; defaults to the current time in the
                   configured timezone
        """
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().ledger
        self._clock = clock or (lambda: datetime.now(self._settings.tzinfo))
        self._logger = structlog.get_logger(__name__)

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    def now(self) -> datetime:
        return self._clock()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _persistence(
        self,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AsyncIterator[None]:
        """
        Translate storage failures into PersistenceError.

        Any other failure is audited as a system error and re-raised as is;
        the storage transaction has already rolled back by then.
        """
        try:
            yield
        except StorageError as e:
            self._logger.error("storage_failed", operation=operation, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="storage",
                    error_message=f"{operation}: {e}",
                    correlation_id=correlation_id,
                )
            raise PersistenceError(f"{operation} failed: {e}") from e
        except Exception as e:
            self._logger.error("operation_failed", operation=operation, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": operation},
                    correlation_id=correlation_id,
                )
            raise

    async def _reject(
        self,
        operation: str,
        message: str,
        field: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> NoReturn:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                operation=operation,
                field=field,
                message=message,
                correlation_id=correlation_id,
            )
        raise ValidationError(message, field=field)

    async def _parse_amount(
        self,
        operation: str,
        value: Amount,
        field: str,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        try:
            return _to_decimal(value, field)
        except ValidationError as e:
            await self._reject(operation, str(e), field, correlation_id)

    async def _require_customer(self, customer_id: UUID) -> Customer:
        for customer in await self.list_customers():
            if customer.id == customer_id:
                return customer
        raise NotFoundError("customer", customer_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_customers(self) -> list[Customer]:
        """All customers, ordered by name."""
        async with self._persistence("list_customers"):
            customers = await self._storage.list_customers()
        return sorted(customers, key=lambda c: c.name.lower())

    async def list_sales(self) -> list[Sale]:
        """All sales, newest first."""
        async with self._persistence("list_sales"):
            sales = await self._storage.list_sales()
        return sorted(sales, key=lambda s: s.created_at, reverse=True)

    async def get_customer(self, customer_id: UUID) -> Customer:
        return await self._require_customer(customer_id)

    async def get_sale(self, sale_id: UUID) -> Sale:
        for sale in await self.list_sales():
            if sale.id == sale_id:
                return sale
        raise NotFoundError("sale", sale_id)

    async def customer_sales(self, customer_id: UUID) -> list[Sale]:
        """Sales of one customer, newest first."""
        return [s for s in await self.list_sales() if s.customer_id == customer_id]

    async def customer_payments(self, customer_id: UUID) -> list[Payment]:
        """Payments of one customer, newest first."""
        async with self._persistence("list_payments"):
            payments = await self._storage.list_payments()
        mine = [p for p in payments if p.customer_id == customer_id]
        mine.sort(key=lambda p: p.created_at, reverse=True)
        return mine

    async def search_customers(self, term: str) -> list[Customer]:
        return derivations.search(await self.list_customers(), term)

    async def sales_with_customers(self) -> list[SaleWithCustomer]:
        return derivations.sales_with_customers(
            await self.list_sales(),
            await self.list_customers(),
        )

    # -------------------------------------------------------------------------
    # Derived views over the latest snapshot
    # -------------------------------------------------------------------------

    def status_of(self, customer: Customer) -> CustomerStatus:
        return derivations.status(customer, self._settings.near_limit_percent)

    async def alerts(self) -> AlertSummary:
        return derivations.alerts(
            await self.list_customers(),
            self._settings.near_limit_percent,
        )

    async def daily_summary(self, now: Optional[datetime] = None) -> DailySummary:
        return derivations.daily_summary(await self.list_sales(), now or self.now())

    async def birthdays_today(self, now: Optional[datetime] = None) -> list[Customer]:
        return derivations.birthdays_on(
            await self.list_customers(),
            (now or self.now()).date(),
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add_customer(
        self,
        name: str,
        phone: str,
        credit_limit: Amount,
        address: Optional[str] = None,
        birth_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Customer:
        """
        Register a customer with zero debt.

        Raises:
            ValidationError: empty name/phone, or credit_limit <= 0
            PersistenceError: storage failed
        """
        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name:
            await self._reject("add_customer", "Customer name is required", "name", correlation_id)
        if not phone:
            await self._reject("add_customer", "Customer phone is required", "phone", correlation_id)

        limit = await self._parse_amount("add_customer", credit_limit, "credit_limit", correlation_id)
        if limit <= 0:
            await self._reject(
                "add_customer",
                f"Credit limit must be greater than zero, got {limit}",
                "credit_limit",
                correlation_id,
            )

        try:
            customer = Customer(
                name=name,
                phone=phone,
                credit_limit=limit,
                current_debt=Decimal("0"),
                created_at=self.now(),
                address=(address or "").strip() or None,
                birth_date=birth_date,
            )
        except PydanticValidationError as e:
            await self._reject("add_customer", str(e), None, correlation_id)

        async with self._persistence("add_customer", correlation_id):
            async with self._storage.transaction():
                stored = await self._storage.insert_customer(customer)

        if self._audit_logger:
            await self._audit_logger.log_customer_registered(
                customer_id=stored.id,
                name=stored.name,
                credit_limit=str(stored.credit_limit),
                correlation_id=correlation_id,
            )
        return stored

    async def add_sale(
        self,
        customer_id: UUID,
        items: Iterable[ItemInput],
        total_value: Optional[Amount] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SaleResult:
        """
        Record a sale on credit and raise the customer's debt by its total.

        The total is always recomputed from the items; total_value is only
        compared against it. The sale is recorded even when it pushes the
        customer over the limit.

        Raises:
            ValidationError: no items, an item with empty product / value <= 0,
                or a total_value that is not a number
            NotFoundError: unknown customer
            PersistenceError: storage failed (nothing was written)
        """
        try:
            sale_items = [
                item if isinstance(item, SaleItem) else SaleItem.model_validate(item)
                for item in items
            ]
        except PydanticValidationError as e:
            await self._reject("add_sale", f"Invalid sale item: {e}", "items", correlation_id)
        if not sale_items:
            await self._reject("add_sale", "A sale needs at least one item", "items", correlation_id)

        total = sum((item.value for item in sale_items), Decimal("0"))
        if total_value is not None:
            given = await self._parse_amount("add_sale", total_value, "total_value", correlation_id)
            if given != total:
                self._logger.warning(
                    "sale_total_mismatch",
                    given=str(given),
                    computed=str(total),
                    customer_id=str(customer_id),
                )

        customer = await self._require_customer(customer_id)

        now = self.now()
        new_debt = customer.current_debt + total
        sale = Sale(
            customer_id=customer.id,
            items=sale_items,
            total_value=total,
            created_at=now,
            due_date=compute_due_date(now, self._settings.due_days),
        )

        async with self._persistence("add_sale", correlation_id):
            async with self._storage.transaction():
                await self._storage.insert_sale(sale)
                await self._storage.insert_sale_items(sale.id, sale.items)
                await self._storage.update_customer_debt(customer.id, new_debt)

        updated = customer.model_copy(update={"current_debt": new_debt})
        is_over_limit = new_debt > customer.credit_limit

        if self._audit_logger:
            await self._audit_logger.log_sale_recorded(
                sale_id=sale.id,
                customer_id=customer.id,
                total=str(total),
                new_debt=str(new_debt),
                correlation_id=correlation_id,
            )
            if is_over_limit:
                await self._audit_logger.log_credit_limit_exceeded(
                    customer_id=customer.id,
                    name=customer.name,
                    credit_limit=str(customer.credit_limit),
                    new_debt=str(new_debt),
                    correlation_id=correlation_id,
                )

        return SaleResult(sale=sale, customer=updated, is_over_limit=is_over_limit)

    async def pay_debt(
        self,
        customer_id: UUID,
        amount: Amount,
        payment_method: Union[PaymentMethod, str],
        correlation_id: Optional[UUID] = None,
    ) -> Customer:
        """
        Record a payment against the customer's aggregate balance.

        Paying more than is owed is accepted: the debt stops at zero and
        the excess is not kept as credit.

        Raises:
            ValidationError: amount <= 0 or unknown payment method
            NotFoundError: unknown customer
            PersistenceError: storage failed (nothing was written)
        """
        value = await self._parse_amount("pay_debt", amount, "amount", correlation_id)
        if value <= 0:
            await self._reject(
                "pay_debt",
                f"Payment amount must be greater than zero, got {value}",
                "amount",
                correlation_id,
            )
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            await self._reject(
                "pay_debt",
                f"Unknown payment method: {payment_method!r}",
                "payment_method",
                correlation_id,
            )

        customer = await self._require_customer(customer_id)
        new_debt = max(Decimal("0"), customer.current_debt - value)
        payment = Payment(
            customer_id=customer.id,
            amount=value,
            payment_method=method,
            created_at=self.now(),
        )

        async with self._persistence("pay_debt", correlation_id):
            async with self._storage.transaction():
                await self._storage.insert_payment(payment)
                await self._storage.update_customer_debt(customer.id, new_debt)

        if self._audit_logger:
            await self._audit_logger.log_payment_recorded(
                payment_id=payment.id,
                customer_id=customer.id,
                amount=str(value),
                payment_method=method.value,
                new_debt=str(new_debt),
                correlation_id=correlation_id,
            )

        return customer.model_copy(update={"current_debt": new_debt})

    async def mark_signed(
        self,
        sale_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Sale:
        """
        Flag a sale's receipt as signed. Signing twice is a no-op.

        Raises:
            NotFoundError: unknown sale
            PersistenceError: storage failed
        """
        sale = await self.get_sale(sale_id)
        if sale.signed:
            return sale

        async with self._persistence("mark_signed", correlation_id):
            async with self._storage.transaction():
                await self._storage.update_sale_signed(sale.id)

        if self._audit_logger:
            await self._audit_logger.log_receipt_signed(
                sale_id=sale.id,
                correlation_id=correlation_id,
            )
        return sale.model_copy(update={"signed": True})
