"""
Receipt and Due-Date Policy

Due dates are a fixed number of calendar days after the sale (30 by
default): no business-day or holiday logic.

A receipt is rendered from the sale and the customer snapshot taken right
after the sale, so the debt before the sale is recovered as
current_debt - total_value.
"""

from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from fiado_ledger.config import LedgerSettings, get_settings
from fiado_ledger.models.ledger import Customer, PaymentMethod, Sale, SaleResult
from fiado_ledger.models.receipt import ReceiptLine, ReceiptView


DEFAULT_DUE_DAYS = 30
CENT = Decimal("0.01")

SALE_DATE_FORMAT = "%d/%m/%Y %H:%M"
DUE_DATE_FORMAT = "%d/%m/%Y"


def compute_due_date(
    sale_date: Union[datetime, date],
    due_days: int = DEFAULT_DUE_DAYS,
) -> date:
    """Calendar date due_days after the sale."""
    if isinstance(sale_date, datetime):
        sale_date = sale_date.date()
    return sale_date + timedelta(days=due_days)


def format_money(amount: Decimal, symbol: str = "R$") -> str:
    """Render an amount with two decimals, e.g. 'R$ 80.00'."""
    return f"{symbol} {amount.quantize(CENT, rounding=ROUND_HALF_UP)}"


def render_receipt(
    sale: Sale,
    customer: Customer,
    settings: Optional[LedgerSettings] = None,
) -> ReceiptView:
    """
    Project a sale into a printable receipt view-model.

    Args:
        sale: The sale being confirmed
        customer: Customer snapshot that already includes this sale's debt

    Returns:
        ReceiptView with raw values and their display strings
    """
    settings = settings or get_settings().ledger
    symbol = settings.currency_symbol

    sale_moment = sale.created_at
    if sale_moment.tzinfo is not None:
        sale_moment = sale_moment.astimezone(settings.tzinfo)

    previous_debt = customer.current_debt - sale.total_value

    lines = [
        ReceiptLine(
            number=number,
            product=item.product,
            value=item.value,
            value_display=format_money(item.value, symbol),
        )
        for number, item in enumerate(sale.items, start=1)
    ]

    return ReceiptView(
        sale_id=sale.id,
        merchant_name=settings.merchant_name,
        merchant_tax_id=settings.merchant_tax_id,
        sale_date=sale_moment,
        due_date=sale.due_date,
        sale_date_display=sale_moment.strftime(SALE_DATE_FORMAT),
        due_date_display=sale.due_date.strftime(DUE_DATE_FORMAT),
        customer_name=customer.name,
        lines=lines,
        total=sale.total_value,
        total_display=format_money(sale.total_value, symbol),
        previous_debt=previous_debt,
        previous_debt_display=format_money(previous_debt, symbol),
        new_total_debt=customer.current_debt,
        new_total_debt_display=format_money(customer.current_debt, symbol),
        credit_limit=customer.credit_limit,
        credit_limit_display=format_money(customer.credit_limit, symbol),
        signature_name=customer.name,
        signed=sale.signed,
    )


def format_receipt_text(view: ReceiptView, width: int = 40) -> str:
    """Plain-text receipt, one field per line, for narrow printers."""

    def row(label: str, value: str) -> str:
        gap = max(1, width - len(label) - len(value))
        return f"{label}{' ' * gap}{value}"

    rule = "=" * width
    dashes = "-" * width

    out = [
        rule,
        view.merchant_name.center(width),
        f"Tax ID: {view.merchant_tax_id}".center(width),
        view.title.center(width),
        rule,
        row("Date:", view.sale_date_display),
        row("Due:", view.due_date_display),
        row("Customer:", view.customer_name),
        dashes,
    ]
    for line in view.lines:
        out.append(row(f"{line.number}. {line.product}", line.value_display))
    out += [
        dashes,
        row("TOTAL:", view.total_display),
        dashes,
        row("Previous debt:", view.previous_debt_display),
        row("Total debt:", view.new_total_debt_display),
        row("Credit limit:", view.credit_limit_display),
        "",
        view.signature_label.center(width),
        "",
        "_" * width,
        view.signature_name.center(width),
        rule,
        f"DUE DATE: {view.due_date_display}".center(width),
    ]
    return "\n".join(out)


def sale_message(result: SaleResult, symbol: str = "R$") -> str:
    """Confirmation shown after a sale: a warning when the limit was exceeded."""
    customer = result.customer
    if result.is_over_limit:
        return (
            f"CREDIT LIMIT EXCEEDED! {customer.name} went over the limit of "
            f"{format_money(customer.credit_limit, symbol)}. "
            f"Current debt: {format_money(customer.current_debt, symbol)}"
        )
    return (
        f"Sale recorded: {format_money(result.sale.total_value, symbol)} "
        f"for {customer.name}"
    )


def payment_message(amount: Decimal, method: PaymentMethod, symbol: str = "R$") -> str:
    return f"Payment of {format_money(amount, symbol)} received via {method.label}."
