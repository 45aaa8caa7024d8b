"""Service helpers for transaction lists."""

from fastapi import Request
from markupsafe import Markup

from backoffice.schemas.bank import TransactionType
from backoffice.services.data_table import ColumnDescriptor
from backoffice.services.pagination import SortDirection, SortState
from backoffice.services.session_context import SessionContext
from backoffice.services.web_common import (
    check_session,
    format_money,
    format_timestamp,
    render,
    superseded_response,
)
from backoffice.services.web_lists import ListPanel, load_panel, peek_panel

TRANSACTION_SORT_FIELDS = (
    "transactionId",
    "accountId",
    "type",
    "amount",
    "status",
    "timestamp",
    "description",
)
DEFAULT_TRANSACTION_SORT = SortState("timestamp", SortDirection.desc)
TRANSACTION_TYPES = [t.value for t in TransactionType]

SYSTEM_TRANSACTIONS = ListPanel(
    endpoint="transactions.system_wide",
    panel_id="system-transactions",
    resource_name="transactions",
    row_id="transactionId",
    default_sort=DEFAULT_TRANSACTION_SORT,
    sort_fields=TRANSACTION_SORT_FIELDS,
    filter_names=("startDate", "endDate", "type", "accountId"),
    date_filters=("startDate", "endDate"),
)

TABLE_PATH = "/admin/transactions/table"


def _transactions_page(data):
    return data.transactionsPage


ACCOUNT_TRANSACTIONS = ListPanel(
    endpoint="transactions.for_account",
    panel_id="account-transactions",
    resource_name="transactions",
    row_id="transactionId",
    default_sort=DEFAULT_TRANSACTION_SORT,
    sort_fields=TRANSACTION_SORT_FIELDS,
    filter_names=("startDate", "endDate", "type"),
    date_filters=("startDate", "endDate"),
    page_of=_transactions_page,
)


def _type_class(row) -> str:
    return "tx-payin" if row.type == TransactionType.payin else "tx-payout"


def _short_id(row) -> Markup:
    return Markup('<span title="{}">{}...</span>').format(
        row.transactionId, row.transactionId[:8]
    )


def transaction_columns(include_account: bool = True) -> list[ColumnDescriptor]:
    columns = [
        ColumnDescriptor("ID", accessor="transactionId", render=_short_id, sortable=True),
    ]
    if include_account:
        columns.append(ColumnDescriptor("Account ID", accessor="accountId", sortable=True))
    columns.extend(
        [
            ColumnDescriptor("Type", accessor="type", sortable=True, cell_class=_type_class),
            ColumnDescriptor(
                "Amount",
                accessor="amount",
                sortable=True,
                render=lambda row: format_money(row.amount),
            ),
            ColumnDescriptor("Status", accessor="status", sortable=True),
            ColumnDescriptor(
                "Timestamp",
                accessor="timestamp",
                sortable=True,
                render=lambda row: format_timestamp(row.timestamp),
            ),
            ColumnDescriptor(
                "Description",
                accessor="description",
                sortable=True,
                render=lambda row: row.description or "-",
            ),
        ]
    )
    return columns


def transactions_page(request: Request, context: SessionContext):
    state = SYSTEM_TRANSACTIONS.state_from(request)
    result = peek_panel(context.cache(), SYSTEM_TRANSACTIONS, state)
    return render(
        request,
        "admin/transactions.html",
        {
            "page_title": "System-Wide Transactions",
            "transaction_types": TRANSACTION_TYPES,
            "filters": state.filters,
            **SYSTEM_TRANSACTIONS.context(state, result, transaction_columns(), TABLE_PATH),
        },
    )


async def transactions_table(request: Request, context: SessionContext):
    state = SYSTEM_TRANSACTIONS.state_from(request)
    result = await load_panel(context.cache(), SYSTEM_TRANSACTIONS, state)
    if result.superseded:
        return superseded_response()
    check_session(result)
    return render(
        request,
        "components/list_panel.html",
        SYSTEM_TRANSACTIONS.context(state, result, transaction_columns(), TABLE_PATH),
    )


def account_transactions_context(
    state, result, table_path: str, *, include_account: bool = False
) -> dict:
    """Panel context for one account's transactions, with the filtered summary."""
    panel_context = ACCOUNT_TRANSACTIONS.context(
        state, result, transaction_columns(include_account), table_path
    )
    summary = getattr(result.data, "summary", None) if result.error is None else None
    panel_context["summary"] = summary
    panel_context["transaction_types"] = TRANSACTION_TYPES
    return panel_context
