"""The current user's transaction history, its filters and CSV export."""

from __future__ import annotations

import csv
import datetime
import io
from collections.abc import Iterable
from datetime import UTC

from ..adapters.base import CollectionClient, IdentityProvider
from ..core.models import Transaction
from ..errors import AuthError, ValidationError

CSV_HEADERS = ["Date", "Type", "Amount", "Group", "Description", "Status"]

ExportRow = tuple[str, str, float, str, str, str]


def _date_of(timestamp: str | None) -> str:
    if not timestamp:
        return ""
    try:
        return datetime.datetime.fromisoformat(timestamp).date().isoformat()
    except ValueError:
        return timestamp[:10]


def _format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else repr(float(amount))


def filter_transactions(
    transactions: Iterable[Transaction],
    type: str = "all",
    status: str = "all",
    search: str = "",
) -> list[Transaction]:
    """Apply the type, status and free-text filters.

    ``"all"`` disables a filter.  The search term matches the description or
    the group name, ignoring case.
    """
    term = (search or "").strip().lower()
    result = []
    for tx in transactions:
        if type != "all" and tx.type != type:
            continue
        if status != "all" and tx.status != status:
            continue
        if term and not (
            term in (tx.description or "").lower()
            or term in (tx.group_name or "").lower()
        ):
            continue
        result.append(tx)
    return result


def export_rows(transactions: Iterable[Transaction]) -> list[ExportRow]:
    return [
        (
            _date_of(tx.created_at),
            tx.type,
            float(tx.amount),
            tx.group_name or "Unknown",
            tx.description or "",
            tx.status,
        )
        for tx in transactions
    ]


def export_csv(transactions: Iterable[Transaction]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for date, type_, amount, group, description, status in export_rows(transactions):
        writer.writerow([date, type_, _format_amount(amount), group, description, status])
    return buf.getvalue()


def parse_csv(text: str) -> list[ExportRow]:
    """Read back a file written by :func:`export_csv`."""
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header != CSV_HEADERS:
        raise ValidationError("Not a transactions export.", field="header")
    rows = []
    for line_no, cells in enumerate(reader, start=2):
        if not cells:
            continue
        if len(cells) != len(CSV_HEADERS):
            raise ValidationError(f"Line {line_no} has {len(cells)} columns.")
        date, type_, amount, group, description, status = cells
        try:
            value = float(amount)
        except ValueError:
            raise ValidationError(
                f"Line {line_no}: amount {amount!r} is not a number.", field="amount"
            ) from None
        rows.append((date, type_, value, group, description, status))
    return rows


def export_filename(today: datetime.date | None = None) -> str:
    today = today or datetime.datetime.now(tz=UTC).date()
    return f"transactions-{today.isoformat()}.csv"


class TransactionLedger:
    def __init__(self, client: CollectionClient, identity: IdentityProvider) -> None:
        self.client = client
        self.identity = identity
        self.transactions: list[Transaction] = []

    async def load_for_user(self) -> list[Transaction]:
        """Load transactions of every group the user belongs to or created."""
        user = await self.identity.get_current_user()
        if not user:
            raise AuthError("You must be logged in to view transactions.")

        memberships = await self.client.query(
            "group_members", {"user_id": user["id"]}, columns="group_id"
        )
        created = await self.client.query(
            "groups", {"created_by": user["id"]}, columns="id"
        )
        group_ids = list(
            dict.fromkeys(
                [m["group_id"] for m in memberships] + [g["id"] for g in created]
            )
        )
        if not group_ids:
            self.transactions = []
            return []

        rows = await self.client.query(
            "transactions",
            {"group_id": group_ids},
            order_by="created_at",
            ascending=False,
        )
        groups = await self.client.query("groups", {"id": group_ids}, columns="id,name")
        names = {g["id"]: g["name"] for g in groups}
        self.transactions = [
            Transaction(**{**row, "group_name": names.get(row.get("group_id"))})
            for row in rows
        ]
        return self.transactions

    def filtered(self, type: str = "all", status: str = "all", search: str = "") -> list[Transaction]:
        return filter_transactions(self.transactions, type, status, search)
