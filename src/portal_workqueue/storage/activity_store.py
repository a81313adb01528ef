# src/portal_workqueue/storage/activity_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
import uuid
from pathlib import Path

from ..models import (
    Activity,
    ActivityStatus,
    ActivityType,
    NewActivity,
    NewSubscription,
    PaymentAction,
    PaymentStatusEntry,
    Subscription,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)


def _opt_float(value: object) -> float | None:
    return None if value is None else float(value)  # type: ignore[arg-type]


class ActivityStore:
    """
    SQLite store for what the workflows record: activities, subscriptions
    and the per-invoice payment status log.

    Same conventions as SqliteStore: migration-safe schema, one connection
    per call, unix-second REAL timestamps.
    """

    def __init__(self, db_path: str | Path = "portal.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("ActivityStore ready db=%s", self._db_path)

    def close(self) -> None:
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS activities (
                    id TEXT PRIMARY KEY NOT NULL,
                    type TEXT NOT NULL,
                    service_name TEXT NOT NULL,
                    service_key TEXT NOT NULL,
                    detail TEXT NOT NULL,
                    date REAL NOT NULL,
                    amount REAL,
                    currency TEXT,
                    request_id TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS subscriptions (
                    id TEXT PRIMARY KEY NOT NULL,
                    request_id TEXT NOT NULL,
                    service_name TEXT NOT NULL,
                    service_key TEXT NOT NULL,
                    amount REAL NOT NULL,
                    currency TEXT NOT NULL,
                    recurrence_calendar TEXT NOT NULL,
                    recurrence_max_payments INTEGER,
                    recurrence_until REAL,
                    recurrence_first_payment_due REAL NOT NULL,
                    status TEXT NOT NULL DEFAULT 'active',
                    last_payment_date REAL,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS payment_status (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    invoice TEXT NOT NULL,
                    action_type TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): columns added after the first schema.
            cur.execute("PRAGMA table_info(activities)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE activities ADD COLUMN {name} {decl}")
                logger.info("ActivityStore migration: added column %s", name)

            add_col("converted_amount", "REAL")
            add_col("converted_currency", "TEXT")
            add_col("subscription_id", "TEXT")
            add_col("status", "TEXT NOT NULL DEFAULT 'neutral'")
            add_col("invoice", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_activities_date ON activities(date)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_activities_request ON activities(request_id)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_payment_status_invoice ON payment_status(invoice)"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_activity(row: sqlite3.Row) -> Activity:
        return Activity(
            id=str(row["id"]),
            created_at=float(row["created_at"] or 0.0),
            type=ActivityType(row["type"]),
            service_key=str(row["service_key"]),
            service_name=str(row["service_name"]),
            detail=str(row["detail"] or ""),
            date=float(row["date"] or 0.0),
            request_id=str(row["request_id"]),
            status=ActivityStatus(row["status"] or ActivityStatus.NEUTRAL),
            amount=_opt_float(row["amount"]),
            currency=row["currency"],
            converted_amount=_opt_float(row["converted_amount"]),
            converted_currency=row["converted_currency"],
            subscription_id=row["subscription_id"],
            invoice=row["invoice"],
        )

    @staticmethod
    def _row_to_subscription(row: sqlite3.Row) -> Subscription:
        return Subscription(
            id=str(row["id"]),
            request_id=str(row["request_id"]),
            service_key=str(row["service_key"]),
            service_name=str(row["service_name"]),
            amount=float(row["amount"]),
            currency=str(row["currency"]),
            recurrence_calendar=str(row["recurrence_calendar"]),
            recurrence_first_payment_due=float(row["recurrence_first_payment_due"]),
            status=SubscriptionStatus(row["status"] or SubscriptionStatus.ACTIVE),
            created_at=float(row["created_at"] or 0.0),
            recurrence_max_payments=(
                int(row["recurrence_max_payments"])
                if row["recurrence_max_payments"] is not None
                else None
            ),
            recurrence_until=_opt_float(row["recurrence_until"]),
            last_payment_date=_opt_float(row["last_payment_date"]),
        )

    # ---- activities ----

    def add_activity(self, activity: NewActivity) -> str:
        """
        Insert an activity and return its id.

        A second insert for the same (request_id, type) returns the existing id
        so a re-delivered request does not show up twice.
        """
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT id FROM activities WHERE request_id = ? AND type = ? LIMIT 1",
                (activity.request_id, activity.type.value),
            )
            existing = cur.fetchone()
            if existing is not None:
                logger.debug(
                    "Activity already stored request_id=%s id=%s",
                    activity.request_id,
                    existing["id"],
                )
                return str(existing["id"])

            activity_id = uuid.uuid4().hex
            cur.execute(
                """
                INSERT INTO activities(
                    id, type, service_name, service_key, detail, date,
                    amount, currency, converted_amount, converted_currency,
                    request_id, created_at, subscription_id, status, invoice
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    activity_id,
                    activity.type.value,
                    activity.service_name,
                    activity.service_key,
                    activity.detail,
                    float(activity.date),
                    activity.amount,
                    activity.currency,
                    activity.converted_amount,
                    activity.converted_currency,
                    activity.request_id,
                    time.time(),
                    activity.subscription_id,
                    activity.status.value,
                    activity.invoice,
                ),
            )
            conn.commit()
            logger.debug(
                "Activity added id=%s type=%s status=%s", activity_id, activity.type, activity.status
            )
            return activity_id
        finally:
            conn.close()

    def has_activity_with_request_id(self, request_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT id FROM activities WHERE request_id = ? LIMIT 1", (request_id,))
            return cur.fetchone() is not None
        finally:
            conn.close()

    def get_activity(self, activity_id: str) -> Activity | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM activities WHERE id = ?", (activity_id,))
            row = cur.fetchone()
            return None if row is None else self._row_to_activity(row)
        finally:
            conn.close()

    def update_activity_status(
        self, activity_id: str, status: ActivityStatus, detail: str | None = None
    ) -> None:
        conn = self._get_conn()
        try:
            if detail is None:
                conn.execute(
                    "UPDATE activities SET status = ? WHERE id = ?",
                    (ActivityStatus(status).value, activity_id),
                )
            else:
                conn.execute(
                    "UPDATE activities SET status = ?, detail = ? WHERE id = ?",
                    (ActivityStatus(status).value, detail, activity_id),
                )
            conn.commit()
        finally:
            conn.close()

    def list_activities(self, *, limit: int = 20) -> list[Activity]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM activities ORDER BY date DESC, created_at DESC LIMIT ?",
                (int(limit),),
            )
            return [self._row_to_activity(r) for r in cur.fetchall()]
        finally:
            conn.close()

    # ---- subscriptions ----

    def add_subscription(self, subscription: NewSubscription) -> str:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT OR IGNORE INTO subscriptions(
                    id, request_id, service_name, service_key, amount, currency,
                    recurrence_calendar, recurrence_max_payments, recurrence_until,
                    recurrence_first_payment_due, status, last_payment_date, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, ?)
                """,
                (
                    subscription.id,
                    subscription.request_id,
                    subscription.service_name,
                    subscription.service_key,
                    float(subscription.amount),
                    subscription.currency,
                    subscription.recurrence_calendar,
                    subscription.recurrence_max_payments,
                    subscription.recurrence_until,
                    float(subscription.recurrence_first_payment_due),
                    SubscriptionStatus.ACTIVE.value,
                    time.time(),
                ),
            )
            conn.commit()
            logger.debug("Subscription stored id=%s service=%s", subscription.id, subscription.service_key)
            return subscription.id
        finally:
            conn.close()

    def get_subscription(self, subscription_id: str) -> Subscription | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM subscriptions WHERE id = ?", (subscription_id,))
            row = cur.fetchone()
            return None if row is None else self._row_to_subscription(row)
        finally:
            conn.close()

    def update_subscription_last_payment(self, subscription_id: str, paid_at: float) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE subscriptions SET last_payment_date = ? WHERE id = ?",
                (float(paid_at), subscription_id),
            )
            conn.commit()
        finally:
            conn.close()

    # ---- payment status log ----

    def add_payment_status_entry(
        self, invoice: str, action: PaymentAction, now_ts: float | None = None
    ) -> int:
        now = time.time() if now_ts is None else float(now_ts)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO payment_status(invoice, action_type, created_at) VALUES (?, ?, ?)",
                (invoice, PaymentAction(action).value, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for payment_status insert")
            return int(rowid)
        finally:
            conn.close()

    def get_payment_status_entries(self, invoice: str) -> list[PaymentStatusEntry]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM payment_status WHERE invoice = ? ORDER BY created_at ASC, id ASC",
                (invoice,),
            )
            return [
                PaymentStatusEntry(
                    id=int(r["id"]),
                    invoice=str(r["invoice"]),
                    action=PaymentAction(r["action_type"]),
                    created_at=float(r["created_at"]),
                )
                for r in cur.fetchall()
            ]
        finally:
            conn.close()
