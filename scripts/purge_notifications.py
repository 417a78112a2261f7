"""Utility script to purge old notifications and stale push subscriptions."""

from __future__ import annotations

import argparse

import anyio

from notifier.application.use_cases import cleanup_stale_subscriptions, purge_old_notifications
from notifier.config import get_settings
from notifier.domain.errors import NotifierError
from notifier.infrastructure.database import Database
from notifier.infrastructure.repositories import NotificationRepository, SubscriptionRepository


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the purge run."""

    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Remove old notifications and unused push subscriptions.",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=settings.notification_retention_days,
        help=(
            "Notifications older than this many days are deleted "
            f"(default: {settings.notification_retention_days})"
        ),
    )
    parser.add_argument(
        "--stale-days",
        type=int,
        default=settings.subscription_stale_days,
        help=(
            "Subscriptions unused for this many days are deleted "
            f"(default: {settings.subscription_stale_days})"
        ),
    )
    parser.add_argument(
        "--skip-subscriptions",
        action="store_true",
        help="Only purge notifications.",
    )
    return parser.parse_args()


async def run(args: argparse.Namespace) -> tuple[int, int]:
    database = Database(get_settings().database_url)
    database.connect()
    try:
        purged = await purge_old_notifications(
            NotificationRepository(database), args.retention_days
        )
        removed = 0
        if not args.skip_subscriptions:
            removed = await cleanup_stale_subscriptions(
                SubscriptionRepository(database), args.stale_days
            )
    finally:
        database.disconnect()
    return purged, removed


def main() -> None:
    """Run the purge using the provided command line arguments."""

    args = parse_args()
    try:
        purged, removed = anyio.run(run, args)
    except NotifierError as exc:
        raise SystemExit(f"Purge failed: {exc}") from exc

    print(
        "Purge complete:\n"
        f"  Notifications deleted: {purged}\n"
        f"  Subscriptions deleted: {removed}"
    )


if __name__ == "__main__":
    main()
