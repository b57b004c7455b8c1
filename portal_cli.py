# portal_cli.py
import argparse
import os
import sys
import time

from checkout_portal.api_client import ApiClient, ApiError
from checkout_portal.classifier import annotate
from checkout_portal.config import Config
from checkout_portal.notifications import NotificationFeed, NotificationPoller, target_filter
from checkout_portal.session import SessionContext, SessionError


def login(base_url, email, password):
    """Log in against the backend and return (client, session)."""
    client = ApiClient(base_url, timeout=Config.API_TIMEOUT)
    result = client.login({"email": email, "password": password}) or {}
    ctx = SessionContext.from_token(result.get("token") or "")
    client.token = ctx.token
    print(f"[LOGIN] {ctx.user.name or ctx.user.email} ({ctx.user.role.value if ctx.user.role else 'unknown'})")
    return client, ctx


def print_rows(rows):
    for row in rows:
        resource = (row.get("resource") or {}).get("name") or "Unknown Resource"
        user = (row.get("user") or {}).get("name") or "Unknown User"
        print(f"  [{row['severity'].upper():6}] {resource} - {user} - {row['daysText']}")


def run_overdue(args):
    client, ctx = login(args.base_url, args.email, args.password)

    if args.check:
        if not ctx.user.is_admin:
            print("Only admins can trigger an overdue check.")
            return 1
        result = client.check_overdue() or {}
        print(
            f"\nOverdue check completed: {result.get('overdueCount', 0)} overdue, "
            f"{result.get('dueCount', 0)} due soon"
        )

    if ctx.user.is_admin:
        overdue = annotate(client.get_overdue_returns(), overdue=True)
        print(f"\n== Overdue returns ({len(overdue)}) ==")
        print_rows(overdue)

    due = annotate(client.get_due_returns(), overdue=False)
    print(f"\n== Due in the next {Config.DUE_SOON_DAYS} days ({len(due)}) ==")
    print_rows(due)
    return 0


def run_watch(args):
    client, _ = login(args.base_url, args.email, args.password)
    seen = set()

    def show(feed):
        for n in feed.notifications:
            if n.read or n.id in seen:
                continue
            seen.add(n.id)
            where = target_filter(n)
            suffix = f" -> requests?filter={where}" if where else ""
            print(f"  * {n.title}: {n.message}{suffix}")
        print(f"[{time.strftime('%H:%M:%S')}] {feed.unread} unread")

    print(f"\nWatching notifications every {args.interval}s (Ctrl+C to stop)")
    with NotificationPoller(NotificationFeed(client), interval=args.interval, on_update=show):
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            print("\nStopped.")
    return 0


def build_parser():
    p = argparse.ArgumentParser(description="Resource checkout portal command-line tools.")
    p.add_argument("--base-url", default=Config.API_BASE_URL, help="Backend API root")
    p.add_argument("--email", default=os.getenv("PORTAL_EMAIL"), required=not os.getenv("PORTAL_EMAIL"))
    p.add_argument("--password", default=os.getenv("PORTAL_PASSWORD"), required=not os.getenv("PORTAL_PASSWORD"))

    sub = p.add_subparsers(dest="command", required=True)

    overdue = sub.add_parser("overdue", help="List overdue and due-soon returns")
    overdue.add_argument("--check", action="store_true", help="Ask the backend to recompute first (admin)")
    overdue.set_defaults(func=run_overdue)

    watch = sub.add_parser("watch", help="Poll and print new notifications")
    watch.add_argument("--interval", type=int, default=Config.NOTIFICATION_POLL_SECONDS)
    watch.set_defaults(func=run_watch)
    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except SessionError as e:
        print(f"[ERROR] {e}")
        return 1
    except ApiError as e:
        print(f"[ERROR] Backend call failed: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
