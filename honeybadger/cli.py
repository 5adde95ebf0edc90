"""
Command-line interface for the HoneyBadger client.

Provides login/logout, gift listing and submission review against the
HoneyBadger backend.
"""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .client import ApiClient
from .config import Settings, get_settings
from .errors import ClientError
from .schemas import Gift, PendingApproval
from .session import AuthSession
from .state import GiftStateManager


# ANSI color codes for terminal output
class Colors:
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


def colorize(text: str, color: str) -> str:
    """Apply color to text if terminal supports it."""
    if sys.stdout.isatty():
        return f"{color}{text}{Colors.RESET}"
    return text


def print_header(text: str) -> None:
    print(colorize(f"\n=== {text} ===", Colors.BOLD + Colors.CYAN))


def print_success(text: str) -> None:
    print(colorize(f"  [OK] {text}", Colors.GREEN))


def print_warning(text: str) -> None:
    print(colorize(f"  [WARN] {text}", Colors.YELLOW))


def print_error(text: str) -> None:
    print(colorize(f"  [ERR] {text}", Colors.RED))


def format_gift(gift: Gift) -> str:
    who = gift.recipient_name or gift.sender_name or gift.recipient_phone or "?"
    line = f"{gift.id}  {gift.gift_type:<12} {gift.status:<12} {who}"
    if gift.duration:
        line += f"  ({gift.duration} days)"
    return line


def format_approval(approval: PendingApproval) -> str:
    who = approval.recipient_name or "?"
    return f"{approval.submission_id}  gift={approval.gift_id}  {who}  submitted {approval.submitted_at}"


# =============================================================================
# Commands
# =============================================================================

def _require_login(session: AuthSession) -> bool:
    if not session.api.is_authenticated:
        print_error("Not logged in. Run 'login' first.")
        return False
    return True


async def cmd_login(args: argparse.Namespace, session: AuthSession) -> int:
    email = args.email or input("Email: ")
    password = getpass.getpass("Password: ")
    try:
        user = await session.login(email, password)
    except ClientError as e:
        print_error(f"Login failed: {e}")
        return 1
    print_success(f"Logged in as {user.name} <{user.email}>")
    return 0


async def cmd_signup(args: argparse.Namespace, session: AuthSession) -> int:
    password = getpass.getpass("Password: ")
    try:
        user = await session.signup(args.name, args.email, password, args.phone)
    except ClientError as e:
        print_error(f"Signup failed: {e}")
        return 1
    print_success(f"Account created for {user.name}")
    return 0


async def cmd_logout(args: argparse.Namespace, session: AuthSession) -> int:
    if not session.api.is_authenticated:
        print_warning("Not logged in")
        return 0
    await session.logout()
    print_success("Logged out")
    return 0


async def cmd_whoami(args: argparse.Namespace, session: AuthSession) -> int:
    if not _require_login(session):
        return 1
    user = await session.load_current_user()
    if user is None:
        print_error("Could not load the current user")
        return 1
    print(f"{user.name} <{user.email}>" + (f"  {user.phone}" if user.phone else ""))
    return 0


async def cmd_gifts(args: argparse.Namespace, session: AuthSession) -> int:
    if not _require_login(session):
        return 1
    state = session.state
    await state.refresh_all()

    print_header(f"Sent ({len(state.sent_gifts)})")
    for gift in state.sent_gifts:
        print(f"  {format_gift(gift)}")

    print_header(f"Received ({len(state.received_gifts)})")
    for gift in state.received_gifts:
        print(f"  {format_gift(gift)}")

    print_header(f"Pending approvals ({state.pending_approvals_count})")
    for approval in state.pending_approvals:
        print(f"  {format_approval(approval)}")

    return 0


async def cmd_approve(args: argparse.Namespace, session: AuthSession) -> int:
    if not _require_login(session):
        return 1
    if await session.state.approve_submission(args.submission_id):
        print_success("Photo approved! Gift unlocked!")
        return 0
    print_error(f"Could not approve submission {args.submission_id}")
    return 1


async def cmd_reject(args: argparse.Namespace, session: AuthSession) -> int:
    if not _require_login(session):
        return 1
    if await session.state.reject_submission(args.submission_id, args.reason or None):
        print_success("Photo submission rejected")
        return 0
    print_error(f"Could not reject submission {args.submission_id}")
    return 1


async def cmd_submit_photo(args: argparse.Namespace, session: AuthSession) -> int:
    if not _require_login(session):
        return 1
    photo = Path(args.photo)
    if not photo.is_file():
        print_error(f"Photo does not exist: {photo}")
        return 1
    if await session.state.submit_challenge_photo(args.gift_id, photo.read_bytes()):
        print_success("Challenge photo submitted for review")
        return 0
    print_error("Challenge photo was not accepted")
    return 1


async def cmd_contacts(args: argparse.Namespace, session: AuthSession) -> int:
    if not _require_login(session):
        return 1
    try:
        contacts = await session.api.get_contacts()
    except ClientError as e:
        print_error(f"Failed to load contacts: {e}")
        return 1
    print_header(f"Contacts ({len(contacts)})")
    for contact in contacts:
        print(f"  {contact.name:<24} {contact.phone:<16} {contact.email or ''}")
    return 0


async def cmd_status(args: argparse.Namespace, session: AuthSession) -> int:
    settings = session.api.settings
    print_header("HoneyBadger Client")
    print(f"  Backend:       {settings.base_url}")
    print(f"  Session store: {settings.token_db_path}")
    print(f"  Logged in:     {session.api.is_authenticated}")
    return 0


Command = Callable[[argparse.Namespace, AuthSession], Awaitable[int]]

COMMANDS: dict[str, Command] = {
    "login": cmd_login,
    "signup": cmd_signup,
    "logout": cmd_logout,
    "whoami": cmd_whoami,
    "gifts": cmd_gifts,
    "approve": cmd_approve,
    "reject": cmd_reject,
    "submit-photo": cmd_submit_photo,
    "contacts": cmd_contacts,
    "status": cmd_status,
}


# =============================================================================
# Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="honeybadger",
        description="HoneyBadger gift client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m honeybadger login --email me@example.com
  python -m honeybadger gifts
  python -m honeybadger approve sub-123
  python -m honeybadger reject sub-123 --reason "Photo is blurry"
  python -m honeybadger submit-photo gift-42 ./proof.jpg
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--base-url", default=None, help="Backend URL (overrides HONEYBADGER_BASE_URL)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    login_parser = subparsers.add_parser("login", help="Log in and store the session token")
    login_parser.add_argument("--email", help="Account email (prompted if omitted)")

    signup_parser = subparsers.add_parser("signup", help="Create an account")
    signup_parser.add_argument("name", help="Display name")
    signup_parser.add_argument("email", help="Account email")
    signup_parser.add_argument("--phone", default=None, help="Phone number")

    subparsers.add_parser("logout", help="Log out and forget the session token")
    subparsers.add_parser("whoami", help="Show the logged-in user")
    subparsers.add_parser("gifts", help="List sent, received and pending-approval gifts")

    approve_parser = subparsers.add_parser("approve", help="Approve a challenge submission")
    approve_parser.add_argument("submission_id", help="Submission to approve")

    reject_parser = subparsers.add_parser("reject", help="Reject a challenge submission")
    reject_parser.add_argument("submission_id", help="Submission to reject")
    reject_parser.add_argument("--reason", default=None, help="Reason shown to the recipient")

    photo_parser = subparsers.add_parser("submit-photo", help="Submit a challenge photo")
    photo_parser.add_argument("gift_id", help="Tracking id of the received gift")
    photo_parser.add_argument("photo", help="Path to the photo (JPEG)")

    subparsers.add_parser("contacts", help="List saved contacts")
    subparsers.add_parser("status", help="Show client configuration and login state")

    return parser


def _build_settings(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    overrides = {}
    if args.base_url:
        overrides["base_url"] = args.base_url.rstrip("/")
    return settings.model_copy(update=overrides) if overrides else settings


async def run(args: argparse.Namespace, api: Optional[ApiClient] = None) -> int:
    """Execute a parsed command against a fresh session."""
    api = api or ApiClient(settings=_build_settings(args))
    state = GiftStateManager(api)
    session = AuthSession(api, state)
    try:
        return await COMMANDS[args.command](args, session)
    finally:
        await state.close()


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    log_level = logging.DEBUG if args.debug or get_settings().debug else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
