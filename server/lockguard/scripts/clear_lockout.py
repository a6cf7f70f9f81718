"""Script to show or clear the lockout for an identity."""
import argparse
import sys

from lockguard.core.config import get_settings
from lockguard.core.errors import InvalidIdentityError, StoreUnavailableError
from lockguard.services.lockout import build_lockout_engine


def main():
    parser = argparse.ArgumentParser(description="Clear a login lockout")
    parser.add_argument("--identity", required=True, help="Email/identity to unlock")
    parser.add_argument("--ip", default=None, help="IP address of the admin request (for logs)")
    parser.add_argument(
        "--show", action="store_true", help="Only show the current record, do not clear"
    )
    args = parser.parse_args()

    engine = build_lockout_engine(get_settings())
    try:
        record = engine.get_record(args.identity)
        if record is None:
            print(f"No login attempt record for '{args.identity}'.")
        else:
            state = (
                f"locked until {record.lockout_until.isoformat()}"
                if record.lockout_until
                else f"{record.failed_attempts} failed attempts"
            )
            print(
                f"{record.identity}: {state} "
                f"(last attempt {record.last_attempt_at.isoformat()} from {record.ip_address})"
            )

        if args.show:
            return

        outcome = engine.clear_lockout(args.identity, args.ip)
    except InvalidIdentityError as e:
        print(f"Invalid identity: {e}", file=sys.stderr)
        sys.exit(2)
    except StoreUnavailableError:
        print("Attempt store unavailable, lockout NOT cleared.", file=sys.stderr)
        sys.exit(1)

    print(f"Lockout cleared for '{outcome.identity}'.")
    if outcome.error:
        print(f"Warning: verifier cache may be stale ({outcome.error})")


if __name__ == "__main__":
    main()
