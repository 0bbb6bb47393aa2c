"""Log in (if needed) and call the protected prediction endpoint.

Usage:
  python scripts/client_predict.py --base-url http://localhost:8000 --username alice "some text"
  python scripts/client_predict.py --logout

The token is cached in ~/.authcore/session.json (override with AUTHCORE_SESSION_PATH)
and reused until it expires or the server rejects it.
"""

import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from authcore.client import AuthClient, NotAuthenticated, SessionManager, SessionRejected
from authcore.errors import AuthError


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--base-url", default="http://localhost:8000")
    ap.add_argument("--username")
    ap.add_argument("--logout", action="store_true")
    ap.add_argument("text", nargs="?")
    args = ap.parse_args()

    client = AuthClient(args.base_url, SessionManager())

    if args.logout:
        client.logout()
        print("Logged out.")
        return

    if not args.text:
        ap.error("text is required")

    try:
        if not client.session.is_authenticated:
            if not args.username:
                raise NotAuthenticated("no session; pass --username to log in")
            client.login(args.username, getpass.getpass("Password: "))
        print(client.predict(args.text))
    except SessionRejected:
        print("Session expired. Please log in again.", file=sys.stderr)
        raise SystemExit(1)
    except AuthError as e:
        print(f"error: {e.code}: {e}", file=sys.stderr)
        raise SystemExit(2 if e.retryable else 1)


if __name__ == "__main__":
    main()
