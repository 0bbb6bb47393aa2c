"""Register a user directly in the DB.

Usage:
  python scripts/create_user.py --username alice --password '...'
"""

import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from authcore.auth.crud import register_user
from authcore.config import load_config
from authcore.db import connect, init_db
from authcore.errors import DuplicateUser


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--password", help="prompted for when omitted")
    args = ap.parse_args()

    password = args.password or getpass.getpass("Password: ")

    cfg = load_config().validate()
    init_db(cfg.DB_DSN)

    try:
        with connect(cfg.DB_DSN) as conn:
            u = register_user(conn, username=args.username, password=password)
    except DuplicateUser:
        print(f"User already exists: {args.username}", file=sys.stderr)
        raise SystemExit(1)

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
