import argparse
import getpass
import os
import sys

# Add parent directory to path to allow importing modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlmodel import Session

from database.seed_data import seed_admin
from database.session import build_engine, create_db_and_tables
from logging_config import configure_logging


def create_admin(engine, name: str, email: str, password: str, reset_password: bool = False):
    create_db_and_tables(engine)
    with Session(engine) as session:
        user = seed_admin(session, name=name, email=email, password=password, reset_password=reset_password)
        return user.id


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create (or reset) an admin account.")
    parser.add_argument("email")
    parser.add_argument("--name", default="Administrador")
    parser.add_argument("--reset", action="store_true", help="replace the password of an existing account")
    parser.add_argument("--database-url", default=None)
    args = parser.parse_args(argv)

    password = os.getenv("ADMIN_PASSWORD") or getpass.getpass("Password: ")
    if not password:
        parser.error("a password is required")

    configure_logging()
    user_id = create_admin(build_engine(args.database_url), args.name, args.email, password, reset_password=args.reset)
    print(f"SUCCESS: admin account {args.email} ready (id {user_id})")


if __name__ == "__main__":
    main()
