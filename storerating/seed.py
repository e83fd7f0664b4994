"""
Create the first system administrator.

Usage:
  storerating-seed --name "Initial System Administrator" --email admin@example.com --password 'Admin@123' [--address ...]
  python -m storerating.seed ...
"""
import argparse
import logging
import sys

from . import crud, schemas
from .config import configure_logging
from .db import SessionLocal, init_db
from .errors import StoreRatingError
from .roles import Role

logger = logging.getLogger(__name__)


def seed_admin(db, name: str, email: str, password: str, address: str):
    existing = crud.get_user_by_email(db, email)
    if existing:
        logger.info("Administrator already present", extra={"user_id": existing.id})
        return existing
    payload = schemas.RegisterRequest(name=name, email=email, address=address, password=password)
    return crud.create_user(db, payload, role=Role.SYSTEM_ADMIN)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create the first system administrator")
    parser.add_argument("--name", required=True, help="20 to 60 characters")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True, help="8-16 chars, one uppercase, one special character")
    parser.add_argument("--address", default="Head Office")
    args = parser.parse_args(argv)

    configure_logging()
    init_db()
    db = SessionLocal()
    try:
        user = seed_admin(db, args.name, args.email, args.password, args.address)
    except StoreRatingError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"administrator #{user.id} <{user.email}>")
    return 0


if __name__ == "__main__":
    sys.exit(main())
