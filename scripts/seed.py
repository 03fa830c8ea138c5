#!/usr/bin/env python3
"""
Bootstrap a database for the accounts API.

    python scripts/seed.py            # tables, legacy roles, super admin
    python scripts/seed.py --check    # report super admins, change nothing

Credentials come from SEED_SUPERADMIN_EMAIL / SEED_SUPERADMIN_PASSWORD.
Running it again is harmless.
"""
import argparse
import os
import sys

sys.path.append(os.getcwd())

from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from sqlalchemy.orm import Session  # noqa: E402

from app import models  # noqa: E402
from app.core.roles import PLATFORM_SUPER_ADMIN  # noqa: E402
from app.crud.user import build_user, count_super_admins, get_user_by_email, migrate_legacy_roles  # noqa: E402
from app.db.session import make_engine, make_session_factory  # noqa: E402
from app.models.user import User  # noqa: E402


def promote(db: Session, email: str, password: str) -> User:
    """Create the account, or repair an existing one into a live, verified super admin."""
    user = get_user_by_email(db, email)
    if user is None:
        user = build_user(
            db,
            email=email,
            password=password,
            first_name="Super",
            last_name="Admin",
            role=PLATFORM_SUPER_ADMIN,
            email_verified=True,
        )
    else:
        user.role = PLATFORM_SUPER_ADMIN
        user.removed = False
        user.email_verified = True
    db.commit()
    db.refresh(user)
    return user


def report(db: Session) -> int:
    total = count_super_admins(db)
    if not total:
        print("no super admin found")
        return 0
    for u in db.query(User).filter(User.role == PLATFORM_SUPER_ADMIN, User.removed.is_(False)):
        print(f"super admin: {u.email} uid={u.uid}")
    return total


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--check", action="store_true", help="only list current super admins")
    args = parser.parse_args(argv)

    engine = make_engine()
    db = make_session_factory(engine)()
    try:
        if args.check:
            return 0 if report(db) else 1

        models.Base.metadata.create_all(bind=engine)
        fixed = migrate_legacy_roles(db)
        user = promote(
            db,
            os.environ.get("SEED_SUPERADMIN_EMAIL", "admin@example.com"),
            os.environ.get("SEED_SUPERADMIN_PASSWORD", "ChangeMe123!"),
        )
        print(f"legacy roles normalized: {fixed}")
        print(f"super admin ready: {user.email} uid={user.uid}")
        return 0
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
