"""
Grant the admin role to an existing account.

Usage:
  python -m dropiq.scripts.promote_admin user@example.com
"""
import argparse

from sqlalchemy import select

from dropiq.app import create_app
from dropiq.db.session import get_session
from dropiq.models import User


def promote(email: str) -> bool:
    session = get_session()
    try:
        user = session.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()
        if user is None:
            return False
        user.role = "admin"
        session.commit()
        return True
    finally:
        session.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("email")
    args = parser.parse_args(argv)

    app = create_app({"SEED_SAMPLE_DATA": False})
    with app.app_context():
        if not promote(args.email):
            raise SystemExit(f"No user with email {args.email}")
    print(f"{args.email} is now an admin.")


if __name__ == "__main__":
    main()
