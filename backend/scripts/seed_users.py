#!/usr/bin/env python
"""Idempotent seed script for demo users, one per workflow role.

Usage:
    python backend/scripts/seed_users.py               # seed normally
    python backend/scripts/seed_users.py --show-users  # print role -> email after seeding
    python backend/scripts/seed_users.py --dry-run     # run logic then rollback (no DB changes)
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from markpedia import create_app, get_db  # type: ignore
from markpedia.constants.roles import (
    ROLE_CEO, ROLE_ADMIN, ROLE_FINANCE, ROLE_ACCOUNTANT, ROLE_CASHIER, ROLE_CFO, ROLE_MANAGER, ROLE_EMPLOYEE,
)
from markpedia.models.authz import User

# (role, name, department, designation)
DEMO_USERS = (
    (ROLE_CEO, 'Chief Executive', 'Executive', 'CEO'),
    (ROLE_ADMIN, 'System Admin', 'IT', 'Administrator'),
    (ROLE_FINANCE, 'Finance Officer', 'Finance', 'Finance Officer'),
    (ROLE_ACCOUNTANT, 'Chief Accountant', 'Finance', 'Accountant'),
    (ROLE_CASHIER, 'Head Cashier', 'Finance', 'Cashier'),
    (ROLE_CFO, 'Chief Financial Officer', 'Finance', 'CFO'),
    (ROLE_MANAGER, 'Operations Manager', 'Operations', 'Manager'),
    (ROLE_EMPLOYEE, 'Field Employee', 'Operations', 'Logistics Officer'),
)


def demo_email(role: str) -> str:
    domain = os.getenv('SEED_EMAIL_DOMAIN', 'markpedia.example')
    return f"{role.lower()}@{domain}"


def ensure_users(session, password: str):
    existing = {u.email for u in session.execute(select(User)).scalars().all()}
    created = 0
    for role, name, department, designation in DEMO_USERS:
        email = demo_email(role)
        if email in existing:
            continue
        user = User(name=name, email=email, password_hash='', role=role,
                    department=department, designation=designation, is_active=True)
        user.set_password(password)
        session.add(user)
        created += 1
    session.flush()
    return created


def print_user_summary(session):
    rows = [(u.role, u.email, u.department or '') for u in session.execute(select(User).order_by(User.role)).scalars()]
    if not rows:
        print("[INFO] No users present.")
        return
    role_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(role_w)} | Email | Department")
    print('-' * (role_w + 40))
    for role, email, dept in rows:
        print(f"{role.ljust(role_w)} | {email} | {dept}")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed one demo user per cash workflow role",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_users.py\n  dry run: seed_users.py --dry-run\n  show users: seed_users.py --show-users\n""")
    )
    p.add_argument('--show-users', action='store_true', help='Print seeded users after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM users LIMIT 1'))
        except Exception:
            # Bootstrap schema if migrations not run yet; in real env prefer alembic upgrade
            session.rollback()
            from markpedia.models.authz import Base
            from markpedia.models import audit, cash_request, cash_receipt, cashbook, doc_counter  # noqa: F401
            Base.metadata.create_all(session.get_bind())
        finally:
            session.commit()

    with app.app_context():
        session = get_db()
        try:
            created = ensure_users(session, os.getenv('SEED_USER_PASSWORD', 'ChangeMe123!'))
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Users would create: {created}")
            else:
                session.commit()
                print(f"[DONE] Users created: {created}")
            if args.show_users:
                print_user_summary(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
