"""
Create a sign-in account.

Accounts are provisioned by an operator; only emails on ALLOWED_EMAILS can
actually use them. The new account starts unverified, so the first sign-in
sends a verification link.

Usage:
    python provision_user.py someone@example.com
"""

import argparse
import asyncio
import getpass
import sys

from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import ConflictError, StoreError
from infrastructure.identity.local import register_user
from repositories.user_repository import UserRepository
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


async def provision(settings: AppSettings, email: str, password: str) -> int:
    if not settings.access.is_allowed(email):
        log.warning("provision_email_not_allowed", email=email)

    client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri)
    try:
        users = UserRepository(client[settings.db.db_name])
        await users.ensure_indexes()
        uid = await register_user(users, email, password)
    except (ConflictError, StoreError) as e:
        log.error("provision_failed", email=email, error=e.message)
        return 1
    finally:
        await client.close()

    print(f"Created user {uid} for {email}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("email")
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if not password or password != getpass.getpass("Repeat password: "):
        print("Passwords are empty or do not match.", file=sys.stderr)
        return 2

    settings = AppSettings()
    setup_logging(settings.logging)
    return asyncio.run(provision(settings, args.email, password))


if __name__ == "__main__":
    sys.exit(main())
