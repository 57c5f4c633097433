"""
Promote an existing account to admin.

    python -m returnvehicle.scripts.make_admin --uid <uid>
    python -m returnvehicle.scripts.make_admin --email someone@example.com

The account must have signed in at least once so its user row exists.
"""

import argparse
import asyncio
import sys

from returnvehicle.core.exceptions import DomainError
from returnvehicle.core.logging import get_logger, setup_logging
from returnvehicle.db.session import AsyncSessionLocal, engine
from returnvehicle.services.user_service import promote_to_admin


async def _run(uid, email) -> int:
    logger = get_logger("make_admin")
    try:
        async with AsyncSessionLocal() as db:
            user = await promote_to_admin(db, uid=uid, email=email)
    except DomainError as e:
        logger.error("promote_failed", error=e.message)
        return 1
    finally:
        await engine.dispose()
    print(f"{user.uid} ({user.email or 'no email'}) is now an admin")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Grant the admin role to a user")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--uid", help="identity-provider uid")
    group.add_argument("--email", help="account email")
    args = parser.parse_args(argv)

    setup_logging()
    return asyncio.run(_run(args.uid, args.email))


if __name__ == "__main__":
    sys.exit(main())
