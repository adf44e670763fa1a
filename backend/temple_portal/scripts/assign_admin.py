"""
Offline admin provisioning.

    python -m temple_portal.scripts.assign_admin <uid>
    python -m temple_portal.scripts.assign_admin <uid> --temple <templeId>
    python -m temple_portal.scripts.assign_admin --reconcile

--reconcile rebuilds admin grants from the temple_admins listings of every
temple, for grants that were lost or written before the listing existed.

Uses the same Firebase credentials as the API server.
"""

import argparse
import logging
import sys

from temple_portal.core.config import Settings, configure_logging
from temple_portal.core.errors import AppError
from temple_portal.core.firebase import initialize_firebase
from temple_portal.services.admin_service import AdminService

logger = logging.getLogger("temple_portal.scripts.assign_admin")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Grant admin permissions to a user.")
    parser.add_argument("uid", nargs="?", help="Firebase Auth user id")
    parser.add_argument(
        "--temple",
        dest="temple_id",
        help="Scope the grant to one temple instead of granting super-admin"
    )
    parser.add_argument(
        "--reconcile",
        action="store_true",
        help="Rebuild scoped grants from every temple's temple_admins"
    )
    return parser


def main(argv=None, context=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.reconcile and not args.uid:
        parser.error("uid is required unless --reconcile is given")

    settings = context.settings if context else Settings()
    configure_logging(settings)
    admin_service = AdminService(context or initialize_firebase(settings))

    try:
        if args.reconcile:
            written = admin_service.reconcile_temple_grants()
            logger.info("Reconciled %d admin grants", written)
        elif args.temple_id:
            admin_service.assign_temple_admin(args.uid, args.temple_id)
            logger.info("Assigned temple admin for %s on %s", args.uid, args.temple_id)
        else:
            admin_service.assign_super_admin(args.uid)
            logger.info("Assigned super admin permissions to %s", args.uid)
    except AppError as e:
        logger.error("Script failed: %s", e.message)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
