#!/usr/bin/env python3
"""
Delete every EKS addon in one or more regions.

Meant for cleaning up test accounts after interrupted runs. Addons are
removed from every cluster the credentials can see.

Usage:
    python scripts/sweep-addons.py --region us-west-2
    python scripts/sweep-addons.py --region us-west-2 --region us-east-1 --dry-run
"""

import argparse
import logging
import sys

import boto3

from eks_addons.services.eks_client import EksAddonClient
from eks_addons.services.sweeper import AddonSweeper

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Sweep EKS addons from a region.")
    parser.add_argument(
        "--region",
        required=True,
        action="append",
        help="AWS region to sweep (repeatable)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the addons that would be deleted without deleting them",
    )
    parser.add_argument(
        "--wait",
        action="store_true",
        help="Wait for each addon to finish deleting",
    )
    args = parser.parse_args()

    failed = False
    for region in args.region:
        client = EksAddonClient(boto3.client("eks", region_name=region))
        result = AddonSweeper(client, region, dry_run=args.dry_run, wait=args.wait).sweep()

        if result.skipped:
            logger.warning("Skipped %s: %s", region, result.skipped)
            continue

        verb = "Would delete" if args.dry_run else "Deleted"
        logger.info(
            "%s: scanned %d cluster(s). %s %d addon(s), errors %d.",
            region,
            result.clusters_scanned,
            verb,
            len(result.swept),
            len(result.errors),
        )
        for error in result.errors:
            logger.error("%s", error)
        failed = failed or bool(result.errors)

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
