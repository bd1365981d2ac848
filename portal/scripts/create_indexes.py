#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Create the portal's MongoDB indexes.

Run once per deployment, before the API takes traffic:

    python -m portal.scripts.create_indexes

The unique indexes on beneficiary national IDs and on credential owners are
what keep concurrent registrations and PIN creations from producing
duplicates.
"""

import sys
import logging
from typing import Optional

from ..services.mongodb import MongoDBService

logger = logging.getLogger(__name__)


def main(mongodb_service: Optional[MongoDBService] = None) -> int:
    """Create indexes; returns the process exit code."""
    mongodb_service = mongodb_service or MongoDBService()
    try:
        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error("MongoDB is not healthy", extra={"health": health})
            return 1

        logger.info(f"Connected to MongoDB {health.get('version')} - Database: {health['database']}")
        mongodb_service.create_indexes()
        return 0
    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        return 1
    finally:
        mongodb_service.close_connection()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    sys.exit(main())
