# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Persistence, session storage and portal orchestration.
"""

from .mongodb import MongoDBService

__all__ = [
    "MongoDBService"
]
