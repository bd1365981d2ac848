# SPDX-License-Identifier: Apache-2.0

"""
Beneficiary portal API.

Lookup, self-registration and PIN-protected self-service edits for
welfare-aid beneficiaries.
"""

__version__ = "1.0.0"
