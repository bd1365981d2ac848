# SPDX-License-Identifier: Apache-2.0

"""
Operational scripts run as deployment steps.
"""
