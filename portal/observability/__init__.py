# SPDX-License-Identifier: Apache-2.0

"""
Observability package: OpenTelemetry tracing setup and request logging.
"""
