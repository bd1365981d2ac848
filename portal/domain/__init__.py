# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the beneficiary portal.

This package contains the validation rules and the state machines of the
search/profile flow and the registration wizard. Nothing here performs I/O;
backend calls are made by the service layer.
"""
