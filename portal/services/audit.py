# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit service for portal action logging with OpenTelemetry correlation.
"""

import logging
from typing import Dict, List, Any
from opentelemetry import trace
from pymongo import DESCENDING

from .mongodb import MongoDBService, AUDIT_LOGS
from ..models.entities import AuditEntry

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AuditService:
    """Service for audit logging with MongoDB persistence."""

    def __init__(self, mongo_service: MongoDBService):
        """Initialize audit service with MongoDB dependency."""
        self.mongo_service = mongo_service
        self.collection_name = AUDIT_LOGS
        logger.info("Audit service initialized")

    def record_entry(self, entry: AuditEntry) -> str:
        """
        Store an audit entry, stamping it with the current trace context.

        Args:
            entry: Audit entry to persist

        Returns:
            str: ID of the created audit log entry
        """
        with tracer.start_as_current_span("audit.record_entry") as span:
            try:
                # Get current span context for trace correlation
                span_context = span.get_span_context()
                if span_context.is_valid:
                    entry = entry.model_copy(update={
                        "trace_id": format(span_context.trace_id, "032x"),
                        "span_id": format(span_context.span_id, "016x")
                    })

                span.set_attributes({
                    "audit.subject_kind": entry.subject_kind,
                    "audit.action": entry.action,
                    "audit.visibility": entry.visibility,
                    "audit.subject_id": entry.subject_id or ""
                })

                audit_id = self.mongo_service.create(
                    self.collection_name,
                    entry.model_dump(by_alias=True)
                )

                logger.info(
                    "Audit trail entry created",
                    extra={
                        "audit_id": audit_id,
                        "subject_kind": entry.subject_kind,
                        "subject_id": entry.subject_id,
                        "action": entry.action,
                        "visibility": entry.visibility,
                        "trace_id": entry.trace_id,
                        "audit_category": "portal_action"
                    }
                )

                return audit_id

            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    "Failed to create audit trail entry",
                    extra={
                        "subject_kind": entry.subject_kind,
                        "subject_id": entry.subject_id,
                        "action": entry.action,
                        "error": str(e)
                    },
                    exc_info=True
                )
                raise

    def entries_for_subject(self, subject_id: str) -> List[AuditEntry]:
        """Audit history of one subject, newest first."""
        with tracer.start_as_current_span("audit.entries_for_subject") as span:
            span.set_attribute("audit.subject_id", subject_id)
            documents: List[Dict[str, Any]] = self.mongo_service.find(
                self.collection_name,
                {"subjectId": subject_id},
                sort_by="timestamp",
                sort_order=DESCENDING
            )
            return [AuditEntry.model_validate(doc) for doc in documents]
