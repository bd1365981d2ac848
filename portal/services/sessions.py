# SPDX-License-Identifier: Apache-2.0

"""
Redis-backed portal session store.

Each portal session is stored as one JSON document with a sliding TTL. A
separate short-lived key marks a session whose operation is in flight.
"""

import os
from typing import Optional, Dict, Any
import redis
from pydantic import ValidationError
from opentelemetry import trace
import logging

from ..domain.session import PortalSession
from ..middleware.error_handler import SessionNotFoundError, ServiceUnavailableException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "portal:session:"
OPERATION_KEY_PREFIX = "portal:operation:"


class SessionStore:
    """Portal session persistence with the standard redis-py client."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        operation_ttl_seconds: Optional[int] = None,
        client: Optional[Any] = None
    ):
        """
        Initialize the session store.

        Args:
            redis_url: Redis connection URL (redis://host:port)
            ttl_seconds: Idle lifetime of a session
            operation_ttl_seconds: Upper bound of an in-flight marker
            client: Ready redis client, used instead of redis_url
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")
        self.ttl_seconds = ttl_seconds or int(os.getenv("SESSION_TTL_SECONDS", "1800"))
        # An abandoned operation must not block the session forever
        self.operation_ttl_seconds = operation_ttl_seconds or max(
            1, int(os.getenv("BACKEND_TIMEOUT_MS", "10000")) * 3 // 1000
        )

        if client is not None:
            self.client = client
            return

        try:
            self.client = redis.from_url(self.redis_url, decode_responses=True)
            logger.info(f"Session store initialized at {self.redis_url}")
        except Exception as e:
            logger.error(f"Failed to initialize session store: {str(e)}")
            self.client = None

    def _require_client(self):
        if self.client is None:
            raise ServiceUnavailableException("Session store is not available")
        return self.client

    def _key(self, session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    def save(self, session: PortalSession) -> PortalSession:
        """Write the session and refresh its TTL."""
        client = self._require_client()

        with tracer.start_as_current_span("sessions.save") as span:
            span.set_attributes({
                "session.id": session.id,
                "session.step": session.step,
                "session.is_loading": session.is_loading
            })

            session.touch()
            try:
                client.setex(self._key(session.id), self.ttl_seconds, session.model_dump_json())
            except redis.RedisError as e:
                span.record_exception(e)
                logger.error(f"Session save failed for {session.id}: {str(e)}")
                raise ServiceUnavailableException("Session store is not available") from e

            return session

    def load(self, session_id: str) -> PortalSession:
        """
        Read a session.

        Raises:
            SessionNotFoundError: If the session is unknown or expired
            ServiceUnavailableException: If Redis cannot be reached
        """
        client = self._require_client()

        with tracer.start_as_current_span("sessions.load") as span:
            span.set_attribute("session.id", session_id)

            try:
                raw = client.get(self._key(session_id))
            except redis.RedisError as e:
                span.record_exception(e)
                logger.error(f"Session load failed for {session_id}: {str(e)}")
                raise ServiceUnavailableException("Session store is not available") from e

            if raw is None:
                span.set_attribute("session.found", False)
                raise SessionNotFoundError(session_id)

            try:
                session = PortalSession.model_validate_json(raw)
            except ValidationError as e:
                # Stored under an incompatible layout; treat as expired
                logger.warning(f"Discarding unreadable session {session_id}: {str(e)}")
                self.delete(session_id)
                raise SessionNotFoundError(session_id) from e

            span.set_attribute("session.found", True)
            return session

    def delete(self, session_id: str) -> bool:
        client = self._require_client()

        with tracer.start_as_current_span("sessions.delete") as span:
            span.set_attribute("session.id", session_id)
            try:
                deleted = client.delete(self._key(session_id))
                client.delete(f"{OPERATION_KEY_PREFIX}{session_id}")
            except redis.RedisError as e:
                span.record_exception(e)
                logger.error(f"Session delete failed for {session_id}: {str(e)}")
                raise ServiceUnavailableException("Session store is not available") from e
            return bool(deleted)

    def begin_operation(self, session_id: str) -> bool:
        """Mark an operation as in flight; False if one already is."""
        client = self._require_client()
        try:
            acquired = client.set(
                f"{OPERATION_KEY_PREFIX}{session_id}", "1",
                nx=True, ex=self.operation_ttl_seconds
            )
        except redis.RedisError as e:
            logger.error(f"In-flight marker failed for {session_id}: {str(e)}")
            raise ServiceUnavailableException("Session store is not available") from e
        return bool(acquired)

    def operation_in_progress(self, session_id: str) -> bool:
        client = self._require_client()
        try:
            return bool(client.exists(f"{OPERATION_KEY_PREFIX}{session_id}"))
        except redis.RedisError as e:
            logger.error(f"In-flight marker check failed for {session_id}: {str(e)}")
            raise ServiceUnavailableException("Session store is not available") from e

    def end_operation(self, session_id: str) -> None:
        client = self._require_client()
        try:
            client.delete(f"{OPERATION_KEY_PREFIX}{session_id}")
        except redis.RedisError as e:
            # The marker expires on its own
            logger.error(f"In-flight marker release failed for {session_id}: {str(e)}")

    def health_check(self) -> Dict[str, Any]:
        """Check Redis connection health."""
        if self.client is None:
            return {"status": "unavailable", "error": "Redis client not initialized"}

        try:
            self.client.ping()
            return {"status": "healthy", "ttl_seconds": self.ttl_seconds}
        except Exception as e:
            logger.error(f"Session store health check failed: {str(e)}")
            return {"status": "unhealthy", "error": str(e)}
