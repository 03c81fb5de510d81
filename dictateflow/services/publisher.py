"""Session event publisher for pub/sub notifications."""

import logging
from typing import Optional
from pubsub import pub

from ..models.events import SessionEvent
from ..models.session import Session

logger = logging.getLogger(__name__)

SESSION_TOPIC = "session.updated"


class SessionPublisher:
    """Publishes session lifecycle events using pubsub.pub."""
    
    def __init__(self, topic: str = SESSION_TOPIC):
        """Initialize session publisher.
        
        Args:
            topic: Pub/sub topic name for session events
        """
        self.topic = topic
        logger.info(f"SessionPublisher initialized with topic: {topic}")
    
    def publish(self, event_type: str, session: Optional[Session] = None, session_id: Optional[str] = None,
                **metadata) -> None:
        """Publish a session event.
        
        Args:
            event_type: What changed ("created", "status", "segments", ...)
            session: Snapshot of the session after the change
            session_id: Id of the affected session when no snapshot applies
        """
        event = SessionEvent(
            event_type=event_type,
            session_id=session.id if session is not None else session_id,
            session=session.copy() if session is not None else None,
            metadata=metadata,
        )
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"Published session event: {event_type} ({event.session_id})")
