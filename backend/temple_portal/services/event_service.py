"""
Event Service
==============
Temple events stored under temples/{templeId}/events.

Every event carries a denormalized `templeId`. Reads compare it with the
temple in the request path; a mismatch is treated exactly like a missing
event.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from temple_portal.core.errors import InvalidInput, NotFound, Unavailable
from temple_portal.core.firebase import (
    FirebaseContext,
    events_collection,
    users_collection
)
from temple_portal.core.security import CurrentUser, log_audit_event
from temple_portal.core.serialization import serialize_data, snapshot_to_dict

logger = logging.getLogger(__name__)

# Fields that may not be cleared once set
REQUIRED_EVENT_FIELDS = ("title", "startDate", "endDate", "location", "registrationRequired")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes from clients as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# MODELS
# =============================================================================

class CreateEventRequest(BaseModel):
    """Request to create an event (temple admin only)."""
    model_config = ConfigDict(populate_by_name=True)

    temple_id: str = Field(alias="templeId", min_length=1)
    title: str = Field(min_length=1)
    description: str = ""
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    location: str = Field(min_length=1)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    capacity: Optional[int] = Field(default=None, ge=1)
    registration_required: bool = Field(default=False, alias="registrationRequired")

    utc_dates = field_validator("start_date", "end_date")(as_utc)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class UpdateEventRequest(BaseModel):
    """Partial event update (temple admin only)."""
    model_config = ConfigDict(populate_by_name=True)

    temple_id: str = Field(alias="templeId", min_length=1)
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    location: Optional[str] = Field(default=None, min_length=1)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    capacity: Optional[int] = Field(default=None, ge=1)
    registration_required: Optional[bool] = Field(default=None, alias="registrationRequired")

    utc_dates = field_validator("start_date", "end_date")(as_utc)

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self

    def changes(self) -> dict:
        """Fields the caller actually sent, keyed by their stored names."""
        changes = self.model_dump(by_alias=True, exclude_unset=True, exclude={"temple_id"})
        return {
            key: value for key, value in changes.items()
            if value is not None or key not in REQUIRED_EVENT_FIELDS
        }


class EventCreatedResponse(BaseModel):
    success: bool = True
    eventId: str
    message: str = "Event created successfully"


# =============================================================================
# EVENT SERVICE
# =============================================================================

class EventService:
    """Event listing, management and registration."""

    def __init__(self, ctx: FirebaseContext):
        self.ctx = ctx
        self.db = ctx.db

    def list_events(self, temple_id: str) -> List[dict]:
        """Events for one temple, newest start date first."""
        try:
            query = events_collection(self.db, temple_id).order_by(
                "startDate", direction=firestore.Query.DESCENDING
            )
            docs = list(query.stream())
        except GoogleAPICallError:
            logger.exception("Error fetching events for temple %s", temple_id)
            raise Unavailable("Failed to fetch events")

        events = []
        for doc in docs:
            data = doc.to_dict() or {}
            if data.get("templeId") != temple_id:
                logger.warning(
                    "Skipping event %s: stored templeId %r does not match %s",
                    doc.id, data.get("templeId"), temple_id
                )
                continue
            events.append(snapshot_to_dict(doc))

        return events

    def _load_event(self, temple_id: str, event_id: str) -> Tuple[object, dict]:
        event_ref = events_collection(self.db, temple_id).document(event_id)
        try:
            doc = event_ref.get()
        except GoogleAPICallError:
            logger.exception("Error fetching event %s", event_id)
            raise Unavailable("Failed to fetch event")

        data = doc.to_dict() if doc.exists else None
        if not data or data.get("templeId") != temple_id:
            raise NotFound("Event not found")

        return event_ref, data

    def get_event(self, temple_id: str, event_id: str) -> dict:
        _, data = self._load_event(temple_id, event_id)
        return serialize_data({"id": event_id, **data})

    def create_event(self, request: CreateEventRequest, user: CurrentUser) -> str:
        event_ref = events_collection(self.db, request.temple_id).document()

        event_data = {
            "templeId": request.temple_id,
            "title": request.title,
            "description": request.description,
            "startDate": request.start_date,
            "endDate": request.end_date,
            "location": request.location,
            "registrationRequired": request.registration_required,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP
        }
        if request.image_url is not None:
            event_data["imageUrl"] = request.image_url
        if request.capacity is not None:
            event_data["capacity"] = request.capacity

        try:
            event_ref.set(event_data)
        except GoogleAPICallError:
            logger.exception("Error creating event for temple %s", request.temple_id)
            raise Unavailable("Failed to create event")

        log_audit_event(
            self.ctx,
            action="EVENT_CREATED",
            user_id=user.uid,
            details={"temple_id": request.temple_id, "event_id": event_ref.id}
        )

        return event_ref.id

    def update_event(self, event_id: str, request: UpdateEventRequest, user: CurrentUser) -> dict:
        changes = request.changes()
        if not changes:
            raise InvalidInput("At least one field to update is required")

        event_ref, current = self._load_event(request.temple_id, event_id)

        start = changes.get("startDate", current.get("startDate"))
        end = changes.get("endDate", current.get("endDate"))
        if start and end and end < start:
            raise InvalidInput("endDate must not be before startDate")

        changes["updatedAt"] = firestore.SERVER_TIMESTAMP

        try:
            event_ref.update(changes)
        except GoogleAPICallError:
            logger.exception("Error updating event %s", event_id)
            raise Unavailable("Failed to update event")

        log_audit_event(
            self.ctx,
            action="EVENT_UPDATED",
            user_id=user.uid,
            details={"temple_id": request.temple_id, "event_id": event_id}
        )

        return self.get_event(request.temple_id, event_id)

    def delete_event(self, temple_id: str, event_id: str, user: CurrentUser) -> None:
        event_ref, _ = self._load_event(temple_id, event_id)

        try:
            event_ref.delete()
        except GoogleAPICallError:
            logger.exception("Error deleting event %s", event_id)
            raise Unavailable("Failed to delete event")

        log_audit_event(
            self.ctx,
            action="EVENT_DELETED",
            user_id=user.uid,
            details={"temple_id": temple_id, "event_id": event_id}
        )

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, temple_id: str, event_id: str, user: CurrentUser) -> None:
        """Add the caller to the event's participants."""
        event_ref, event = self._load_event(temple_id, event_id)
        participants = event.get("participants") or []

        if any(p.get("userId") == user.uid for p in participants):
            raise InvalidInput("Already registered for this event")

        capacity = event.get("capacity")
        if capacity and len(participants) >= capacity:
            raise InvalidInput("Event is at full capacity")

        try:
            profile_doc = users_collection(self.db).document(user.uid).get()
            profile = profile_doc.to_dict() if profile_doc.exists else {}

            participant = {
                "userId": user.uid,
                "registeredAt": datetime.now(timezone.utc)
            }
            for field in ("displayName", "photoURL"):
                if profile.get(field):
                    participant[field] = profile[field]

            event_ref.update({"participants": firestore.ArrayUnion([participant])})
        except GoogleAPICallError:
            logger.exception("Error registering %s for event %s", user.uid, event_id)
            raise Unavailable("Failed to register for event")

    def unregister(self, temple_id: str, event_id: str, user: CurrentUser) -> None:
        event_ref, event = self._load_event(temple_id, event_id)
        participant = next(
            (p for p in event.get("participants") or [] if p.get("userId") == user.uid),
            None
        )
        if participant is None:
            raise InvalidInput("Not registered for this event")

        try:
            event_ref.update({"participants": firestore.ArrayRemove([participant])})
        except GoogleAPICallError:
            logger.exception("Error unregistering %s from event %s", user.uid, event_id)
            raise Unavailable("Failed to unregister from event")
