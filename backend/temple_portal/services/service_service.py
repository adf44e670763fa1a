"""
Service Service
================
Temple services (volunteer slots, poojas, classes), their types and the
registrations users make for them.

Storage:
- temples/{templeId}/services/{serviceId}
- temples/{templeId}/service_types/{typeId}
- service_registrations/{registrationId} (top-level, carries templeId)

Registration status drives two counters on the service:
`pendingParticipants` and `currentParticipants` (approved).

Security:
- Create/update/delete and registration review require temple admin
  (enforced by the router)
- A registration may be withdrawn by its owner or a temple admin
"""

import logging
from datetime import datetime
from typing import List, Literal, Optional

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError
from pydantic import BaseModel, ConfigDict, Field, field_validator

from temple_portal.core.errors import Forbidden, InvalidInput, NotFound, Unavailable
from temple_portal.core.firebase import (
    FirebaseContext,
    service_registrations_collection,
    service_types_collection,
    services_collection,
    temple_members_collection
)
from temple_portal.core.security import (
    CurrentUser,
    can_manage_temple,
    get_admin_grant,
    log_audit_event
)
from temple_portal.core.serialization import serialize_data, snapshot_to_dict
from temple_portal.services.event_service import as_utc

logger = logging.getLogger(__name__)

SERVICES_PER_PAGE = 12

REQUIRED_SERVICE_FIELDS = ("name", "type", "maxParticipants", "date", "timeSlot")

# Counter each registration status is tallied in; rejected is not counted
STATUS_COUNTERS = {
    "pending": "pendingParticipants",
    "approved": "currentParticipants"
}


# =============================================================================
# MODELS
# =============================================================================

class TimeSlot(BaseModel):
    start: str = Field(min_length=1)
    end: str = Field(min_length=1)


class CreateServiceRequest(BaseModel):
    """Request to create a service (temple admin only)."""
    model_config = ConfigDict(populate_by_name=True)

    temple_id: str = Field(alias="templeId", min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    type: str = Field(min_length=1)
    max_participants: int = Field(alias="maxParticipants", ge=1)
    date: datetime
    time_slot: TimeSlot = Field(alias="timeSlot")

    utc_date = field_validator("date")(as_utc)


class UpdateServiceRequest(BaseModel):
    """Partial service update (temple admin only)."""
    model_config = ConfigDict(populate_by_name=True)

    temple_id: str = Field(alias="templeId", min_length=1)
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    type: Optional[str] = Field(default=None, min_length=1)
    max_participants: Optional[int] = Field(default=None, alias="maxParticipants", ge=1)
    date: Optional[datetime] = None
    time_slot: Optional[TimeSlot] = Field(default=None, alias="timeSlot")
    notes: Optional[str] = None

    utc_date = field_validator("date")(as_utc)

    def changes(self) -> dict:
        changes = self.model_dump(by_alias=True, exclude_unset=True, exclude={"temple_id"})
        return {
            key: value for key, value in changes.items()
            if value is not None or key not in REQUIRED_SERVICE_FIELDS
        }


class CreateServiceTypeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    temple_id: str = Field(alias="templeId", min_length=1)
    name: str = Field(min_length=1)
    icon: str = Field(min_length=1)


class UpdateRegistrationRequest(BaseModel):
    """Review decision on a registration (temple admin only)."""
    model_config = ConfigDict(populate_by_name=True)

    temple_id: str = Field(alias="templeId", min_length=1)
    status: Literal["pending", "approved", "rejected"]


class ServiceCreatedResponse(BaseModel):
    success: bool = True
    serviceId: str
    message: str = "Service created successfully"


# =============================================================================
# SERVICE SERVICE
# =============================================================================

class ServiceService:
    """Temple services, service types and registrations."""

    def __init__(self, ctx: FirebaseContext):
        self.ctx = ctx
        self.db = ctx.db

    # -------------------------------------------------------------------------
    # Services
    # -------------------------------------------------------------------------

    def list_services(self, temple_id: str, after: Optional[datetime] = None) -> dict:
        """
        One page of services, most recently updated first.

        `after` is the `lastServiceDate` returned with the previous page.
        Registrations are reported as a count only.
        """
        query = services_collection(self.db, temple_id) \
            .order_by("updatedAt", direction=firestore.Query.DESCENDING) \
            .limit(SERVICES_PER_PAGE)
        if after is not None:
            query = query.start_after({"updatedAt": as_utc(after)})

        try:
            docs = list(query.stream())
        except GoogleAPICallError:
            logger.exception("Error fetching services for temple %s", temple_id)
            raise Unavailable("Failed to fetch services")

        services = [self._summarize(doc) for doc in docs]

        return {
            "services": services,
            "hasMore": len(services) == SERVICES_PER_PAGE,
            "lastServiceDate": services[-1]["updatedAt"] if services else None
        }

    @staticmethod
    def _summarize(doc) -> dict:
        data = doc.to_dict() or {}
        embedded = data.pop("registrations", None)
        if isinstance(embedded, list):
            count = len(embedded)
        else:
            count = (data.get("currentParticipants") or 0) + (data.get("pendingParticipants") or 0)
        return serialize_data({"id": doc.id, **data, "registrationCount": count})

    def _load_service(self, temple_id: str, service_id: str):
        service_ref = services_collection(self.db, temple_id).document(service_id)
        try:
            doc = service_ref.get()
        except GoogleAPICallError:
            logger.exception("Error fetching service %s", service_id)
            raise Unavailable("Failed to fetch service")

        if not doc.exists:
            raise NotFound("Service not found")

        return service_ref, doc.to_dict() or {}

    def get_service(self, temple_id: str, service_id: str) -> dict:
        _, data = self._load_service(temple_id, service_id)
        return serialize_data({"id": service_id, **data})

    def create_service(self, request: CreateServiceRequest, user: CurrentUser) -> str:
        service_ref = services_collection(self.db, request.temple_id).document()

        try:
            service_ref.set({
                "templeId": request.temple_id,
                "name": request.name,
                "description": request.description,
                "type": request.type,
                "maxParticipants": request.max_participants,
                "currentParticipants": 0,
                "pendingParticipants": 0,
                "date": request.date,
                "timeSlot": request.time_slot.model_dump(),
                "createdBy": user.uid,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP
            })
        except GoogleAPICallError:
            logger.exception("Error creating service for temple %s", request.temple_id)
            raise Unavailable("Failed to create service")

        log_audit_event(
            self.ctx,
            action="SERVICE_CREATED",
            user_id=user.uid,
            details={"temple_id": request.temple_id, "service_id": service_ref.id}
        )

        return service_ref.id

    def update_service(self, service_id: str, request: UpdateServiceRequest, user: CurrentUser) -> dict:
        changes = request.changes()
        if not changes:
            raise InvalidInput("At least one field to update is required")

        service_ref, _ = self._load_service(request.temple_id, service_id)
        changes["updatedAt"] = firestore.SERVER_TIMESTAMP

        try:
            service_ref.update(changes)
        except GoogleAPICallError:
            logger.exception("Error updating service %s", service_id)
            raise Unavailable("Failed to update service")

        log_audit_event(
            self.ctx,
            action="SERVICE_UPDATED",
            user_id=user.uid,
            details={"temple_id": request.temple_id, "service_id": service_id}
        )

        return self.get_service(request.temple_id, service_id)

    def delete_service(self, temple_id: str, service_id: str, user: CurrentUser, force: bool = False) -> int:
        """
        Delete a service and return how many registrations went with it.

        Without `force`, a service that still has registrations is refused.
        With it, the registrations and the service are deleted in one batch.
        """
        service_ref, _ = self._load_service(temple_id, service_id)

        try:
            registrations = list(
                service_registrations_collection(self.db)
                .where("serviceId", "==", service_id)
                .where("templeId", "==", temple_id)
                .stream()
            )
        except GoogleAPICallError:
            logger.exception("Error checking registrations for service %s", service_id)
            raise Unavailable("Failed to delete service")

        if registrations and not force:
            raise InvalidInput(
                "Service has active registrations. Remove them before deleting or use force delete."
            )

        batch = self.db.batch()
        for registration in registrations:
            batch.delete(registration.reference)
        batch.delete(service_ref)

        try:
            batch.commit()
        except GoogleAPICallError:
            logger.exception("Error deleting service %s", service_id)
            raise Unavailable("Failed to delete service")

        log_audit_event(
            self.ctx,
            action="SERVICE_DELETED",
            user_id=user.uid,
            details={
                "temple_id": temple_id,
                "service_id": service_id,
                "registrations_deleted": len(registrations)
            }
        )

        return len(registrations)

    # -------------------------------------------------------------------------
    # Service types
    # -------------------------------------------------------------------------

    def list_service_types(self, temple_id: str) -> List[dict]:
        try:
            docs = service_types_collection(self.db, temple_id).order_by("name").stream()
            return [snapshot_to_dict(doc) for doc in docs]
        except GoogleAPICallError:
            logger.exception("Error fetching service types for temple %s", temple_id)
            raise Unavailable("Failed to fetch service types")

    def create_service_type(self, request: CreateServiceTypeRequest, user: CurrentUser) -> dict:
        """Create a service type; an existing type with the same name is returned instead."""
        types_ref = service_types_collection(self.db, request.temple_id)

        try:
            existing = list(types_ref.where("name", "==", request.name).limit(1).stream())
            if existing:
                return snapshot_to_dict(existing[0])

            type_ref = types_ref.document()
            type_ref.set({
                "templeId": request.temple_id,
                "name": request.name,
                "icon": request.icon,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP
            })
            created = type_ref.get()
        except GoogleAPICallError:
            logger.exception("Error creating service type for temple %s", request.temple_id)
            raise Unavailable("Failed to create service type")

        log_audit_event(
            self.ctx,
            action="SERVICE_TYPE_CREATED",
            user_id=user.uid,
            details={"temple_id": request.temple_id, "type_id": type_ref.id}
        )

        return snapshot_to_dict(created)

    # -------------------------------------------------------------------------
    # Registrations
    # -------------------------------------------------------------------------

    def register(self, temple_id: str, service_id: str, user: CurrentUser) -> str:
        """
        Register the caller for a service as `pending`.

        The caller also becomes a temple member if they are not one yet.
        """
        service_ref, service = self._load_service(temple_id, service_id)
        registrations = service_registrations_collection(self.db)
        member_ref = temple_members_collection(self.db, temple_id).document(user.uid)

        try:
            existing = list(
                registrations
                .where("userId", "==", user.uid)
                .where("serviceId", "==", service_id)
                .limit(1)
                .stream()
            )
            if existing:
                raise InvalidInput("You are already registered for this service")

            is_member = member_ref.get().exists

            registration_ref = registrations.document()
            batch = self.db.batch()
            batch.set(registration_ref, {
                "userId": user.uid,
                "serviceId": service_id,
                "templeId": temple_id,
                "serviceName": service.get("name"),
                "serviceType": service.get("type"),
                "serviceDate": service.get("date"),
                "serviceTimeSlot": service.get("timeSlot"),
                "status": "pending",
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP
            })
            batch.update(service_ref, {
                "pendingParticipants": firestore.Increment(1),
                "updatedAt": firestore.SERVER_TIMESTAMP
            })
            if not is_member:
                batch.set(member_ref, {
                    "templeId": temple_id,
                    "userId": user.uid,
                    "role": "member",
                    "createdAt": firestore.SERVER_TIMESTAMP,
                    "updatedAt": firestore.SERVER_TIMESTAMP
                })
            batch.commit()
        except GoogleAPICallError:
            logger.exception("Error registering %s for service %s", user.uid, service_id)
            raise Unavailable("Failed to register for service")

        return registration_ref.id

    def list_user_registrations(self, uid: str) -> List[dict]:
        try:
            docs = service_registrations_collection(self.db).where("userId", "==", uid).stream()
            return [snapshot_to_dict(doc) for doc in docs]
        except GoogleAPICallError:
            logger.exception("Error fetching registrations for %s", uid)
            raise Unavailable("Failed to fetch registrations")

    def list_temple_registrations(self, temple_id: str) -> List[dict]:
        try:
            docs = service_registrations_collection(self.db).where("templeId", "==", temple_id).stream()
            return [snapshot_to_dict(doc) for doc in docs]
        except GoogleAPICallError:
            logger.exception("Error fetching registrations for temple %s", temple_id)
            raise Unavailable("Failed to fetch registrations")

    def _load_registration(self, registration_id: str):
        registration_ref = service_registrations_collection(self.db).document(registration_id)
        try:
            doc = registration_ref.get()
        except GoogleAPICallError:
            logger.exception("Error fetching registration %s", registration_id)
            raise Unavailable("Failed to fetch registration")

        if not doc.exists:
            raise NotFound("Registration not found")

        return registration_ref, doc.to_dict() or {}

    def _service_ref_for(self, registration: dict):
        return services_collection(self.db, registration["templeId"]).document(registration["serviceId"])

    def update_registration_status(
        self,
        registration_id: str,
        request: UpdateRegistrationRequest,
        user: CurrentUser
    ) -> None:
        """Move a registration between pending/approved/rejected, keeping counters in step."""
        registration_ref, registration = self._load_registration(registration_id)
        if registration.get("templeId") != request.temple_id:
            raise NotFound("Registration not found")

        old_status = registration.get("status")
        if old_status == request.status:
            return

        counters = {}
        if old_status in STATUS_COUNTERS:
            counters[STATUS_COUNTERS[old_status]] = firestore.Increment(-1)
        if request.status in STATUS_COUNTERS:
            counters[STATUS_COUNTERS[request.status]] = firestore.Increment(1)

        batch = self.db.batch()
        batch.update(registration_ref, {
            "status": request.status,
            "updatedAt": firestore.SERVER_TIMESTAMP
        })
        if counters:
            batch.update(self._service_ref_for(registration), {
                **counters,
                "updatedAt": firestore.SERVER_TIMESTAMP
            })

        try:
            batch.commit()
        except GoogleAPICallError:
            logger.exception("Error updating registration %s", registration_id)
            raise Unavailable("Failed to update registration")

        log_audit_event(
            self.ctx,
            action="SERVICE_REGISTRATION_UPDATED",
            user_id=user.uid,
            details={
                "registration_id": registration_id,
                "from": old_status,
                "to": request.status
            }
        )

    def delete_registration(self, registration_id: str, user: CurrentUser) -> None:
        registration_ref, registration = self._load_registration(registration_id)

        if registration.get("userId") != user.uid:
            grant = get_admin_grant(self.db, user.uid)
            if not can_manage_temple(grant, registration.get("templeId")):
                raise Forbidden("Not allowed to delete this registration")

        batch = self.db.batch()
        counter = STATUS_COUNTERS.get(registration.get("status"))
        if counter:
            batch.update(self._service_ref_for(registration), {
                counter: firestore.Increment(-1),
                "updatedAt": firestore.SERVER_TIMESTAMP
            })
        batch.delete(registration_ref)

        try:
            batch.commit()
        except GoogleAPICallError:
            logger.exception("Error deleting registration %s", registration_id)
            raise Unavailable("Failed to delete registration")
