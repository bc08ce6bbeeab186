# backend/bookdesk/services/catalog_service.py
"""
Catalog adapter used by the booking core.

Resolves services, customers, staff and vehicles inside the caller's
organization. Lookups never cross tenants: an id that exists in another
organization is reported exactly like an id that does not exist.
"""

from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.enums import PermissionName
from ..core.exceptions import (
    NotFoundException,
    RepositoryException,
    ServiceInUseException,
    ValidationException,
)
from ..core.tenant import TenantContext
from ..models.catalog import Customer, Service, Staff, Vehicle
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import NewCustomer
from .base import BaseService


class CatalogService(BaseService):
    """Tenant-scoped reads of catalog entities, plus inline customer creation."""

    def __init__(self, db: Session):
        super().__init__(db)

    def resolve_services(self, ctx: TenantContext, service_ids: Sequence[str]) -> List[Service]:
        """
        Return services in the order requested.

        Raises:
            ValidationException: If no ids are given or any service is inactive
            NotFoundException: If any id is unknown in the organization
        """
        if not service_ids:
            raise ValidationException(
                "At least one service is required", details={"field": "service_ids"}
            )

        repo = RepositoryFactory.create_service_repository(self.db, ctx.organization_id)
        by_id = {service.id: service for service in repo.get_by_ids(list(service_ids))}

        missing = [sid for sid in dict.fromkeys(service_ids) if sid not in by_id]
        if missing:
            raise NotFoundException(
                "One or more services were not found", details={"service_ids": missing}
            )

        inactive = [sid for sid in dict.fromkeys(service_ids) if not by_id[sid].is_active]
        if inactive:
            raise ValidationException(
                "One or more services are inactive", details={"service_ids": inactive}
            )

        return [by_id[sid] for sid in service_ids]

    def resolve_customer(self, ctx: TenantContext, customer_id: str) -> Customer:
        repo = RepositoryFactory.create_customer_repository(self.db, ctx.organization_id)
        customer = repo.get_by_id(customer_id, load_relationships=False)
        if customer is None:
            raise NotFoundException("Customer not found", details={"customer_id": customer_id})
        if not customer.is_active:
            raise ValidationException("Customer is inactive", details={"customer_id": customer_id})
        return customer

    def resolve_staff(self, ctx: TenantContext, staff_id: Optional[str]) -> Optional[Staff]:
        """Resolve an optional staff reference; ``None`` means any staff."""
        if staff_id is None:
            return None
        repo = RepositoryFactory.create_staff_repository(self.db, ctx.organization_id)
        staff = repo.get_by_id(staff_id, load_relationships=False)
        if staff is None:
            raise NotFoundException("Staff member not found", details={"staff_id": staff_id})
        if not staff.is_active:
            raise ValidationException("Staff member is inactive", details={"staff_id": staff_id})
        return staff

    def resolve_vehicle(self, ctx: TenantContext, vehicle_id: str) -> Vehicle:
        repo = RepositoryFactory.create_vehicle_repository(self.db, ctx.organization_id)
        vehicle = repo.get_by_id(vehicle_id, load_relationships=False)
        if vehicle is None:
            raise NotFoundException("Vehicle not found", details={"vehicle_id": vehicle_id})
        if not vehicle.is_active:
            raise ValidationException("Vehicle is inactive", details={"vehicle_id": vehicle_id})
        return vehicle

    def create_customer(self, ctx: TenantContext, payload: NewCustomer) -> Customer:
        """
        Create a customer inside the caller's open transaction.

        Nothing is committed here, so a failed booking insert rolls the new
        customer back with it.
        """
        repo = RepositoryFactory.create_customer_repository(self.db, ctx.organization_id)
        email = payload.email.strip().lower() if payload.email else None
        if email and repo.get_by_email(email) is not None:
            raise ValidationException(
                "A customer with this email already exists",
                details={"field": "new_customer.email"},
            )
        try:
            customer = repo.create(
                first_name=payload.first_name.strip(),
                last_name=payload.last_name.strip(),
                phone=payload.phone,
                email=email,
                is_active=True,
            )
        except RepositoryException as exc:
            # Deleted customers and concurrent inserts still hold the unique email.
            if not isinstance(exc.__context__, IntegrityError):
                raise
            raise ValidationException(
                "A customer with this email already exists",
                details={"field": "new_customer.email"},
            ) from exc
        self.log_operation(
            "create_inline_customer",
            organization_id=ctx.organization_id,
            customer_id=customer.id,
        )
        return customer

    @BaseService.measure_operation("delete_service")
    def delete_service(self, ctx: TenantContext, service_id: str) -> bool:
        """
        Remove a service from the catalog.

        Services still referenced by non-terminal bookings cannot be deleted.
        Services referenced only by finished bookings are soft-deleted so the
        booking history keeps its join rows; unreferenced services are removed.

        Returns:
            True if the row was hard-deleted, False if it was soft-deleted
        """
        ctx.require(PermissionName.MANAGE_ORGANIZATION)
        repo = RepositoryFactory.create_service_repository(self.db, ctx.organization_id)

        with self.transaction():
            service = repo.get_by_id(service_id, load_relationships=False)
            if service is None:
                raise NotFoundException("Service not found", details={"service_id": service_id})

            active = repo.count_booking_references(service_id, active_only=True)
            if active:
                raise ServiceInUseException(service_id, active)

            if repo.count_booking_references(service_id, active_only=False):
                repo.soft_delete(service)
                hard_deleted = False
            else:
                repo.hard_delete(service)
                hard_deleted = True

        self.log_operation(
            "delete_service",
            organization_id=ctx.organization_id,
            service_id=service_id,
            hard_deleted=hard_deleted,
        )
        return hard_deleted
