"""Tenant registration, settings, tables and staff accounts."""

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tableorder.core.config import settings
from tableorder.core.errors import DuplicateUserError, NotFoundError, TenantNotFoundError, ValidationError
from tableorder.core.security import get_password_hash
from tableorder.models.tenant import DEFAULT_PAYMENT_MODES, RestaurantTable, Tenant, TenantSettings
from tableorder.models.user import AppRole, RoleAssignment, User
from tableorder.services.billing import qr_image_url

logger = logging.getLogger(__name__)

# Roles a tenant admin may hand out
TENANT_USER_ROLES = (AppRole.TENANT_ADMIN, AppRole.CHEF, AppRole.MANAGER, AppRole.WAITER)
MIN_PASSWORD_LENGTH = 6
MAX_TABLES = 500

# Fields a tenant admin may change through update_settings
EDITABLE_SETTINGS = (
    "restaurant_name",
    "restaurant_address",
    "merchant_upi_id",
    "payment_modes",
    "service_charge",
    "table_count",
    "menu_sheet_url",
    "require_customer_auth",
    "theme_config",
)

# Settings that may be cleared by sending null
NULLABLE_SETTINGS = ("restaurant_address", "merchant_upi_id", "menu_sheet_url", "theme_config")


def table_url(tenant_id: str, table_number: int, base_url: Optional[str] = None) -> str:
    """Customer-facing URL encoded in a table's QR code."""
    base = (base_url or settings.public_base_url).rstrip("/")
    return f"{base}/{tenant_id}/table/{table_number}"


class TenantService:
    def __init__(self, db: Session):
        self.db = db

    # ----- tenants -----

    def get_tenant(self, tenant_id: str) -> Tenant:
        tenant = self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant

    def list_tenants(self) -> list[Tenant]:
        return list(self.db.execute(select(Tenant).order_by(Tenant.created_at.desc())).scalars())

    def register_tenant(
        self,
        tenant_name: str,
        restaurant_name: str,
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None,
        table_count: Optional[int] = None,
        menu_sheet_url: Optional[str] = None,
        merchant_upi_id: Optional[str] = None,
        service_charge: Optional[Decimal] = None,
        restaurant_address: Optional[str] = None,
        payment_modes: Optional[dict] = None,
        require_customer_auth: bool = True,
    ) -> Tenant:
        """Create a tenant with its settings row and ``table_count`` active tables, atomically."""
        table_count = settings.table_count_default if table_count is None else table_count
        if table_count < 0 or table_count > MAX_TABLES:
            raise ValidationError(f"table_count must be between 0 and {MAX_TABLES}")
        if service_charge is None:
            service_charge = Decimal(str(settings.service_charge_default))

        try:
            tenant = Tenant(
                tenant_name=tenant_name,
                restaurant_name=restaurant_name,
                contact_email=contact_email,
                contact_phone=contact_phone,
                is_active=True,
            )
            tenant.settings = TenantSettings(
                restaurant_name=restaurant_name,
                restaurant_address=restaurant_address,
                merchant_upi_id=merchant_upi_id,
                payment_modes=dict(payment_modes or DEFAULT_PAYMENT_MODES),
                service_charge=service_charge,
                table_count=table_count,
                menu_sheet_url=menu_sheet_url,
                require_customer_auth=require_customer_auth,
            )
        except ValueError as e:
            raise ValidationError(str(e))
        tenant.tables = [
            RestaurantTable(table_number=n, is_active=True) for n in range(1, table_count + 1)
        ]
        self.db.add(tenant)
        self.db.commit()
        self.db.refresh(tenant)
        logger.info(f"Registered tenant {tenant.id} ({restaurant_name}) with {table_count} tables")
        return tenant

    def set_tenant_active(self, tenant_id: str, is_active: bool) -> Tenant:
        tenant = self.get_tenant(tenant_id)
        tenant.is_active = is_active
        self.db.commit()
        logger.info(f"Tenant {tenant_id} {'activated' if is_active else 'deactivated'}")
        return tenant

    # ----- settings -----

    def get_settings(self, tenant_id: str) -> TenantSettings:
        tenant = self.get_tenant(tenant_id)
        if tenant.settings is None:
            raise TenantNotFoundError(tenant_id)
        return tenant.settings

    def public_settings(self, tenant_id: str) -> dict[str, Any]:
        """Settings a customer may see. Payment addresses and contacts stay private."""
        tenant = self.get_tenant(tenant_id)
        tenant_settings = self.get_settings(tenant_id)
        return {
            "tenant_id": tenant.id,
            "is_active": tenant.is_active,
            "restaurant_name": tenant_settings.restaurant_name,
            "restaurant_address": tenant_settings.restaurant_address,
            "service_charge": float(tenant_settings.service_charge),
            "payment_modes": {mode: bool(enabled) for mode, enabled in tenant_settings.payment_modes.items()},
            "table_count": tenant_settings.table_count,
            "require_customer_auth": tenant_settings.require_customer_auth,
            "theme_config": tenant_settings.theme_config,
            "has_menu": bool(tenant_settings.menu_sheet_url),
        }

    def update_settings(self, tenant_id: str, changes: dict[str, Any]) -> TenantSettings:
        tenant_settings = self.get_settings(tenant_id)
        unknown = set(changes) - set(EDITABLE_SETTINGS)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        cleared = [k for k, v in changes.items() if v is None and k not in NULLABLE_SETTINGS]
        if cleared:
            raise ValidationError(f"Settings cannot be empty: {', '.join(sorted(cleared))}")

        table_count = changes.get("table_count")
        if table_count is not None and (table_count < 0 or table_count > MAX_TABLES):
            raise ValidationError(f"table_count must be between 0 and {MAX_TABLES}")

        try:
            for key, value in changes.items():
                if key == "payment_modes":
                    value = {**tenant_settings.payment_modes, **value}
                setattr(tenant_settings, key, value)
        except ValueError as e:
            self.db.rollback()
            raise ValidationError(str(e))

        if table_count is not None:
            self._sync_tables(tenant_id, table_count)
        self.db.commit()
        self.db.refresh(tenant_settings)
        logger.info(f"Settings updated for tenant {tenant_id}: {sorted(changes)}")
        return tenant_settings

    # ----- tables -----

    def _sync_tables(self, tenant_id: str, table_count: int) -> None:
        """Ensure tables 1..table_count exist and are active; deactivate the rest."""
        existing = {t.table_number: t for t in self.list_tables(tenant_id)}
        for number in range(1, table_count + 1):
            table = existing.get(number)
            if table is None:
                self.db.add(RestaurantTable(tenant_id=tenant_id, table_number=number, is_active=True))
            elif not table.is_active:
                table.is_active = True
        for number, table in existing.items():
            if number > table_count and table.is_active:
                table.is_active = False

    def list_tables(self, tenant_id: str) -> list[RestaurantTable]:
        return list(self.db.execute(
            select(RestaurantTable)
            .where(RestaurantTable.tenant_id == tenant_id)
            .order_by(RestaurantTable.table_number)
        ).scalars())

    def get_table(self, tenant_id: str, table_number: int) -> Optional[RestaurantTable]:
        return self.db.execute(
            select(RestaurantTable).where(
                RestaurantTable.tenant_id == tenant_id,
                RestaurantTable.table_number == table_number,
            )
        ).scalar_one_or_none()

    def set_table_active(self, tenant_id: str, table_number: int, is_active: bool) -> RestaurantTable:
        table = self.get_table(tenant_id, table_number)
        if table is None:
            raise NotFoundError(f"Table {table_number} does not exist")
        table.is_active = is_active
        self.db.commit()
        return table

    def table_qr_codes(self, tenant_id: str, base_url: Optional[str] = None) -> list[dict[str, Any]]:
        self.get_tenant(tenant_id)
        codes = []
        for table in self.list_tables(tenant_id):
            if not table.is_active:
                continue
            url = table_url(tenant_id, table.table_number, base_url)
            codes.append({
                "table_number": table.table_number,
                "url": url,
                "qr_image_url": qr_image_url(url),
            })
        return codes

    # ----- staff accounts -----

    def create_tenant_user(
        self,
        email: str,
        password: str,
        role: str,
        tenant_id: str,
        full_name: Optional[str] = None,
    ) -> User:
        """Create a staff account and its role grant in one transaction.

        If the role grant cannot be stored the account is not kept either.
        """
        if not email or not password or not role or not tenant_id:
            raise ValidationError("Missing required fields: email, password, role, tenantId")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        try:
            app_role = AppRole(role)
        except ValueError:
            raise ValidationError("Invalid role")
        if app_role not in TENANT_USER_ROLES:
            raise ValidationError("Invalid role")
        self.get_tenant(tenant_id)

        email = email.strip().lower()
        if self.db.execute(select(User).where(User.email == email)).scalar_one_or_none():
            raise DuplicateUserError(f"A user with email {email} already exists")

        user = User(email=email, password_hash=get_password_hash(password),
                    full_name=full_name, is_active=True)
        try:
            self.db.add(user)
            self.db.flush()
            self.db.add(RoleAssignment(user_id=user.id, role=app_role, tenant_id=tenant_id))
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Creating {role} user {email} for tenant {tenant_id} failed: {e}")
            raise DuplicateUserError(f"A user with email {email} already exists")
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Creating {role} user {email} for tenant {tenant_id} failed, rolled back")
            raise
        self.db.refresh(user)
        logger.info(f"Created {app_role.value} user {email} for tenant {tenant_id}")
        return user
