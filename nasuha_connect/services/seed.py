"""
Idempotent seeding of the access-control baseline and sample kordas.

Running any seed function twice leaves the database unchanged. Existing rows
are never overwritten, so permissions tuned by an administrator survive a
restart.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.security import hash_password
from ..models.korda import Korda
from ..models.role import Permission, Role
from ..models.user import User

SUPER_ADMIN_ROLE = "super_admin"

_EMAIL = TypeAdapter(EmailStr)

DEFAULT_ROLES: List[Dict[str, object]] = [
    {
        "name": SUPER_ADMIN_ROLE,
        "display_name": "Super Admin",
        "description": "National (DPP) administrator with full access",
        "is_system": True,
    },
    {
        "name": "korda_admin",
        "display_name": "Admin Korda",
        "description": "Regional branch (korda) administrator",
        "is_system": True,
    },
    {
        "name": "member",
        "display_name": "Member",
        "description": "NASUHA family member",
        "is_system": True,
    },
]

DEFAULT_PERMISSIONS: List[Dict[str, str]] = [
    {"name": "users:read", "display_name": "View users", "module": "users"},
    {"name": "users:create", "display_name": "Create users", "module": "users"},
    {"name": "users:update", "display_name": "Edit users", "module": "users"},
    {"name": "users:delete", "display_name": "Delete users", "module": "users"},
    {"name": "users:impersonate", "display_name": "Impersonate users", "module": "users"},
    {"name": "roles:read", "display_name": "View roles", "module": "roles"},
    {"name": "roles:create", "display_name": "Create roles", "module": "roles"},
    {"name": "roles:update", "display_name": "Edit roles", "module": "roles"},
    {"name": "roles:delete", "display_name": "Delete roles", "module": "roles"},
    {"name": "roles:assign", "display_name": "Assign permissions to roles", "module": "roles"},
    {"name": "korda:read", "display_name": "View kordas", "module": "korda"},
    {"name": "korda:create", "display_name": "Create kordas", "module": "korda"},
    {"name": "korda:update", "display_name": "Edit kordas", "module": "korda"},
    {"name": "korda:delete", "display_name": "Delete kordas", "module": "korda"},
    {"name": "media:read", "display_name": "View media", "module": "media"},
    {"name": "media:create", "display_name": "Upload media", "module": "media"},
    {"name": "media:update", "display_name": "Edit media", "module": "media"},
    {"name": "media:delete", "display_name": "Delete media", "module": "media"},
    {"name": "media:feature", "display_name": "Feature media", "module": "media"},
    {"name": "media:archive", "display_name": "Archive media", "module": "media"},
    {"name": "audit:read", "display_name": "View audit log", "module": "audit"},
]

# super_admin is not listed: it receives every permission row.
ROLE_PERMISSION_MAP: Dict[str, List[str]] = {
    "korda_admin": [
        "users:read",
        "korda:read",
        "media:read",
        "media:create",
        "media:update",
        "media:delete",
        "media:feature",
        "media:archive",
    ],
    "member": ["media:read"],
}

SAMPLE_KORDAS: List[Dict[str, str]] = [
    {"code": "BEKASI", "name": "Korda Bekasi", "city": "Bekasi", "province": "Jawa Barat"},
    {"code": "JAKARTA-TIMUR", "name": "Korda Jakarta Timur", "city": "Jakarta Timur", "province": "DKI Jakarta"},
    {"code": "BANDUNG", "name": "Korda Bandung", "city": "Bandung", "province": "Jawa Barat"},
]


def seed_permissions(db: Session) -> int:
    existing = {name for (name,) in db.query(Permission.name).all()}
    created = 0
    for item in DEFAULT_PERMISSIONS:
        if item["name"] in existing:
            continue
        db.add(Permission(**item))
        created += 1
    db.commit()
    return created


def seed_roles(db: Session) -> int:
    existing = {name for (name,) in db.query(Role.name).all()}
    created = 0
    for item in DEFAULT_ROLES:
        if item["name"] in existing:
            continue
        db.add(Role(**item))
        created += 1
    db.commit()
    return created


def seed_role_permissions(db: Session) -> int:
    """Add missing grants from the default map. Returns number of grants added."""
    permissions = {p.name: p for p in db.query(Permission).all()}
    added = 0
    for role in db.query(Role).filter(Role.deleted_at.is_(None)).all():
        if role.name == SUPER_ADMIN_ROLE:
            wanted = list(permissions)
        elif role.name in ROLE_PERMISSION_MAP:
            wanted = ROLE_PERMISSION_MAP[role.name]
        else:
            continue
        held = set(role.permission_names)
        for name in wanted:
            permission = permissions.get(name)
            if permission is None or name in held:
                continue
            role.permissions.append(permission)
            added += 1
    db.commit()
    return added


def seed_kordas(db: Session) -> int:
    existing = {code for (code,) in db.query(Korda.code).all()}
    created = 0
    for item in SAMPLE_KORDAS:
        if item["code"] in existing:
            continue
        db.add(Korda(**item))
        created += 1
    db.commit()
    return created


def seed_admin_user(db: Session, settings: Settings) -> bool:
    """Create the bootstrap super admin from ADMIN_EMAIL / ADMIN_PASSWORD."""
    logger = logging.getLogger("seed")
    email = (settings.admin_email or "").strip().lower()
    password = settings.admin_password or ""
    if not email:
        logger.info("Skipping admin seed: ADMIN_EMAIL is empty")
        return False
    if not password:
        logger.warning("Skipping admin seed: ADMIN_PASSWORD is empty")
        return False
    try:
        _EMAIL.validate_python(email)
    except ValidationError:
        # Login rejects the same addresses.
        logger.warning("Skipping admin seed: ADMIN_EMAIL %s is not a valid address", email)
        return False

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        return False
    role = db.query(Role).filter(Role.name == SUPER_ADMIN_ROLE).first()
    if role is None:
        logger.warning("Skipping admin seed: role %s is missing", SUPER_ADMIN_ROLE)
        return False
    db.add(
        User(
            email=email,
            full_name=settings.admin_full_name,
            password_hash=hash_password(password),
            role_id=role.id,
            korda_id=None,
            is_active=True,
        )
    )
    db.commit()
    logger.info("Seeded admin user email=%s", email)
    return True


def seed_all(db: Session, settings: Settings) -> None:
    logger = logging.getLogger("seed")
    permissions = seed_permissions(db)
    roles = seed_roles(db)
    grants = seed_role_permissions(db)
    kordas = seed_kordas(db)
    seed_admin_user(db, settings)
    logger.info(
        "Seed complete permissions=%s roles=%s grants=%s kordas=%s",
        permissions,
        roles,
        grants,
        kordas,
    )
