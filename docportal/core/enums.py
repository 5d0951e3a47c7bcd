"""Closed enumerations shared by every layer of the portal."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Fixed job-function categories. Values match the database enum."""

    ADMINISTRADOR = "administrador"
    PRESIDENTE = "presidente"
    VICEPRESIDENTE = "vicepresidente"
    SECRETARIO_CAM = "secretario_cam"
    SECRETARIO_AMPP = "secretario_ampp"
    SECRETARIO_CF = "secretario_cf"
    INTENDENTE = "intendente"
    CF_MEMBER = "cf_member"


class Workspace(str, Enum):
    """Organizational departments that scope documents and grants."""

    CAM = "cam"
    AMPP = "ampp"
    PRESIDENCIA = "presidencia"
    INTENDENCIA = "intendencia"
    COMISIONES_CF = "comisiones_cf"


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    STORED = "stored"
    ARCHIVED = "archived"


class Action(str, Enum):
    """Workspace-scoped capabilities answered by the permission resolver."""

    VIEW = "view"
    DOWNLOAD = "download"
    ARCHIVE = "archive"
    MANAGE = "manage"


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


# Only this role may register new users.
TOP_ADMIN_ROLE = Role.ADMINISTRADOR


def parse_enum(enum_cls, value):
    """
    Coerce ``value`` into ``enum_cls`` or return None.

    Accepts enum members and their raw string values. Used by decision
    functions that must fail closed on unknown input instead of raising.
    """

    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None
