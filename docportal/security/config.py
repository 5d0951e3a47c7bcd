from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from docportal.core.enums import Action, Role, Workspace
from docportal.core.models import PermissionFlags, RolePermissionRow


class PermissionMatrixModel(BaseModel):
    """``role -> workspace -> [actions]``. Unknown names fail validation."""

    roles: dict[Role, dict[Workspace, list[Action]]] = Field(default_factory=dict)

    def to_rows(self) -> list[RolePermissionRow]:
        rows: list[RolePermissionRow] = []
        for role, grants in self.roles.items():
            for workspace, actions in grants.items():
                granted = set(actions)
                rows.append(
                    RolePermissionRow(
                        role=role,
                        workspace=workspace,
                        flags=PermissionFlags(
                            can_view=Action.VIEW in granted,
                            can_download=Action.DOWNLOAD in granted,
                            can_archive_others=Action.ARCHIVE in granted,
                            can_manage_workspace=Action.MANAGE in granted,
                        ),
                    )
                )
        return rows


def load_permission_matrix(path: Path) -> list[RolePermissionRow]:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "permission_matrix" not in raw:
        raise ValueError(f"Missing top-level 'permission_matrix' key in config: {path}")

    model = PermissionMatrixModel.model_validate(raw["permission_matrix"])
    return model.to_rows()
