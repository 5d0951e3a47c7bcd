"""End-to-end tests for the session orchestrator over in-memory stores."""

from dataclasses import replace
from unittest.mock import patch

import pytest

from docportal.core.enums import Action, DocumentStatus, Role, Workspace
from docportal.core.errors import (
    AuthErrorCode,
    AuthFailure,
    AuthSuccess,
    EmailConflictError,
    HashingError,
    StoreError,
    TokenRevoked,
    TransitionReason,
)
from docportal.core.models import DEFAULT_PREFERENCES, AuthenticatedUser, DocumentRef, NewUser
from docportal.core.service import AuthService

from conftest import DEFAULT_PASSWORD


@pytest.fixture
def admin(make_user):
    return make_user(role=Role.ADMINISTRADOR, workspace=Workspace.PRESIDENCIA, email="admin@example.org")


def _new_user(password="Str0ng!Pass99", email="nuevo.usuario@example.org"):
    return NewUser(
        email=email,
        full_name="Nuevo Usuario",
        role=Role.SECRETARIO_AMPP,
        workspace=Workspace.AMPP,
        password=password,
    )


# ---- Scenario A: login --------------------------------------------------------------


def test_wrong_password_and_unknown_email_are_indistinguishable(auth_service, admin):
    wrong = auth_service.login("admin@example.org", "Wrong#Password1")
    unknown = auth_service.login("nobody@example.org", "Wrong#Password1")

    assert isinstance(wrong, AuthFailure)
    assert wrong.code is AuthErrorCode.INVALID_CREDENTIALS
    assert wrong == unknown
    assert wrong.to_dict() == unknown.to_dict()


def test_unknown_email_still_spends_a_hash_check(auth_service, hasher):
    with patch.object(hasher, "verify", wraps=hasher.verify) as verify:
        auth_service.login("nobody@example.org", "whatever")
    verify.assert_called_once()


def test_unknown_email_never_hashes_on_the_request_path(auth_service, hasher):
    with patch.object(hasher, "hash", wraps=hasher.hash) as hash_:
        auth_service.login("nobody@example.org", "whatever")
        auth_service.login("otro@example.org", "whatever")
    hash_.assert_not_called()


@pytest.mark.parametrize(
    "overrides",
    [{"is_active": False}, {"password": None}],
)
def test_inactive_or_passwordless_user_gets_generic_failure(auth_service, make_user, overrides):
    make_user(email="someone@example.org", **overrides)
    result = auth_service.login("someone@example.org", DEFAULT_PASSWORD)
    assert isinstance(result, AuthFailure)
    assert result.code is AuthErrorCode.INVALID_CREDENTIALS


def test_login_success_normalizes_email_and_stamps_last_login(auth_service, admin, users, clock):
    result = auth_service.login("  ADMIN@Example.org ", DEFAULT_PASSWORD)

    assert isinstance(result, AuthSuccess)
    assert result.ok is True
    assert result.user.id == admin.id
    assert result.user.last_login_at == clock()
    assert users.find_by_id(admin.id).last_login_at == clock()

    claims = auth_service.tokens.verify_access(result.tokens.access_token)
    assert claims.user_id == admin.id
    assert claims.role is Role.ADMINISTRADOR


def test_hashing_failure_propagates(auth_service, admin, hasher):
    with patch.object(hasher, "verify", side_effect=HashingError("boom")):
        with pytest.raises(HashingError):
            auth_service.login("admin@example.org", DEFAULT_PASSWORD)


def test_store_failure_propagates(auth_service, users):
    with patch.object(users, "find_by_email", side_effect=StoreError("down")):
        with pytest.raises(StoreError):
            auth_service.login("admin@example.org", DEFAULT_PASSWORD)


# ---- Scenario B: register -----------------------------------------------------------


def test_weak_password_is_rejected_and_nothing_is_created(auth_service, admin, users):
    before = len(users.all())
    result = auth_service.register(_new_user(password="abc12345"), admin.id)

    assert isinstance(result, AuthFailure)
    assert result.code is AuthErrorCode.WEAK_PASSWORD
    assert len(result.details) >= 1
    assert len(users.all()) == before


def test_strong_password_registers_user(auth_service, admin, users):
    result = auth_service.register(_new_user(email="Nuevo.Usuario@Example.org"), admin.id)

    assert isinstance(result, AuthSuccess)
    assert result.user.role is Role.SECRETARIO_AMPP
    assert result.user.workspace is Workspace.AMPP
    assert result.user.email == "nuevo.usuario@example.org"

    stored = users.find_by_email("nuevo.usuario@example.org")
    assert stored is not None
    assert stored.preferences == DEFAULT_PREFERENCES
    assert stored.password_hash != "Str0ng!Pass99"
    assert auth_service.login("nuevo.usuario@example.org", "Str0ng!Pass99").ok is True


def test_password_containing_personal_data_is_weak(auth_service, admin):
    result = auth_service.register(_new_user(password="Usuario#2024x"), admin.id)
    assert isinstance(result, AuthFailure)
    assert "Must not contain your name" in result.details


@pytest.mark.parametrize(
    "requester",
    [
        {"role": Role.PRESIDENTE},
        {"role": Role.ADMINISTRADOR, "is_active": False},
    ],
)
def test_only_active_administrators_may_register(auth_service, make_user, users, requester):
    actor = make_user(**requester)
    before = len(users.all())
    result = auth_service.register(_new_user(), actor.id)
    assert result.code is AuthErrorCode.INSUFFICIENT_PERMISSIONS
    assert len(users.all()) == before


def test_unknown_requester_may_not_register(auth_service):
    result = auth_service.register(_new_user(), "ghost")
    assert result.code is AuthErrorCode.INSUFFICIENT_PERMISSIONS


def test_duplicate_email_is_rejected(auth_service, admin, make_user):
    make_user(email="taken@example.org")
    result = auth_service.register(_new_user(email="TAKEN@example.org"), admin.id)
    assert result.code is AuthErrorCode.EMAIL_ALREADY_EXISTS


def test_conflict_at_insert_time_is_reported_as_duplicate(auth_service, admin, users):
    with patch.object(users, "create", side_effect=EmailConflictError("x")):
        result = auth_service.register(_new_user(), admin.id)
    assert result.code is AuthErrorCode.EMAIL_ALREADY_EXISTS


def test_policy_can_be_disabled(users, resolver, token_service, hasher, core_config, clock, admin):
    service = AuthService(
        users, resolver, token_service, hasher, replace(core_config, enforce_password_strength=False), clock
    )
    assert service.register(_new_user(password="abc12345"), admin.id).ok is True


# ---- Scenario C: logout and refresh ---------------------------------------------------


def test_logout_revokes_immediately(auth_service, admin):
    tokens = auth_service.login("admin@example.org", DEFAULT_PASSWORD).tokens

    result = auth_service.logout(access_token=tokens.access_token)
    assert result.revoked == 1

    with pytest.raises(TokenRevoked):
        auth_service.tokens.verify_access(tokens.access_token)


def test_logout_requires_a_token(auth_service):
    with pytest.raises(ValueError):
        auth_service.logout()


def test_logout_both_tokens_is_idempotent(auth_service, admin):
    tokens = auth_service.login("admin@example.org", DEFAULT_PASSWORD).tokens
    assert auth_service.logout(tokens.access_token, tokens.refresh_token).revoked == 2
    assert auth_service.logout(tokens.access_token, tokens.refresh_token).revoked == 0
    assert auth_service.refresh(tokens.refresh_token).code is AuthErrorCode.INVALID_REFRESH_TOKEN


def test_refresh_issues_a_new_pair(auth_service, admin, clock):
    tokens = auth_service.login("admin@example.org", DEFAULT_PASSWORD).tokens
    clock.advance(hours=1)

    result = auth_service.refresh(tokens.refresh_token)
    assert isinstance(result, AuthSuccess)
    assert result.tokens.access_token != tokens.access_token
    assert auth_service.tokens.verify_access(result.tokens.access_token).user_id == admin.id

    # Not revoked on rotation by default.
    assert auth_service.refresh(tokens.refresh_token).ok is True


def test_refresh_can_revoke_the_presented_token(users, resolver, token_service, hasher, core_config, clock, admin):
    service = AuthService(
        users, resolver, token_service, hasher, replace(core_config, revoke_refresh_on_rotate=True), clock
    )
    tokens = service.login("admin@example.org", DEFAULT_PASSWORD).tokens
    assert service.refresh(tokens.refresh_token).ok is True
    assert service.refresh(tokens.refresh_token).code is AuthErrorCode.INVALID_REFRESH_TOKEN


def test_refresh_failures_are_all_invalid_refresh_token(auth_service, admin, users, clock):
    tokens = auth_service.login("admin@example.org", DEFAULT_PASSWORD).tokens

    assert auth_service.refresh(tokens.access_token).code is AuthErrorCode.INVALID_REFRESH_TOKEN
    assert auth_service.refresh("garbage").code is AuthErrorCode.INVALID_REFRESH_TOKEN

    users.add(replace(admin, is_active=False))
    assert auth_service.refresh(tokens.refresh_token).code is AuthErrorCode.INVALID_REFRESH_TOKEN

    users.add(admin)
    clock.advance(days=8)
    assert auth_service.refresh(tokens.refresh_token).code is AuthErrorCode.INVALID_REFRESH_TOKEN


# ---- Scenario D: document lifecycle with real users --------------------------------


def test_document_lifecycle_scenario(auth_service, lifecycle, make_user):
    owner = make_user(role=Role.SECRETARIO_CAM, workspace=Workspace.CAM)
    viewer = make_user(role=Role.VICEPRESIDENTE, workspace=Workspace.PRESIDENCIA)
    archiver = make_user(role=Role.PRESIDENTE, workspace=Workspace.PRESIDENCIA)

    document = DocumentRef(id="d1", status=DocumentStatus.DRAFT, owner_id=owner.id, workspace=Workspace.CAM)

    assert lifecycle.can_transition(document, owner.role, owner.id, DocumentStatus.STORED).allowed
    stored = lifecycle.apply(document, DocumentStatus.STORED)
    document = replace(document, status=stored.status, stored_at=stored.stored_at)

    assert auth_service.can_user_perform_action(viewer.id, Action.VIEW, Workspace.CAM) is True
    denied = lifecycle.can_transition(document, viewer.role, viewer.id, DocumentStatus.ARCHIVED)
    assert denied.allowed is False
    assert denied.reason is TransitionReason.NOT_OWNER_AND_NO_PERMISSION

    accepted = lifecycle.can_transition(document, archiver.role, archiver.id, DocumentStatus.ARCHIVED)
    assert accepted.allowed is True
    archived = lifecycle.apply(document, DocumentStatus.ARCHIVED)
    assert archived.status is DocumentStatus.ARCHIVED
    assert archived.stored_at == document.stored_at
    assert archived.archived_at is not None


# ---- Profile and permission checks ----------------------------------------------------


def test_get_profile_includes_permissions(auth_service, make_user):
    user = make_user(role=Role.CF_MEMBER, workspace=Workspace.COMISIONES_CF)
    profile = auth_service.get_profile(user.id)
    assert isinstance(profile, AuthenticatedUser)
    assert profile.permissions.can_view == {Workspace.COMISIONES_CF}


def test_get_profile_is_none_for_missing_or_inactive(auth_service, make_user):
    inactive = make_user(is_active=False)
    assert auth_service.get_profile(inactive.id) is None
    assert auth_service.get_profile("ghost") is None


def test_can_user_perform_action_fails_closed(auth_service, admin, users):
    assert auth_service.can_user_perform_action(admin.id, "manage", "cam") is True
    assert auth_service.can_user_perform_action("ghost", "view") is False
    assert auth_service.can_user_perform_action(admin.id, "fly") is False
    with patch.object(users, "find_by_id", side_effect=StoreError("down")):
        assert auth_service.can_user_perform_action(admin.id, "view") is False


def test_authenticate_header(auth_service, admin, users, clock):
    tokens = auth_service.login("admin@example.org", DEFAULT_PASSWORD).tokens
    header = f"Bearer {tokens.access_token}"

    user = auth_service.authenticate(header)
    assert isinstance(user, AuthenticatedUser)
    assert user.id == admin.id

    assert auth_service.authenticate(None).code is AuthErrorCode.NO_TOKEN_PROVIDED
    assert auth_service.authenticate(f"Basic {tokens.access_token}").code is AuthErrorCode.NO_TOKEN_PROVIDED
    assert auth_service.authenticate("Bearer garbage").code is AuthErrorCode.TOKEN_INVALID
    assert auth_service.authenticate(f"Bearer {tokens.refresh_token}").code is AuthErrorCode.TOKEN_INVALID

    users.add(replace(admin, is_active=False))
    assert auth_service.authenticate(header).code is AuthErrorCode.USER_NOT_FOUND
    users.add(admin)

    clock.advance(hours=25)
    assert auth_service.authenticate(header).code is AuthErrorCode.TOKEN_EXPIRED

    auth_service.logout(access_token=tokens.access_token)
    assert auth_service.authenticate(header).code is AuthErrorCode.TOKEN_REVOKED


def test_update_profile_touches_only_name_and_preferences(auth_service, admin, users):
    result = auth_service.update_profile(admin.id, full_name="  Nueva Admin ", preferences={"theme": "dark"})
    assert isinstance(result, AuthenticatedUser)
    assert result.full_name == "Nueva Admin"
    assert result.preferences == {"theme": "dark"}

    stored = users.find_by_id(admin.id)
    assert stored.email == admin.email
    assert stored.role is admin.role
    assert stored.password_hash == admin.password_hash


def test_update_profile_unknown_user(auth_service):
    assert auth_service.update_profile("ghost", full_name="X").code is AuthErrorCode.USER_NOT_FOUND


def test_change_password(auth_service, admin):
    assert auth_service.change_password(admin.id, "Wrong#Pass1", "N3w!Secreto").code is AuthErrorCode.INVALID_CREDENTIALS
    assert auth_service.change_password(admin.id, DEFAULT_PASSWORD, DEFAULT_PASSWORD).code is AuthErrorCode.PASSWORD_UNCHANGED
    assert auth_service.change_password(admin.id, DEFAULT_PASSWORD, "weakpass").code is AuthErrorCode.WEAK_PASSWORD

    assert auth_service.change_password(admin.id, DEFAULT_PASSWORD, "N3w!Secreto") is None
    assert auth_service.login("admin@example.org", "N3w!Secreto").ok is True
    assert auth_service.login("admin@example.org", DEFAULT_PASSWORD).ok is False


def test_change_password_account_states(auth_service, make_user):
    disabled = make_user(is_active=False)
    no_password = make_user(password=None)
    assert auth_service.change_password(disabled.id, DEFAULT_PASSWORD, "N3w!Secreto").code is AuthErrorCode.ACCOUNT_DISABLED
    assert auth_service.change_password(no_password.id, "x", "N3w!Secreto").code is AuthErrorCode.NO_PASSWORD_SET
    assert auth_service.change_password("ghost", "x", "N3w!Secreto").code is AuthErrorCode.USER_NOT_FOUND
