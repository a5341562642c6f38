"""
Workflow tests: registration, login, update, logout, delete and the
account resolver, run directly against a database session.
"""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from accounts_platform.accounts_platform.account_service import accounts, passwords, tokens
from accounts_platform.accounts_platform.account_service.errors import (
    AccountNotFound,
    AuthenticationFailure,
    AvailabilityConflict,
    InfrastructureFailure,
    ValidationFailed,
)
from accounts_platform.accounts_platform.account_service.models import Token, User
from accounts_platform.accounts_platform.account_service.schemas import (
    FederatedProfile,
    LoginRequest,
    ProfilePatch,
    RegisterRequest,
)


def register(db_session, email="Alice@Example.com", username="alice", password="s3cret!", picture=None):
    return accounts.register(
        db_session,
        RegisterRequest(email=email, username=username, password=password, picture=picture),
    )


def user_id_for(db_session, email):
    return db_session.query(User).filter(User.email == email.lower()).one().id


# ---------------- Registration ----------------

def test_register_returns_private_view_with_fresh_token(db_session):
    profile = register(db_session)

    assert profile.email == "alice@example.com"
    assert profile.username == "alice"
    assert profile.access_token
    assert profile.password_update is None

    users = db_session.query(User).all()
    assert len(users) == 1
    assert users[0].email == "alice@example.com"
    assert users[0].salt is not None
    assert users[0].password_hash != "s3cret!"

    token_rows = db_session.query(Token).all()
    assert len(token_rows) == 1
    assert token_rows[0].rel_user == users[0].id
    assert token_rows[0].access_token == profile.access_token


def test_private_view_never_exposes_credentials(db_session):
    dumped = register(db_session).model_dump(by_alias=True)
    assert "salt" not in dumped
    assert "password_hash" not in dumped
    assert "password" not in dumped


def test_register_same_email_any_case_conflicts(db_session):
    register(db_session)

    with pytest.raises(AvailabilityConflict) as exc_info:
        register(db_session, email="ALICE@example.COM", username="alice2")

    assert [e.field for e in exc_info.value.errors] == ["email"]
    assert db_session.query(User).count() == 1
    assert db_session.query(Token).count() == 1


def test_register_taken_username_conflicts(db_session):
    register(db_session)
    with pytest.raises(AvailabilityConflict) as exc_info:
        register(db_session, email="other@example.com", username="ALICE")
    assert [e.field for e in exc_info.value.errors] == ["username"]


def test_register_email_with_trailing_newline_is_rejected(db_session):
    register(db_session, email="alice@example.com")

    with pytest.raises(ValidationFailed) as exc_info:
        register(db_session, email="Alice@Example.com\n", username="alice\n")

    assert [e.field for e in exc_info.value.errors] == ["email", "username"]
    assert db_session.query(User).count() == 1


def test_register_reports_every_invalid_field(db_session):
    with pytest.raises(ValidationFailed) as exc_info:
        accounts.register(db_session, RegisterRequest(email="nope", username="x", picture="bad"))

    fields = [e.field for e in exc_info.value.errors]
    assert fields == ["email", "username", "password", "picture"]
    assert db_session.query(User).count() == 0


def test_register_resolves_uploaded_picture(db_session):
    profile = register(db_session, picture="upload:avatar-1.png")
    assert profile.picture.endswith("/avatar-1.png")
    assert profile.picture.startswith("http")


def test_register_store_failure_is_generic(db_session):
    with patch.object(db_session, "flush", side_effect=OperationalError("INSERT", {}, Exception("boom"))):
        with pytest.raises(InfrastructureFailure) as exc_info:
            register(db_session)
    assert "boom" not in exc_info.value.message


# ---------------- Login ----------------

def test_successive_logins_rotate_the_token(db_session):
    registered = register(db_session)
    first = accounts.login(db_session, LoginRequest(email="alice@example.com", password="s3cret!"))
    second = accounts.login(db_session, LoginRequest(email="ALICE@example.com", password="s3cret!"))

    assert len({registered.access_token, first.access_token, second.access_token}) == 3
    assert tokens.lookup(db_session, first.access_token) is None
    assert tokens.lookup(db_session, second.access_token) == user_id_for(db_session, "alice@example.com")
    assert db_session.query(Token).count() == 1


def test_wrong_password_leaves_token_store_unchanged(db_session):
    registered = register(db_session)

    with pytest.raises(AuthenticationFailure):
        accounts.login(db_session, LoginRequest(email="alice@example.com", password="wrong"))

    rows = db_session.query(Token).all()
    assert len(rows) == 1
    assert rows[0].access_token == registered.access_token


def test_unknown_email_and_wrong_password_fail_the_same_way(db_session):
    register(db_session)

    with pytest.raises(AuthenticationFailure) as unknown:
        accounts.login(db_session, LoginRequest(email="ghost@example.com", password="s3cret!"))
    with pytest.raises(AuthenticationFailure) as wrong:
        accounts.login(db_session, LoginRequest(email="alice@example.com", password="nope"))

    assert unknown.value.status_code == wrong.value.status_code == 401
    assert unknown.value.body() == wrong.value.body()


def test_failed_logins_cost_the_same_hash_work(db_session):
    accounts.resolve_federated_account(db_session, FederatedProfile(email="fed@example.com"), "google")
    context = passwords.pwd_context

    def hash_calls(email):
        with patch.object(context, "verify", wraps=context.verify) as verify, \
                patch.object(context, "dummy_verify", wraps=context.dummy_verify) as dummy:
            with pytest.raises(AuthenticationFailure):
                accounts.login(db_session, LoginRequest(email=email, password="anything"))
        return verify.call_count + dummy.call_count

    unknown_email = hash_calls("nobody@example.com")
    assert unknown_email > 0
    assert hash_calls("fed@example.com") == unknown_email


def test_login_validates_shape(db_session):
    with pytest.raises(ValidationFailed) as exc_info:
        accounts.login(db_session, LoginRequest(email="not-an-email"))
    assert [e.field for e in exc_info.value.errors] == ["email", "password"]


# ---------------- Update ----------------

def test_update_only_username_changes_only_username(db_session):
    register(db_session, picture="https://cdn.example.com/a.png")
    user_id = user_id_for(db_session, "alice@example.com")
    before = db_session.get(User, user_id)
    old_hash, old_picture = before.password_hash, before.picture

    profile = accounts.update(db_session, user_id, ProfilePatch(username="new"))

    db_session.expire_all()
    after = db_session.get(User, user_id)
    assert after.username == "new"
    assert after.email == "alice@example.com"
    assert after.picture == old_picture
    assert after.password_hash == old_hash
    assert profile.password_update is None


def test_update_explicit_null_clears_picture(db_session):
    register(db_session, picture="https://cdn.example.com/a.png")
    user_id = user_id_for(db_session, "alice@example.com")

    profile = accounts.update(db_session, user_id, ProfilePatch.model_validate({"picture": None}))

    assert profile.picture is None
    db_session.expire_all()
    assert db_session.get(User, user_id).picture is None


def test_update_rejects_clearing_email(db_session):
    register(db_session)
    user_id = user_id_for(db_session, "alice@example.com")

    with pytest.raises(ValidationFailed) as exc_info:
        accounts.update(db_session, user_id, ProfilePatch.model_validate({"email": None}))
    assert exc_info.value.errors[0].field == "email"


def test_update_email_uniqueness_excludes_own_row(db_session):
    register(db_session)
    register(db_session, email="bob@example.com", username="bob")
    alice_id = user_id_for(db_session, "alice@example.com")

    profile = accounts.update(db_session, alice_id, ProfilePatch(email="ALICE@example.com"))
    assert profile.email == "alice@example.com"

    with pytest.raises(AvailabilityConflict):
        accounts.update(db_session, alice_id, ProfilePatch(email="Bob@example.com"))


def test_password_change_with_right_old_password(db_session):
    register(db_session)
    user_id = user_id_for(db_session, "alice@example.com")

    profile = accounts.update(
        db_session, user_id,
        ProfilePatch.model_validate({"oldPassword": "s3cret!", "newPassword": "n3w-pass"}),
    )
    assert profile.password_update is True
    assert profile.model_dump(by_alias=True)["passwordUpdate"] is True

    accounts.login(db_session, LoginRequest(email="alice@example.com", password="n3w-pass"))
    with pytest.raises(AuthenticationFailure):
        accounts.login(db_session, LoginRequest(email="alice@example.com", password="s3cret!"))


def test_password_change_with_wrong_old_password_is_not_an_error(db_session):
    register(db_session)
    user_id = user_id_for(db_session, "alice@example.com")

    profile = accounts.update(
        db_session, user_id,
        ProfilePatch(old_password="wrong", new_password="n3w-pass"),
    )
    assert profile.password_update is False

    accounts.login(db_session, LoginRequest(email="alice@example.com", password="s3cret!"))
    with pytest.raises(AuthenticationFailure):
        accounts.login(db_session, LoginRequest(email="alice@example.com", password="n3w-pass"))


def test_update_unknown_user(db_session):
    with pytest.raises(AccountNotFound):
        accounts.update(db_session, 999, ProfilePatch(username="ghost"))


# ---------------- Logout / Delete ----------------

def test_logout_is_idempotent(db_session):
    profile = register(db_session)
    user_id = user_id_for(db_session, "alice@example.com")

    assert accounts.logout(db_session, user_id).message == "Success."
    assert accounts.logout(db_session, user_id).message == "Success."
    assert tokens.lookup(db_session, profile.access_token) is None


def test_delete_profile_removes_user_and_token(db_session):
    profile = register(db_session)
    user_id = user_id_for(db_session, "alice@example.com")

    accounts.delete_profile(db_session, user_id, "s3cret!")

    assert db_session.query(User).count() == 0
    assert db_session.query(Token).count() == 0
    assert tokens.lookup(db_session, profile.access_token) is None


def test_delete_profile_with_wrong_password(db_session):
    register(db_session)
    user_id = user_id_for(db_session, "alice@example.com")

    with pytest.raises(AuthenticationFailure) as exc_info:
        accounts.delete_profile(db_session, user_id, "wrong")

    assert exc_info.value.status_code == 401
    assert db_session.query(User).count() == 1


# ---------------- Reads and probes ----------------

def test_public_profile_shows_username_and_picture_only(db_session):
    register(db_session, picture="https://cdn.example.com/a.png")
    view = accounts.get_public_profile(db_session, "ALICE")
    assert view.model_dump() == {"username": "alice", "picture": "https://cdn.example.com/a.png"}

    with pytest.raises(AccountNotFound):
        accounts.get_public_profile(db_session, "nobody")


def test_my_profile_echoes_token(db_session):
    registered = register(db_session)
    user_id = user_id_for(db_session, "alice@example.com")
    view = accounts.get_my_profile(db_session, user_id, registered.access_token)
    assert view.email == "alice@example.com"
    assert view.access_token == registered.access_token


def test_user_from_token(db_session):
    registered = register(db_session)
    assert accounts.user_from_token(db_session, registered.access_token) == user_id_for(db_session, "alice@example.com")
    assert accounts.user_from_token(db_session, "garbage") is None


def test_email_availability_probe(db_session):
    register(db_session)

    assert accounts.check_email_availability(db_session, "free@example.com").available is True
    with pytest.raises(AvailabilityConflict) as exc_info:
        accounts.check_email_availability(db_session, "ALICE@example.com")
    assert exc_info.value.status_code == 423
    assert exc_info.value.body() == {"email": "ALICE@example.com", "available": False}

    with pytest.raises(ValidationFailed):
        accounts.check_email_availability(db_session, "nope")


def test_username_availability_probe(db_session):
    register(db_session)

    assert accounts.check_username_availability(db_session, "carol").available is True
    with pytest.raises(AvailabilityConflict):
        accounts.check_username_availability(db_session, "Alice")


# ---------------- Account resolver ----------------

def test_first_federated_login_provisions_account(db_session):
    profile = accounts.resolve_federated_account(
        db_session,
        FederatedProfile(email="Fed@Example.com", username="Fed", picture="https://cdn.example.com/f.png"),
        "google",
    )

    assert profile.email == "fed@example.com"
    assert profile.access_token
    user = db_session.query(User).one()
    assert user.auth_provider == "google"
    assert user.salt is None
    assert user.password_hash is None
    assert user.is_federated_only


def test_repeated_federated_login_reuses_account(db_session):
    first = accounts.resolve_federated_account(db_session, FederatedProfile(email="fed@example.com", username="Fed"), "google")
    first_id = user_id_for(db_session, "fed@example.com")

    second = accounts.resolve_federated_account(
        db_session,
        FederatedProfile(email="FED@example.com", username="Renamed", picture="https://cdn.example.com/new.png"),
        "google",
    )

    assert db_session.query(User).count() == 1
    assert user_id_for(db_session, "fed@example.com") == first_id
    assert second.access_token != first.access_token
    assert tokens.lookup(db_session, first.access_token) is None
    # Stored profile fields are not refreshed from the provider
    assert second.username == "Fed"
    assert second.picture is None


def test_federated_login_for_existing_local_account(db_session):
    register(db_session)
    profile = accounts.resolve_federated_account(db_session, FederatedProfile(email="alice@example.com"), "facebook")
    assert profile.username == "alice"
    assert db_session.query(User).count() == 1


def test_federated_only_account_cannot_log_in_with_password(db_session):
    accounts.resolve_federated_account(db_session, FederatedProfile(email="fed@example.com"), "google")

    with pytest.raises(AuthenticationFailure):
        accounts.login(db_session, LoginRequest(email="fed@example.com", password="anything"))


def test_federated_username_gets_suffix_when_taken(db_session):
    register(db_session, username="John")
    accounts.resolve_federated_account(db_session, FederatedProfile(email="john2@example.com", username="John"), "google")

    user = db_session.query(User).filter(User.email == "john2@example.com").one()
    assert user.username == "John2"


def test_federated_username_is_cleaned_or_dropped(db_session):
    accounts.resolve_federated_account(db_session, FederatedProfile(email="a@example.com", username="Zoë  (Z)"), "google")
    accounts.resolve_federated_account(db_session, FederatedProfile(email="b@example.com", username="!!"), "google")

    assert db_session.query(User).filter(User.email == "a@example.com").one().username == "Zoë Z"
    assert db_session.query(User).filter(User.email == "b@example.com").one().username is None


def test_token_expired_but_not_overwritten(db_session):
    registered = register(db_session)
    row = db_session.query(Token).one()
    row.expire_at = datetime.utcnow() - timedelta(minutes=1)
    db_session.commit()

    assert accounts.user_from_token(db_session, registered.access_token) is None
