from datetime import timedelta

import pytest

from billpilot.core.exceptions import DuplicateIdentity, NotFound, PasswordTooShort, ValidationError
from billpilot.domain.models import ADMIN_ROLE, USER_ROLE, AccountState, TokenPurpose
from billpilot.infrastructure.repositories.user_repository import UserRepository
from billpilot.infrastructure.repositories.verification_token_repository import VerificationTokenRepository
from billpilot.services.password_hasher import PasswordHasher
from conftest import PASSWORD


@pytest.fixture
def users(tmp_path):
    return UserRepository(str(tmp_path / "nested" / "users.db"), PasswordHasher(rounds=4))


@pytest.fixture
def tokens(tmp_path):
    return VerificationTokenRepository(str(tmp_path / "nested" / "users.db"))


def _create(users, email="a@x.com", username="abcdef", **kwargs):
    return users.create(email, username, "Jane", "Doe", PASSWORD, **kwargs)


def test_create_normalises_and_hashes(users):
    user = _create(users, email="  Jane.Doe@X.com ")

    assert user.email == "jane.doe@x.com"
    assert user.roles == [USER_ROLE]
    assert user.state is AccountState.PENDING_VERIFICATION
    assert users.password_hasher.compare(PASSWORD, user.password_hash)
    assert users.get_by_email("JANE.DOE@x.com").id == user.id


def test_create_rejects_duplicates(users):
    _create(users)

    with pytest.raises(DuplicateIdentity):
        _create(users, email="a@x.com", username="someoneelse")
    with pytest.raises(DuplicateIdentity):
        _create(users, email="b@x.com", username="ABCDEF")


def test_create_validates_fields(users):
    with pytest.raises(ValidationError):
        _create(users, email="not-an-email")
    with pytest.raises(ValidationError):
        _create(users, username="1abc")
    with pytest.raises(ValidationError):
        users.create("a@x.com", "abcdef", "Ja ne", "Doe", PASSWORD)
    with pytest.raises(PasswordTooShort):
        users.create("a@x.com", "abcdef", "Jane", "Doe", "Ab1!")
    with pytest.raises(ValidationError):
        users.create("a@x.com", "abcdef", "Jane", "Doe", "Aa1!" + "\u00e9" * 40)
    assert users.count() == 0


def test_admin_creation_with_profile(users):
    admin = _create(
        users,
        is_email_verified=True,
        roles=[USER_ROLE, ADMIN_ROLE],
        profile={"city": " Lagos ", "phone_number": "+234 8012345678"},
    )

    assert admin.state is AccountState.ACTIVE
    assert admin.has_role(ADMIN_ROLE)
    assert admin.city == "Lagos"
    assert admin.phone_number == "+2348012345678"


def test_rotate_refresh_token_variants(users):
    user = _create(users)

    assert users.rotate_refresh_token(user.id, "t1") is True
    assert users.rotate_refresh_token(user.id, "t2") is True
    assert users.get_by_refresh_token("t1").id == user.id

    assert users.rotate_refresh_token(user.id, "t3", old_token="t1") is True
    assert users.get_by_id(user.id).refresh_tokens == ["t2", "t3"]

    assert users.rotate_refresh_token(user.id, "t4", revoke_all=True) is True
    assert users.get_by_id(user.id).refresh_tokens == ["t4"]


def test_rotate_requiring_old_token_is_all_or_nothing(users):
    user = _create(users)
    users.rotate_refresh_token(user.id, "t1")

    assert users.rotate_refresh_token(user.id, "t2", old_token="t1", require_old=True) is True
    assert users.rotate_refresh_token(user.id, "t3", old_token="t1", require_old=True) is False
    assert users.get_by_id(user.id).refresh_tokens == ["t2"]
    assert users.get_by_refresh_token("t1") is None


def test_remove_and_clear_refresh_tokens(users):
    user = _create(users)
    for token in ("t1", "t2", "t3"):
        users.rotate_refresh_token(user.id, token)

    assert users.remove_refresh_token(user.id, "t2") is True
    assert users.remove_refresh_token(user.id, "t2") is False
    assert users.clear_refresh_tokens(user.id) == 2
    assert users.get_by_id(user.id).refresh_tokens == []


def test_update_profile_and_password(users):
    user = _create(users)

    updated = users.update_profile(user.id, {"business_name": "Jane Ltd", "first_name": "Janet"})
    assert updated.business_name == "Jane Ltd"
    assert updated.first_name == "Janet"
    with pytest.raises(ValidationError):
        users.update_profile(user.id, {"email": "b@x.com"})
    with pytest.raises(ValidationError):
        users.update_profile(user.id, {"phone_number": "12345"})

    changed = users.update_password(user.id, "N3w!passw0rd")
    assert changed.password_changed_at is not None
    assert users.password_hasher.compare("N3w!passw0rd", changed.password_hash)
    with pytest.raises(NotFound):
        users.update_password(user.id + 1, "N3w!passw0rd")


def test_list_count_and_delete(users):
    first = _create(users)
    second = _create(users, email="b@x.com", username="bcdefg")
    users.rotate_refresh_token(first.id, "t1")

    assert users.count() == 2
    assert [user.id for user in users.list_all(limit=10, offset=0)] == [second.id, first.id]
    assert [user.id for user in users.list_all(limit=1, offset=1)] == [first.id]

    assert users.delete(first.id) is True
    assert users.delete(first.id) is False
    assert users.get_by_refresh_token("t1") is None


def test_verification_tokens_one_per_purpose(tokens):
    first = tokens.replace(1, TokenPurpose.VERIFY_EMAIL, "aaa")
    tokens.replace(1, TokenPurpose.RESET_PASSWORD, "bbb")
    second = tokens.replace(1, TokenPurpose.VERIFY_EMAIL, "ccc")

    assert tokens.find(1, "aaa", TokenPurpose.VERIFY_EMAIL) is None
    assert tokens.find(1, "ccc", TokenPurpose.VERIFY_EMAIL).id == second.id
    assert tokens.find(1, "ccc", TokenPurpose.RESET_PASSWORD) is None
    assert tokens.find(2, "ccc", TokenPurpose.VERIFY_EMAIL) is None
    assert first.id != second.id

    tokens.delete(second.id)
    assert tokens.find_for_user(1, TokenPurpose.VERIFY_EMAIL) is None
    tokens.delete_for_user(1)
    assert tokens.find_for_user(1, TokenPurpose.RESET_PASSWORD) is None


def test_verification_token_expiry_window(tokens):
    record = tokens.replace(1, TokenPurpose.VERIFY_EMAIL, "aaa")
    window = timedelta(minutes=15)

    assert not record.is_expired(window)
    assert not record.is_expired(window, now=record.created_at + window)
    assert record.is_expired(window, now=record.created_at + window + timedelta(seconds=1))
