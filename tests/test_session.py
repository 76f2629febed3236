import pytest

from sitecms.auth.credentials import Credential, authenticate, hash_password, verify_password
from sitecms.auth.session import SessionManager, SessionRecord, SessionStore
from sitecms.config import Settings
from sitecms.errors import Unauthorized


@pytest.fixture(scope="module")
def credential() -> Credential:
    return Credential(username="admin", password_hash=hash_password("pw-123"))


class FakeClock:
    def __init__(self, t: float = 1_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


def test_hash_and_verify_password():
    ph = hash_password("secret")
    assert verify_password(ph, "secret")
    assert not verify_password(ph, "Secret")
    assert not verify_password("", "secret")
    assert not verify_password("not-a-hash", "secret")
    with pytest.raises(ValueError):
        hash_password("")


def test_credential_from_settings_prefers_hash():
    ph = hash_password("from-hash")
    cred = Credential.from_settings(Settings(admin_user="boss", admin_pass="ignored", admin_pass_hash=ph))
    assert authenticate(cred, "boss", "from-hash")
    assert not authenticate(cred, "boss", "ignored")


def test_unconfigured_credential_never_authenticates():
    cred = Credential.from_settings(Settings())
    assert not cred.configured
    assert not authenticate(cred, "", "")


@pytest.mark.parametrize(
    "username,password",
    [("admin", "wrong"), ("Admin", "pw-123"), ("admin", "PW-123"), ("", "pw-123"), ("admin", "")],
)
def test_authenticate_is_case_sensitive_on_both_fields(credential, username, password):
    assert not authenticate(credential, username, password)


def test_login_issues_token_that_authenticates(credential):
    mgr = SessionManager(credential, "k")
    token = mgr.login("admin", "pw-123")
    assert token
    assert mgr.is_authenticated(token)
    assert len(mgr.store) == 1


def test_login_failure_does_not_say_which_field(credential):
    mgr = SessionManager(credential, "k")
    with pytest.raises(Unauthorized) as e1:
        mgr.login("admin", "nope")
    with pytest.raises(Unauthorized) as e2:
        mgr.login("nobody", "pw-123")
    assert e1.value.message == e2.value.message == "Invalid credentials"
    assert len(mgr.store) == 0


def test_logout_is_idempotent(credential):
    mgr = SessionManager(credential, "k")
    token = mgr.login("admin", "pw-123")

    mgr.logout(token)
    assert not mgr.is_authenticated(token)
    mgr.logout(token)
    assert not mgr.is_authenticated(token)
    mgr.logout(None)
    mgr.logout("garbage")


def test_tampered_or_foreign_tokens_are_rejected(credential):
    mgr = SessionManager(credential, "k")
    other = SessionManager(credential, "other-secret")
    token = mgr.login("admin", "pw-123")

    assert not mgr.is_authenticated(token + "x")
    assert not other.is_authenticated(token)
    assert not mgr.is_authenticated("")
    assert not mgr.is_authenticated(None)


def test_token_for_unknown_session_is_rejected(credential):
    # Signed correctly, but the id was never issued (e.g. after a restart).
    mgr = SessionManager(credential, "k")
    forged = mgr._serializer.dumps({"sid": "never-issued"})
    assert not mgr.is_authenticated(forged)


def test_session_flag_must_be_true():
    store = SessionStore()
    store._records["sid"] = SessionRecord(authenticated=False, created_at=store._clock())
    assert not store.is_authenticated("sid")


def test_sessions_expire_after_max_age():
    clock = FakeClock()
    store = SessionStore(max_age=60, clock=clock)
    sid = store.create()
    assert store.is_authenticated(sid)

    clock.t += 61
    assert not store.is_authenticated(sid)
    assert len(store) == 0


def test_expired_sessions_are_purged_on_create():
    clock = FakeClock()
    store = SessionStore(max_age=60, clock=clock)
    store.create()
    store.create()
    clock.t += 120
    fresh = store.create()
    assert len(store) == 1
    assert store.is_authenticated(fresh)


def test_missing_secret_is_an_error(credential):
    with pytest.raises(RuntimeError):
        SessionManager(credential, "")
