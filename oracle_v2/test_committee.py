"""
Tests for the committee key registry and the admin whitelist.
"""
import pytest
from oracle_v2.committee import CommitteeRegistry
from oracle_v2.errors import CommitteeKeyMissing, InvalidKeyLength, Unauthorized
from oracle_v2.events import EventBus, COMMITTEE_KEY_ADDED, COMMITTEE_KEY_REMOVED
from oracle_v2.governance import AdminAuthority
from oracle_v2.memory_db import MemoryDB
from oracle_v2.state import StateOverlay

ADMIN = b'\xaa' * 20
STRANGER = b'\xbb' * 20
KEY_A = b'\x01' * 48
KEY_B = b'\x02' * 48


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def registry(events):
    return CommitteeRegistry(StateOverlay(MemoryDB()), lambda caller: caller == ADMIN, events)


def test_register_and_read(registry, events):
    registry.register(ADMIN, 1, KEY_A)
    assert registry.public_key(1) == KEY_A
    assert registry.committee_ids() == [1]

    note = events.pending[-1]
    assert note.kind == COMMITTEE_KEY_ADDED
    assert note.data['committee_id'] == 1
    assert note.data['rotated'] is False


def test_rotate_key(registry, events):
    registry.register(ADMIN, 1, KEY_A)
    registry.register(ADMIN, 1, KEY_B)
    assert registry.public_key(1) == KEY_B
    assert registry.committee_ids() == [1]
    assert events.pending[-1].data['rotated'] is True


def test_unauthorized(registry):
    with pytest.raises(Unauthorized):
        registry.register(STRANGER, 1, KEY_A)
    with pytest.raises(Unauthorized):
        registry.register(None, 1, KEY_A)
    with pytest.raises(Unauthorized):
        registry.remove(STRANGER, 1)


def test_key_length(registry):
    with pytest.raises(InvalidKeyLength):
        registry.register(ADMIN, 1, b'\x01' * 47)
    with pytest.raises(InvalidKeyLength):
        registry.register(ADMIN, 1, b'\x01' * 96)
    with pytest.raises(CommitteeKeyMissing):
        registry.public_key(1)


def test_remove(registry, events):
    registry.register(ADMIN, 1, KEY_A)
    registry.register(ADMIN, 2, KEY_B)
    registry.remove(ADMIN, 1)

    assert registry.committee_ids() == [2]
    assert events.pending[-1].kind == COMMITTEE_KEY_REMOVED
    with pytest.raises(CommitteeKeyMissing):
        registry.public_key(1)
    with pytest.raises(CommitteeKeyMissing):
        registry.remove(ADMIN, 1)


def test_verify_unknown_committee_fails_closed(registry):
    with pytest.raises(CommitteeKeyMissing):
        registry.verify(9, b'\x00' * 32, b'\x00' * 96)


def test_verify_uses_stored_key(registry, monkeypatch):
    calls = []

    def fake_verify(public_key, message, signature):
        calls.append((public_key, message, signature))
        return True

    monkeypatch.setattr("oracle_v2.committee.bls_verify", fake_verify)
    registry.register(ADMIN, 1, KEY_A)
    assert registry.verify(1, b'root', b'sig')
    assert calls == [(KEY_A, b'root', b'sig')]


# --- Admin whitelist ---

def test_owner_manages_admins():
    owner = b'\x01' * 20
    authority = AdminAuthority(owner)
    assert authority.is_authorized(owner)
    assert not authority.is_authorized(ADMIN)

    assert authority.add_admin(owner, ADMIN)
    assert not authority.add_admin(owner, ADMIN)
    assert authority.is_authorized(ADMIN)

    with pytest.raises(Unauthorized):
        authority.add_admin(ADMIN, STRANGER)

    assert authority.remove_admin(owner, ADMIN)
    assert not authority.is_authorized(ADMIN)
    assert not authority.is_authorized(None)


def test_transfer_ownership():
    owner = b'\x01' * 20
    authority = AdminAuthority(owner)
    authority.transfer_ownership(owner, STRANGER)
    assert authority.is_authorized(STRANGER)
    assert not authority.is_authorized(owner)
    with pytest.raises(Unauthorized):
        authority.transfer_ownership(owner, owner)


def test_authority_persists():
    db = MemoryDB()
    state = StateOverlay(db)
    authority = AdminAuthority(b'\x01' * 20)
    authority.add_admin(b'\x01' * 20, ADMIN)
    authority.save(state)
    state.commit()

    loaded = AdminAuthority.load(StateOverlay(db))
    assert loaded.owner == b'\x01' * 20
    assert loaded.is_authorized(ADMIN)


def test_load_without_owner():
    with pytest.raises(Unauthorized):
        AdminAuthority.load(StateOverlay(MemoryDB()))
