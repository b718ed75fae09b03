from __future__ import annotations

from datetime import timedelta

from keyhub.credentials import CredentialStore
from keyhub.database import Database
from keyhub.keys import generate_api_key
from keyhub.models import KeyStatus
from keyhub.queries import QueryService
from keyhub.users import UserDirectory


def test_counts_are_evaluated_at_query_time(database: Database, clock) -> None:
    users = UserDirectory(database, clock=clock)
    store = CredentialStore(database, clock=clock)
    queries = QueryService(users, store, clock=clock)

    alice = users.find_or_create("alice@example.com", "Alice", "A")
    clock.advance(seconds=1)
    bob = users.find_or_create("bob@example.com", "Bob", "B")
    clock.advance(seconds=1)
    carol = users.find_or_create("carol@example.com", "Carol", "C")

    store.create(alice.id, generate_api_key(), None)
    store.create(alice.id, generate_api_key(), clock.now + timedelta(days=1))
    store.create(bob.id, generate_api_key(), clock.now + timedelta(days=7))

    counts = {row.user.email: (row.total_keys, row.active_keys) for row in queries.users_with_key_counts()}
    assert counts == {
        "alice@example.com": (2, 2),
        "bob@example.com": (1, 1),
        "carol@example.com": (0, 0),
    }

    clock.advance(days=2)
    rows = queries.users_with_key_counts()
    assert [row.user.id for row in rows] == [carol.id, bob.id, alice.id]
    counts = {row.user.email: (row.total_keys, row.active_keys) for row in rows}
    assert counts["alice@example.com"] == (2, 1)
    assert counts["bob@example.com"] == (1, 1)


def test_keys_with_owners_uses_supplied_instant(database: Database, clock) -> None:
    users = UserDirectory(database, clock=clock)
    store = CredentialStore(database, clock=clock)
    queries = QueryService(users, store, clock=clock)

    owner = users.find_or_create("owner@example.com", "Own", "Er")
    store.create(owner.id, generate_api_key(), clock.now + timedelta(hours=1))

    assert queries.keys_with_owners()[0].status is KeyStatus.ACTIVE
    later = queries.keys_with_owners(now=clock.now + timedelta(hours=2))
    assert later[0].status is KeyStatus.INACTIVE
    assert later[0].owner.id == owner.id
