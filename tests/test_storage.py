from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeGitHubSession
from storage.base import DuplicateRecordError, top_authors
from storage.github import GitHubQuoteStore, GitHubUserStore, _to_document
from storage.github_document import empty_document
from storage.records import QuoteRecord, UserRecord
from storage.sql import SqlQuoteStore, SqlUserStore
from utils.time_utils import as_utc, period_start, start_of_utc_day, to_iso, to_naive_utc


@pytest.fixture(params=["sql", "github"])
def stores(request, session_factory, document):
    if request.param == "sql":
        db = session_factory()
        yield SqlQuoteStore(db), SqlUserStore(db)
        db.close()
    else:
        yield GitHubQuoteStore(document, chooser=lambda items: items[-1]), GitHubUserStore(document)


def test_top_authors_ranking():
    ranked = top_authors(["Plato", "Seneca", "Seneca", None, "Plato", "Seneca"], limit=2)
    assert ranked == [{"author": "Seneca", "count": 3}, {"author": "Plato", "count": 2}]


def test_time_helpers():
    naive = datetime(2024, 5, 10, 12, 30, 15, 123456)
    assert as_utc(naive).tzinfo == timezone.utc
    assert to_naive_utc(as_utc(naive)) == naive
    assert to_iso(naive) == "2024-05-10T12:30:15.123Z"
    assert start_of_utc_day(naive) == datetime(2024, 5, 10, tzinfo=timezone.utc)
    assert period_start("1d", naive) == as_utc(naive) - timedelta(days=1)
    assert period_start("bogus", naive) == as_utc(naive) - timedelta(days=7)


def test_records_read_document_items():
    quote = QuoteRecord.model_validate({
        "id": 3,
        "text": "Hi",
        "author": "Me",
        "userId": 9,
        "isApproved": False,
        "tags": None,
        "createdAt": "2024-05-10T12:00:00.000Z",
    })
    assert quote.user_id == 9
    assert quote.is_approved is False
    assert quote.tags == []
    assert quote.created_at == datetime(2024, 5, 10, 12, tzinfo=timezone.utc)

    user = UserRecord.model_validate({"id": 1, "username": "neo", "password": "hashed", "telegramId": 77})
    assert user.password_hash == "hashed"
    assert user.telegram_id == "77"
    assert user.to_document()["password"] == "hashed"


def test_changes_are_written_with_document_keys():
    when = datetime(2024, 5, 10, tzinfo=timezone.utc)
    assert _to_document({"is_active": False, "last_login_at": when, "password_hash": "h"}, UserRecord) == {
        "isActive": False,
        "lastLoginAt": "2024-05-10T00:00:00.000Z",
        "password": "h",
    }


def test_quote_store_contract(stores):
    quotes, _ = stores
    first = quotes.create({"text": "Know thyself", "author": "Socrates", "tags": ["greek"]})
    second = quotes.create({"text": "Carpe diem", "author": "Horace", "category": "latin", "is_approved": False})

    assert (first.id, second.id) == (1, 2)
    assert first.category == "general"
    assert quotes.get(1).tags == ["greek"]
    assert quotes.get(99) is None

    listed, total = quotes.list(1, 10)
    assert total == 2
    assert [q.id for q in listed] == [2, 1]
    assert quotes.list(1, 10, approved=True)[1] == 1
    assert quotes.list(1, 10, category="latin")[0][0].author == "Horace"
    assert quotes.list(1, 10, search="THYSELF")[0][0].id == 1

    assert quotes.count() == 2
    assert quotes.count(approved=False) == 1
    assert quotes.count(since=datetime.now(timezone.utc) + timedelta(hours=1)) == 0
    assert [q.id for q in quotes.created_since(datetime.now(timezone.utc) - timedelta(days=1))] == [1, 2]

    assert quotes.random(approved_only=True).id == 1

    updated = quotes.update(2, {"is_approved": True, "text": "Seize the day"})
    assert updated.is_approved and updated.text == "Seize the day"
    assert updated.updated_at >= updated.created_at

    quotes.delete(1)
    assert quotes.get(1) is None


def test_user_store_contract(stores):
    _, users = stores
    alice = users.create({"username": "Alice", "email": "Alice@Example.com", "password_hash": "h"})
    users.create({"username": "bob", "email": "bob@example.com", "role": "admin"})
    users.create({"username": "tg_5", "telegram_id": "5"})

    assert alice.username == "alice"
    assert users.find_by_login("ALICE").id == alice.id
    assert users.find_by_login("alice@example.com").id == alice.id
    assert users.find_by_email("alice@example.com").password_hash == "h"
    assert users.find_by_telegram_id("5").username == "tg_5"

    with pytest.raises(DuplicateRecordError):
        users.create({"username": "alice", "email": "x@example.com"})
    with pytest.raises(DuplicateRecordError):
        users.create({"username": "carol", "email": "BOB@example.com"})

    listed, total = users.list(1, 10, role="admin")
    assert total == 1 and listed[0].username == "bob"

    logged_in = users.record_login(alice.id, "10.0.0.1")
    assert logged_in.last_login_ip == "10.0.0.1"
    assert logged_in.last_login_at is not None

    users.update(alice.id, {"is_active": False})
    stats = users.stats()
    assert stats.total_users == 3
    assert stats.active_users == 2
    assert stats.role_stats == {"user": 2, "admin": 1}


def test_github_uniqueness_is_checked_against_the_written_copy(make_document):
    session = FakeGitHubSession(empty_document())
    first = make_document(session)
    second = make_document(session)
    first.fetch()
    second.fetch()

    GitHubUserStore(first).create({"username": "neo", "email": "neo@example.com"})
    # second still caches the revision without neo
    with pytest.raises(DuplicateRecordError):
        GitHubUserStore(second).create({"username": "Neo", "email": "other@example.com"})
    with pytest.raises(DuplicateRecordError):
        GitHubUserStore(second).create({"username": "trinity", "email": "NEO@example.com"})

    assert [u["username"] for u in session.document["users"]] == ["neo"]


def test_github_update_rejects_taken_email(document):
    users = GitHubUserStore(document)
    alice = users.create({"username": "alice", "email": "alice@example.com"})
    users.create({"username": "bob", "email": "bob@example.com"})

    with pytest.raises(DuplicateRecordError):
        users.update(alice.id, {"email": "BOB@example.com"})
    assert users.update(alice.id, {"email": "alice@example.com"}).email == "alice@example.com"
