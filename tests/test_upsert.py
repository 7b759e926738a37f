from types import SimpleNamespace

import pytest

from patent_search.core.errors import ConfigurationError
from patent_search.db.upsert import insert_ignore
from patent_search.models import User


class _MysqlSession:
    def get_bind(self):
        return SimpleNamespace(dialect=SimpleNamespace(name="mysql"))

    def execute(self, stmt):
        raise AssertionError("nothing should be executed")


def test_insert_ignore_creates_once(db):
    values = {"id": "user-1", "email": "alice@example.com", "subscription_tier": "free"}

    assert insert_ignore(db, User, values, index_elements=["id"]) == 1
    assert insert_ignore(db, User, values, index_elements=["id"]) == 0
    db.commit()
    assert db.query(User).count() == 1


def test_unsupported_dialect_is_configuration_error():
    with pytest.raises(ConfigurationError) as exc_info:
        insert_ignore(_MysqlSession(), User, {"id": "user-1"}, index_elements=["id"])

    assert exc_info.value.status_code == 500
    assert "mysql" in exc_info.value.description
