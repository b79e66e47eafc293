"""
Unit tests for SQLAlchemyUnitOfWork (writer), using factories.
"""

from __future__ import annotations

from contextlib import nullcontext

import pytest
from refreshguard.models import RefreshCredential, User
from refreshguard.uow import SQLAlchemyUnitOfWork, UnitOfWork

from tests.factories.user import UserFactory


class TestSQLAlchemyUnitOfWorkWriter:
    def test_writer_uow_commits_on_success(self, app, db, session):
        """
        GIVEN a writer UoW
        WHEN we create a user via repo inside the context and leave without exception
        THEN the transaction is committed and the row is visible afterwards.
        """
        initial = db.session.query(User).count()

        with SQLAlchemyUnitOfWork() as uow:
            u = UserFactory.build()
            uow.users.add(u)

        after = db.session.query(User).count()
        assert after == initial + 1

    def test_writer_uow_rolls_back_on_exception(self, app, db, session):
        """
        GIVEN a writer UoW
        WHEN an exception is raised inside the context
        THEN the transaction is rolled back and no rows are persisted.
        """
        initial = db.session.query(User).count()

        with pytest.raises(RuntimeError), SQLAlchemyUnitOfWork() as uow:
            u = UserFactory.build()
            uow.users.add(u)
            raise RuntimeError("boom")

        after = db.session.query(User).count()
        assert after == initial

    def test_version_bump_and_rows_share_one_transaction(self, app, db, session):
        """
        GIVEN a user with an empty credential set
        WHEN the rows are rewritten and the block fails afterwards
        THEN neither the version bump nor the rows survive.
        """
        user = UserFactory()
        session.commit()
        user_id = user.id

        with pytest.raises(RuntimeError), SQLAlchemyUnitOfWork() as uow:
            assert uow.credentials.compare_and_bump_version(user_id, 0)
            uow.credentials.replace_for(user_id, ["a", "b"])
            raise RuntimeError("boom")

        with SQLAlchemyUnitOfWork() as uow:
            assert uow.credentials.current_version(user_id) == 0
        assert db.session.query(RefreshCredential).filter_by(user_id=user_id).count() == 0


class _RecordingUoW(UnitOfWork):
    def __init__(self, fail_commit: bool = False) -> None:
        self.calls: list[str] = []
        self.fail_commit = fail_commit

    def commit(self) -> None:
        self.calls.append("commit")
        if self.fail_commit:
            raise RuntimeError("commit failed")

    def rollback(self) -> None:
        self.calls.append("rollback")


@pytest.mark.parametrize(
    "fail_commit, raise_inside, expected",
    [
        (False, False, ["commit"]),
        (False, True, ["rollback"]),
        (True, False, ["commit", "rollback"]),
    ],
)
def test_exit_protocol(fail_commit, raise_inside, expected):
    uow = _RecordingUoW(fail_commit=fail_commit)
    with pytest.raises(RuntimeError) if (fail_commit or raise_inside) else nullcontext():
        with uow:
            if raise_inside:
                raise RuntimeError("inside")
    assert uow.calls == expected
