"""
MailTrack Backend: Notification Inbox Tests
=============================================

What:  What each user can see in their inbox, unread counts, marking
       read and deleting, plus fan-out edge cases.
"""

import logging
import uuid

import pytest
from sqlalchemy import select

from mailtrack.exceptions import NotFoundError
from mailtrack.models.enums import Role
from mailtrack.models.letter import IncomingLetter
from mailtrack.models.notification import Notification
from mailtrack.services import incoming_service as incoming_module
from mailtrack.services.incoming_service import incoming_service
from mailtrack.services.notification_service import notification_service

from conftest import incoming_payload


class TestInboxVisibility:

    @pytest.mark.asyncio
    async def test_own_and_department_broadcasts(
        self, db_session, super_admin, rd_user, records_dept, finance_dept
    ):
        await notification_service.create(db_session, "Direct to records", user_id=records_dept.user_id)
        await notification_service.create(db_session, "Records broadcast", department_id=records_dept.id)
        await notification_service.create(db_session, "Finance broadcast", department_id=finance_dept.id)

        records_inbox = await notification_service.list_for_user(db_session, records_dept.user)
        assert {n.message for n in records_inbox.notifications} == {"Direct to records", "Records broadcast"}

        finance_inbox = await notification_service.list_for_user(db_session, finance_dept.user)
        assert [n.message for n in finance_inbox.notifications] == ["Finance broadcast"]

        admin_inbox = await notification_service.list_for_user(db_session, super_admin)
        assert {n.message for n in admin_inbox.notifications} == {"Records broadcast", "Finance broadcast"}

    @pytest.mark.asyncio
    async def test_pagination(self, db_session, rd_user):
        for n in range(5):
            await notification_service.create(db_session, f"Note {n}", user_id=rd_user.id)

        page = await notification_service.list_for_user(db_session, rd_user, page=2, limit=2)
        assert page.total == 5
        assert len(page.notifications) == 2
        assert page.current_page == 2
        assert page.total_pages == 3
        assert page.has_more is True


class TestInboxActions:

    @pytest.mark.asyncio
    async def test_unread_count_and_mark_read(self, db_session, rd_user):
        first = await notification_service.create(db_session, "First", user_id=rd_user.id)
        await notification_service.create(db_session, "Second", user_id=rd_user.id)
        assert await notification_service.unread_count(db_session, rd_user) == 2

        marked = await notification_service.mark_as_read(db_session, first.id, rd_user)
        assert marked.is_read is True
        assert await notification_service.unread_count(db_session, rd_user) == 1

    @pytest.mark.asyncio
    async def test_mark_all_read(self, db_session, rd_user, super_admin):
        for n in range(3):
            await notification_service.create(db_session, f"Note {n}", user_id=rd_user.id)
        await notification_service.create(db_session, "Someone else's", user_id=super_admin.id)

        assert await notification_service.mark_all_as_read(db_session, rd_user) == 3
        assert await notification_service.unread_count(db_session, rd_user) == 0
        assert await notification_service.unread_count(db_session, super_admin) == 1

    @pytest.mark.asyncio
    async def test_broadcast_read_state_is_not_shared(self, db_session, super_admin, records_dept):
        broadcast = await notification_service.create(
            db_session, "Records office closed on Friday", department_id=records_dept.id
        )
        records_user = records_dept.user

        returned = await notification_service.mark_as_read(db_session, broadcast.id, records_user)
        assert returned.id == broadcast.id
        assert await notification_service.mark_all_as_read(db_session, records_user) == 0

        admin_inbox = await notification_service.list_for_user(db_session, super_admin)
        assert [n.is_read for n in admin_inbox.notifications] == [False]
        assert await notification_service.unread_count(db_session, super_admin) == 0

    @pytest.mark.asyncio
    async def test_cannot_touch_other_users_notification(self, db_session, rd_user, super_admin):
        private = await notification_service.create(db_session, "Private", user_id=super_admin.id)

        with pytest.raises(NotFoundError, match="Notification not found"):
            await notification_service.mark_as_read(db_session, private.id, rd_user)
        with pytest.raises(NotFoundError):
            await notification_service.delete(db_session, private.id, rd_user)

    @pytest.mark.asyncio
    async def test_delete(self, db_session, rd_user):
        note = await notification_service.create(db_session, "Bye", user_id=rd_user.id)
        await notification_service.delete(db_session, note.id, rd_user)
        with pytest.raises(NotFoundError):
            await notification_service.mark_as_read(db_session, note.id, rd_user)

    @pytest.mark.asyncio
    async def test_unknown_id(self, db_session, rd_user):
        with pytest.raises(NotFoundError):
            await notification_service.mark_as_read(db_session, uuid.uuid4(), rd_user)


class TestFanOut:

    @pytest.mark.asyncio
    async def test_roles_without_wording_are_skipped(self, db_session, super_admin, rd_user, records_dept):
        written = await notification_service.fan_out(
            db_session,
            {Role.SUPER_ADMIN.value: "Admins only"},
            counterparty_department_id=records_dept.id,
        )
        assert written == 1

    @pytest.mark.asyncio
    async def test_nobody_to_notify(self, db_session, super_admin):
        written = await notification_service.fan_out(
            db_session,
            {Role.SUPER_ADMIN.value: "Hello"},
            counterparty_department_id=uuid.uuid4(),
            actor_id=super_admin.id,
        )
        assert written == 0

    @pytest.mark.asyncio
    async def test_failed_insert_keeps_the_letter(
        self, db_session, super_admin, rd_user, records_dept, monkeypatch, caplog
    ):
        # NULL message text violates the NOT NULL column
        monkeypatch.setattr(
            incoming_module, "created_messages", lambda letter: {role.value: None for role in Role}
        )

        with caplog.at_level(logging.ERROR, logger="mailtrack.services.notification_service"):
            letter = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)
        await db_session.commit()

        stored = (await db_session.execute(select(IncomingLetter.qr_code))).scalars().all()
        assert stored == [letter.qr_code]
        assert (await db_session.execute(select(Notification.id))).first() is None
        assert any(
            r.levelno == logging.ERROR and "fan-out failed" in r.getMessage() for r in caplog.records
        )
