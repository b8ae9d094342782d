"""
MailTrack Backend: Incoming Letter Service Tests
==================================================

What:  Create, list, edit, delete and status changes of incoming letters,
       including who gets notified.
How:   Services run against the in-memory database; the seeded users are
       one super admin, one R&D officer and the accounts of the Records
       and Finance departments.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select

from mailtrack.exceptions import NotFoundError, ValidationError
from mailtrack.models.enums import IncomingStatus
from mailtrack.models.letter import IncomingLetter
from mailtrack.models.notification import Notification
from mailtrack.models.user import utcnow
from mailtrack.schemas.letter import IncomingUpdate
from mailtrack.services.file_service import ImageUpload, file_service
from mailtrack.services.incoming_service import incoming_service

from conftest import incoming_payload


async def _notifications_for(db, letter):
    result = await db.execute(select(Notification).where(Notification.incoming_id == letter.id))
    return list(result.scalars().all())


class TestIncomingCreate:

    @pytest.mark.asyncio
    async def test_create_defaults(self, db_session, records_dept, super_admin):
        letter = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)

        assert letter.status == IncomingStatus.RECEIVED.value
        assert letter.received_date is not None
        assert letter.collected_date is None
        assert letter.image is None
        assert letter.department.code == "REC"

    @pytest.mark.asyncio
    async def test_unknown_department(self, db_session, records_dept, super_admin):
        payload = incoming_payload(records_dept, to_department_id=uuid.uuid4())
        with pytest.raises(ValidationError, match="Destination department does not exist"):
            await incoming_service.create(db_session, payload, creator=super_admin)

    @pytest.mark.asyncio
    async def test_created_as_collected_stamps_date(self, db_session, records_dept, super_admin):
        letter = await incoming_service.create(
            db_session, incoming_payload(records_dept, status=IncomingStatus.COLLECTED), creator=super_admin
        )
        assert letter.collected_date is not None

    @pytest.mark.asyncio
    async def test_notifies_globals_and_addressee_only(
        self, db_session, super_admin, rd_user, records_dept, finance_dept
    ):
        letter = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)

        notifications = await _notifications_for(db_session, letter)
        by_user = {n.user_id: n.message for n in notifications}
        assert set(by_user) == {rd_user.id, records_dept.user_id}
        assert by_user[rd_user.id] == (
            "New incoming letter received: Budget circular for Records Office (QR: IN-0001)"
        )
        assert by_user[records_dept.user_id] == (
            "New incoming letter received for your department: Budget circular (QR: IN-0001)"
        )
        assert all(n.department_id == records_dept.id for n in notifications)

    @pytest.mark.asyncio
    async def test_image_stored_and_exposed(self, db_session, records_dept, super_admin, jpeg_bytes):
        with patch.object(file_service, "validate_mime_type", return_value="image/jpeg"):
            letter = await incoming_service.create(
                db_session,
                incoming_payload(records_dept),
                creator=super_admin,
                image=ImageUpload(filename="scan.jpg", content=jpeg_bytes),
            )

        assert letter.image.endswith(".jpg")
        assert file_service.resolve(letter.image).read_bytes() == jpeg_bytes
        assert file_service.public_url(letter.image).startswith("/api/v1/files/")

    @pytest.mark.asyncio
    async def test_bad_image_rejects_letter(self, db_session, records_dept, super_admin):
        with pytest.raises(ValidationError):
            await incoming_service.create(
                db_session,
                incoming_payload(records_dept),
                creator=super_admin,
                image=ImageUpload(filename="scan.gif", content=b"GIF89a"),
            )
        assert (await db_session.execute(select(IncomingLetter.id))).first() is None


class TestIncomingRead:

    @pytest.mark.asyncio
    async def test_department_scope(self, db_session, super_admin, rd_user, records_dept, finance_dept):
        await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)
        await incoming_service.create(
            db_session, incoming_payload(finance_dept, qr_code="IN-0002"), creator=super_admin
        )
        await incoming_service.create(
            db_session, incoming_payload(finance_dept, qr_code="IN-0003"), creator=super_admin
        )

        everything = await incoming_service.list(db_session, rd_user)
        assert everything.total == 3

        records_view = await incoming_service.list(db_session, records_dept.user)
        assert records_view.total == 1
        assert records_view.records[0].qr_code == "IN-0001"

        finance_view = await incoming_service.list(db_session, finance_dept.user, page=2, limit=1)
        assert finance_view.total == 2
        assert len(finance_view.records) == 1
        assert finance_view.current_page == 2
        assert finance_view.total_pages == 2
        assert finance_view.has_more is False

    @pytest.mark.asyncio
    async def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await incoming_service.get(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_repeated_qr_newest_wins(self, db_session, super_admin, records_dept, finance_dept):
        older = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)
        older.created_at = utcnow() - timedelta(days=1)
        newer = await incoming_service.create(db_session, incoming_payload(finance_dept), creator=super_admin)
        await db_session.flush()

        found = await incoming_service.get_by_qr(db_session, "IN-0001")
        assert found.id == newer.id

    @pytest.mark.asyncio
    async def test_unknown_qr(self, db_session):
        with pytest.raises(NotFoundError, match="Letter not found with this QR code"):
            await incoming_service.get_by_qr(db_session, "NOPE")


class TestIncomingWrite:

    @pytest.mark.asyncio
    async def test_update_moves_department(self, db_session, super_admin, records_dept, finance_dept):
        letter = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)

        updated = await incoming_service.update(
            db_session, letter.id, IncomingUpdate(to_department_id=finance_dept.id, filing="F-12")
        )
        assert updated.to_department_id == finance_dept.id
        assert updated.department.code == "FIN"
        assert updated.filing == "F-12"
        assert updated.subject == "Budget circular"

    @pytest.mark.asyncio
    async def test_update_replaces_image(self, db_session, super_admin, records_dept, jpeg_bytes):
        with patch.object(file_service, "validate_mime_type", return_value="image/jpeg"):
            letter = await incoming_service.create(
                db_session,
                incoming_payload(records_dept),
                creator=super_admin,
                image=ImageUpload(filename="first.jpg", content=jpeg_bytes),
            )
            first_image = letter.image
            await incoming_service.update(
                db_session,
                letter.id,
                IncomingUpdate(subject="Revised circular"),
                image=ImageUpload(filename="second.png", content=jpeg_bytes),
            )

        assert letter.image != first_image
        assert letter.image.endswith(".png")
        with pytest.raises(NotFoundError):
            file_service.resolve(first_image)

    @pytest.mark.asyncio
    async def test_delete_removes_notifications(self, db_session, super_admin, rd_user, records_dept):
        letter = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)
        assert await _notifications_for(db_session, letter)

        await incoming_service.delete(db_session, letter.id)

        assert await _notifications_for(db_session, letter) == []
        with pytest.raises(NotFoundError, match="Record not found"):
            await incoming_service.delete(db_session, letter.id)


class TestIncomingStatus:

    @pytest.mark.asyncio
    async def test_status_change_notifies_all_but_actor(
        self, db_session, super_admin, rd_user, records_dept
    ):
        letter = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)
        before = len(await _notifications_for(db_session, letter))

        await incoming_service.update_status(
            db_session, letter.id, IncomingStatus.TRANSFERRED, actor=records_dept.user
        )

        notifications = await _notifications_for(db_session, letter)
        fresh = [n for n in notifications if n.message.startswith("Status updated")]
        assert len(notifications) == before + 2
        assert {n.user_id for n in fresh} == {super_admin.id, rd_user.id}
        assert fresh[0].message == "Status updated to TRANSFERRED: Budget circular for Records Office (QR: IN-0001)"

    @pytest.mark.asyncio
    async def test_department_wording(self, db_session, super_admin, records_dept):
        letter = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)
        await incoming_service.update_status(db_session, letter.id, IncomingStatus.ARCHIVED, actor=super_admin)

        messages = [n.message for n in await _notifications_for(db_session, letter)]
        assert "Letter has been archived: Budget circular (QR: IN-0001)" in messages

    @pytest.mark.asyncio
    async def test_collected_date_stamped_once(self, db_session, super_admin, records_dept):
        letter = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)

        await incoming_service.update_status(db_session, letter.id, IncomingStatus.COLLECTED, actor=super_admin)
        first_stamp = letter.collected_date
        assert first_stamp is not None

        await incoming_service.update_status(db_session, letter.id, IncomingStatus.ARCHIVED, actor=super_admin)
        await incoming_service.update_status(db_session, letter.id, IncomingStatus.COLLECTED, actor=super_admin)
        assert letter.collected_date == first_stamp

    @pytest.mark.asyncio
    async def test_qr_update_same_status_is_noop(self, db_session, super_admin, rd_user, records_dept):
        letter = await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)
        before = len(await _notifications_for(db_session, letter))

        same, changed = await incoming_service.update_status_by_qr(
            db_session, "IN-0001", IncomingStatus.RECEIVED, actor=super_admin
        )
        assert changed is False
        assert same.id == letter.id
        assert len(await _notifications_for(db_session, letter)) == before

        moved, changed = await incoming_service.update_status_by_qr(
            db_session, "IN-0001", IncomingStatus.TRANSFERRED, actor=super_admin
        )
        assert changed is True
        assert moved.status == "TRANSFERRED"
        assert len(await _notifications_for(db_session, letter)) > before

    @pytest.mark.asyncio
    async def test_qr_update_unknown(self, db_session, super_admin):
        with pytest.raises(NotFoundError, match="Incoming letter not found with this QR code"):
            await incoming_service.update_status_by_qr(
                db_session, "NOPE", IncomingStatus.COLLECTED, actor=super_admin
            )
