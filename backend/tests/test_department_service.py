"""
MailTrack Backend: Department & Courier Service Tests
=======================================================

What:  Department CRUD with its login account, and courier CRUD.
How:   Services run against the in-memory database from conftest.
"""

import uuid

import pytest
from sqlalchemy import select

from mailtrack.exceptions import DeletionBlockedError, DuplicateError, NotFoundError
from mailtrack.models.enums import ActiveStatus, Role
from mailtrack.models.letter import OutgoingLetter
from mailtrack.models.user import Department, User
from mailtrack.schemas.department import CourierCreate, CourierUpdate, DepartmentCreate, DepartmentUpdate
from mailtrack.services.auth_service import auth_service, verify_password
from mailtrack.services.courier_service import courier_service
from mailtrack.services.department_service import department_service
from mailtrack.services.incoming_service import incoming_service
from mailtrack.services.outgoing_service import outgoing_service

from conftest import TEST_PASSWORD, incoming_payload, outgoing_payload


def _department_data(**overrides) -> DepartmentCreate:
    fields = {
        "name": "Legal Cell",
        "code": "LEG",
        "head": "Meera Iyer",
        "contact": "+1 555 0199",
        "username": "legal",
        "password": TEST_PASSWORD,
    }
    fields.update(overrides)
    return DepartmentCreate(**fields)


class TestDepartmentService:

    @pytest.mark.asyncio
    async def test_create_with_account(self, db_session):
        created = await department_service.create_with_account(db_session, _department_data())

        assert created.success is True
        assert created.department.code == "LEG"
        assert created.department.username == "legal"
        assert created.department.status == "active"
        assert created.user.role == Role.OTHER_DEPARTMENT.value
        assert created.user.department.code == "LEG"

        account = await auth_service.get_user_by_username(db_session, "legal")
        assert account.id == created.department.user_id
        assert verify_password(TEST_PASSWORD, account.password_hash)

    @pytest.mark.asyncio
    async def test_duplicate_code(self, db_session, records_dept):
        with pytest.raises(DuplicateError, match="Department code already exists"):
            await department_service.create_with_account(
                db_session, _department_data(code="REC", username="other")
            )

    @pytest.mark.asyncio
    async def test_duplicate_username(self, db_session, records_dept):
        with pytest.raises(DuplicateError, match="Username already exists"):
            await department_service.create_with_account(db_session, _department_data(username="records"))

    @pytest.mark.asyncio
    async def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError, match="Department not found"):
            await department_service.get(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_update_fields_and_account(self, db_session, records_dept):
        updated = await department_service.update(
            db_session,
            records_dept.id,
            DepartmentUpdate(name="Central Records", username="central_records", password="NewPass1"),
        )
        assert updated.name == "Central Records"
        assert updated.code == "REC"
        assert updated.user.username == "central_records"
        assert verify_password("NewPass1", updated.user.password_hash)

    @pytest.mark.asyncio
    async def test_update_to_taken_code(self, db_session, records_dept, finance_dept):
        with pytest.raises(DuplicateError):
            await department_service.update(db_session, records_dept.id, DepartmentUpdate(code="FIN"))

    def test_update_requires_a_field(self):
        with pytest.raises(ValueError, match="At least one field"):
            DepartmentUpdate()

    @pytest.mark.asyncio
    async def test_set_status(self, db_session, records_dept):
        department = await department_service.set_status(db_session, records_dept.id, ActiveStatus.INACTIVE)
        assert department.status == "inactive"

    @pytest.mark.asyncio
    async def test_delete_removes_account(self, db_session, records_dept):
        account_id = records_dept.user_id
        await department_service.delete(db_session, records_dept.id)
        await db_session.commit()

        assert (await db_session.execute(select(Department).where(Department.id == records_dept.id))).first() is None
        assert (await db_session.execute(select(User.id).where(User.id == account_id))).first() is None

    @pytest.mark.asyncio
    async def test_delete_blocked_by_incoming(self, db_session, records_dept, super_admin):
        await incoming_service.create(db_session, incoming_payload(records_dept), creator=super_admin)

        with pytest.raises(DeletionBlockedError) as excinfo:
            await department_service.delete(db_session, records_dept.id)
        assert excinfo.value.message == (
            "Cannot delete department. It has 1 incoming letter(s) associated with it. "
            "Please transfer or delete these letters first."
        )

    @pytest.mark.asyncio
    async def test_delete_blocked_by_outgoing(self, db_session, records_dept, super_admin):
        await outgoing_service.create(db_session, outgoing_payload(records_dept), creator=super_admin)
        await outgoing_service.create(
            db_session, outgoing_payload(records_dept, qr_code="OUT-0002"), creator=super_admin
        )

        with pytest.raises(DeletionBlockedError, match="It has 2 outgoing letter"):
            await department_service.delete(db_session, records_dept.id)


class TestCourierService:

    @pytest.mark.asyncio
    async def test_create_and_list(self, db_session, courier):
        assert courier.code == "BD"
        assert courier.status == "active"
        couriers = await courier_service.list(db_session)
        assert [c.id for c in couriers] == [courier.id]

    @pytest.mark.asyncio
    async def test_duplicate_code(self, db_session, courier):
        with pytest.raises(DuplicateError, match="Service code already exists"):
            await courier_service.create(
                db_session,
                CourierCreate(
                    service_name="Blue Dart Express",
                    code="BD",
                    contact_person="Ravi Menon",
                    email="express@bluedart.in",
                    phone="+91 22 5555 0111",
                    address="Andheri East, Mumbai",
                ),
            )

    @pytest.mark.asyncio
    async def test_update_to_taken_code(self, db_session, courier):
        other = await courier_service.create(
            db_session,
            CourierCreate(
                service_name="India Post",
                code="IP",
                contact_person="Desk Officer",
                email="desk@indiapost.in",
                phone="+91 11 5555 0100",
                address="Dak Bhawan, New Delhi",
            ),
        )
        with pytest.raises(DuplicateError):
            await courier_service.update(db_session, other.id, CourierUpdate(code="BD"))

    @pytest.mark.asyncio
    async def test_partial_update(self, db_session, courier):
        updated = await courier_service.update(
            db_session, courier.id, CourierUpdate(phone="+91 22 5555 0199", status=ActiveStatus.INACTIVE)
        )
        assert updated.phone == "+91 22 5555 0199"
        assert updated.status == "inactive"
        assert updated.service_name == "Blue Dart"

    @pytest.mark.asyncio
    async def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError, match="Courier service not found"):
            await courier_service.get(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_delete_detaches_letters(self, db_session, courier, records_dept, super_admin):
        letter = await outgoing_service.create(
            db_session,
            outgoing_payload(records_dept, courier_service_id=courier.id),
            creator=super_admin,
        )
        assert letter.courier_service_id == courier.id

        await courier_service.delete(db_session, courier.id)
        await db_session.commit()

        courier_id = (
            await db_session.execute(
                select(OutgoingLetter.courier_service_id).where(OutgoingLetter.id == letter.id)
            )
        ).scalar_one()
        assert courier_id is None
        with pytest.raises(NotFoundError):
            await courier_service.get(db_session, courier.id)
