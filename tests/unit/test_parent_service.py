# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for ParentService."""

import pytest

from src.domains.parent import (
    ParentEmailExistsError,
    ParentNotFoundError,
    ParentService,
    StudentNotFoundError,
)
from src.infrastructure.database.models import Parent, Student
from src.models.parent import (
    ParentCreateRequest,
    ParentUpdateRequest,
    StudentCreateRequest,
    StudentUpdateRequest,
)


def assign_id(new_id: str):
    """refresh() side effect that fills in the generated primary key."""

    async def _refresh(obj):
        if getattr(obj, "id", None) is None:
            obj.id = new_id

    return _refresh


class TestParentCrud:
    """Tests for family accounts."""

    @pytest.mark.asyncio
    async def test_create_parent(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)
        mock_db.refresh.side_effect = assign_id("new-parent")

        response = await ParentService(mock_db).create_parent(
            ParentCreateRequest(name="Pat", email="Pat@Example.com", billing_mode="prepaid")
        )

        parent = mock_db.add.call_args[0][0]
        assert isinstance(parent, Parent)
        assert parent.email == "pat@example.com"
        assert response.id == "new-parent"
        assert response.billing_mode == "prepaid"
        assert response.student_count == 0
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_duplicate_email(self, mock_db, make_result, parent):
        mock_db.execute.return_value = make_result(one=parent)

        with pytest.raises(ParentEmailExistsError):
            await ParentService(mock_db).create_parent(
                ParentCreateRequest(name="Other", email="pat@example.com")
            )

        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_parent_with_students(self, mock_db, make_result, parent, student):
        mock_db.execute.return_value = make_result(one=parent)

        response = await ParentService(mock_db).get_parent(parent.id)

        assert response.student_count == 1
        assert response.students[0].name == "Sam Student"

    @pytest.mark.asyncio
    async def test_get_parent_not_found(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(ParentNotFoundError):
            await ParentService(mock_db).get_parent("missing")

    @pytest.mark.asyncio
    async def test_list_parents(self, mock_db, make_result, parent):
        mock_db.execute.side_effect = [make_result(scalar=1), make_result(items=[parent])]

        response = await ParentService(mock_db).list_parents(search="pat")

        assert response.total == 1
        assert response.items[0].email == "pat@example.com"

    @pytest.mark.asyncio
    async def test_update_parent(self, mock_db, make_result, parent):
        mock_db.execute.side_effect = [make_result(one=parent), make_result(one=None)]

        response = await ParentService(mock_db).update_parent(
            parent.id, ParentUpdateRequest(email="NEW@example.com", phone="555-0199")
        )

        assert response.email == "new@example.com"
        assert response.phone == "555-0199"
        assert response.name == "Pat Parent"

    @pytest.mark.asyncio
    async def test_update_email_taken(self, mock_db, make_result, parent, tutor):
        mock_db.execute.side_effect = [make_result(one=parent), make_result(one=tutor)]

        with pytest.raises(ParentEmailExistsError):
            await ParentService(mock_db).update_parent(
                parent.id, ParentUpdateRequest(email="tutor@example.com")
            )

        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_keeping_own_email(self, mock_db, make_result, parent):
        mock_db.execute.side_effect = [make_result(one=parent), make_result(one=parent)]

        response = await ParentService(mock_db).update_parent(
            parent.id, ParentUpdateRequest(email="pat@example.com")
        )

        assert response.email == "pat@example.com"

    @pytest.mark.asyncio
    async def test_delete_parent(self, mock_db, make_result, parent):
        mock_db.execute.return_value = make_result(one=parent)

        await ParentService(mock_db).delete_parent(parent.id)

        mock_db.delete.assert_awaited_once_with(parent)
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_parent_not_found(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(ParentNotFoundError):
            await ParentService(mock_db).delete_parent("missing")

        mock_db.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prepaid_parents(self, mock_db, make_result, parent):
        parent.billing_mode = "prepaid"
        mock_db.execute.return_value = make_result(items=[parent])

        families = await ParentService(mock_db).get_prepaid_parents()

        assert [f.billing_mode for f in families] == ["prepaid"]


class TestStudentCrud:
    """Tests for students within a family."""

    @pytest.mark.asyncio
    async def test_create_student(self, mock_db, make_result, parent):
        mock_db.execute.return_value = make_result(one=parent)
        mock_db.refresh.side_effect = assign_id("new-student")

        response = await ParentService(mock_db).create_student(
            StudentCreateRequest(parent_id=parent.id, name="Alex", subjects=["math"])
        )

        student = mock_db.add.call_args[0][0]
        assert isinstance(student, Student)
        assert response.id == "new-student"
        assert response.subjects == ["math"]

    @pytest.mark.asyncio
    async def test_create_student_unknown_family(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(ParentNotFoundError):
            await ParentService(mock_db).create_student(
                StudentCreateRequest(parent_id="missing", name="Alex")
            )

    @pytest.mark.asyncio
    async def test_get_student_not_found(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(StudentNotFoundError):
            await ParentService(mock_db).get_student("missing")

    @pytest.mark.asyncio
    async def test_list_students(self, mock_db, make_result, student):
        mock_db.execute.return_value = make_result(items=[student])

        students = await ParentService(mock_db).list_students(parent_id=student.parent_id)

        assert [s.id for s in students] == [student.id]

    @pytest.mark.asyncio
    async def test_move_student_to_unknown_family(self, mock_db, make_result, student):
        mock_db.execute.side_effect = [make_result(one=student), make_result(one=None)]

        with pytest.raises(ParentNotFoundError):
            await ParentService(mock_db).update_student(
                student.id, StudentUpdateRequest(parent_id="missing")
            )

    @pytest.mark.asyncio
    async def test_update_student(self, mock_db, make_result, student):
        mock_db.execute.return_value = make_result(one=student)

        response = await ParentService(mock_db).update_student(
            student.id, StudentUpdateRequest(age=11, subjects=["piano", "math"])
        )

        assert response.age == 11
        assert response.subjects == ["piano", "math"]

    @pytest.mark.asyncio
    async def test_delete_student(self, mock_db, make_result, student):
        mock_db.execute.return_value = make_result(one=student)

        await ParentService(mock_db).delete_student(student.id)

        mock_db.delete.assert_awaited_once_with(student)
