"""Unit tests for taskops.engine.errors — Error hierarchy & serialization."""

import json
import pytest

from taskops.engine.errors import (
    TaskOpsAuthError,
    TaskOpsConfigError,
    TaskOpsError,
    TaskOpsHierarchyError,
    TaskOpsNotFoundError,
    TaskOpsSecurityError,
    TaskOpsStoreError,
    TaskOpsValidationError,
)


class TestTaskOpsError:
    """Base error class tests."""

    def test_basic_creation(self):
        err = TaskOpsError("something broke")
        assert err.message == "something broke"
        assert str(err) == "something broke"
        assert err.error_type == "TaskOpsError"
        assert err.status_code == 500
        assert err.execution_id is None
        assert err.details is None

    def test_to_dict(self):
        err = TaskOpsError("fail", execution_id="exec_1", function_name="sync-task-status")
        d = err.to_dict()
        assert d["error_type"] == "TaskOpsError"
        assert d["message"] == "fail"
        assert d["status_code"] == 500
        assert d["execution_id"] == "exec_1"
        assert d["function_name"] == "sync-task-status"
        assert "timestamp" in d

    def test_to_json(self):
        parsed = json.loads(TaskOpsError("fail").to_json())
        assert parsed["error_type"] == "TaskOpsError"
        assert parsed["message"] == "fail"

    def test_to_response_without_details(self):
        assert TaskOpsError("fail").to_response() == {"error": "fail"}

    def test_to_response_with_details(self):
        err = TaskOpsError("fail", details="connection reset")
        assert err.to_response() == {"error": "fail", "details": "connection reset"}

    def test_repr(self):
        r = repr(TaskOpsError("fail", function_name="bulk-task-operations", execution_id="exec_1"))
        assert "TaskOpsError(500)" in r
        assert "bulk-task-operations" in r
        assert "exec_1" in r

    def test_extra_context_is_stringified(self):
        d = TaskOpsError("fail", attempt=3).to_dict()
        assert d["context"] == {"attempt": "3"}


class TestStatusCodes:
    @pytest.mark.parametrize("cls, code", [
        (TaskOpsValidationError, 400),
        (TaskOpsAuthError, 401),
        (TaskOpsSecurityError, 403),
        (TaskOpsNotFoundError, 404),
        (TaskOpsHierarchyError, 409),
        (TaskOpsStoreError, 500),
        (TaskOpsConfigError, 500),
    ])
    def test_status_code(self, cls, code):
        err = cls("x")
        assert err.status_code == code
        assert isinstance(err, TaskOpsError)


class TestSubclasses:
    def test_validation_errors_in_dict(self):
        err = TaskOpsValidationError(
            "Missing required fields",
            validation_errors=[{"loc": ("task_id",), "msg": "Field required"}],
        )
        assert err.to_dict()["validation_errors"][0]["msg"] == "Field required"
        assert err.to_response() == {"error": "Missing required fields"}

    def test_security_error_fields(self):
        err = TaskOpsSecurityError(
            "Unauthorized: SuperAdmin role required",
            user_id="u1",
            user_role="employee",
            required_role="superadmin",
        )
        d = err.to_dict()
        assert d["user_id"] == "u1"
        assert d["user_role"] == "employee"
        assert d["required_role"] == "superadmin"

    def test_not_found_fields(self):
        err = TaskOpsNotFoundError("Task not found", record_type="task", record_id="t1")
        assert err.record_type == "task"
        assert err.record_id == "t1"

    def test_hierarchy_chain(self):
        err = TaskOpsHierarchyError("Cycle", task_chain=["a", "b", "a"])
        assert err.to_dict()["task_chain"] == ["a", "b", "a"]

    def test_hierarchy_chain_default(self):
        assert TaskOpsHierarchyError("x").task_chain == []

    def test_store_error_details(self):
        err = TaskOpsStoreError(
            "Failed to update status", operation="bulk_update", details="deadlock detected",
        )
        assert err.operation == "bulk_update"
        assert err.to_response() == {"error": "Failed to update status", "details": "deadlock detected"}
