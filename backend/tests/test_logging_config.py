"""
Tests for app/core/logging_config.py - Request-scoped log context.
"""
import logging
import pytest


class TestContextLogger:

    def test_no_request_id_outside_requests(self, caplog):
        from app.core.logging_config import get_logger

        caplog.set_level(logging.INFO, logger="perftracker.test")
        get_logger("perftracker.test").info("idle")

        assert not hasattr(caplog.records[-1], "request_id")

    def test_explicit_extra_kept(self, caplog):
        from app.core.logging_config import get_logger

        caplog.set_level(logging.INFO, logger="perftracker.test")
        get_logger("perftracker.test").info("tagged", extra={"employee_id": "EMP00001"})

        assert caplog.records[-1].employee_id == "EMP00001"

    @pytest.mark.asyncio
    async def test_handler_logs_carry_request_id(self, admin_client, caplog):
        caplog.set_level(logging.INFO, logger="perftracker.employees")

        response = await admin_client.post("/api/v1/employees", json={
            "first_name": "Sita", "last_name": "Sharma", "email": "sita@example.com",
        })

        assert response.status_code == 201
        records = [r for r in caplog.records if r.name == "perftracker.employees"]
        assert records
        assert records[-1].request_id == response.headers["x-request-id"]
