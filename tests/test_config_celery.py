"""Tests for Celery configuration."""
import pytest

from app.config.celery import broker_url, celery_app, result_backend


@pytest.mark.unit
class TestCeleryConfiguration:
    """Tests for Celery configuration."""

    def test_celery_app_name(self):
        assert celery_app.main == "rcm_engine"

    def test_celery_app_includes_tasks(self):
        assert "app.services.queue.tasks" in celery_app.conf.include

    def test_broker_from_environment(self):
        # conftest points the broker at the in-memory transport
        assert broker_url == "memory://"
        assert result_backend == "cache+memory://"

    def test_json_only(self):
        assert celery_app.conf.task_serializer == "json"
        assert celery_app.conf.result_serializer == "json"
        assert celery_app.conf.accept_content == ["json"]

    def test_time_limits(self):
        assert celery_app.conf.task_time_limit == 30 * 60
        assert celery_app.conf.task_soft_time_limit == 25 * 60

    def test_worker_settings(self):
        assert celery_app.conf.worker_prefetch_multiplier == 1
        assert celery_app.conf.worker_max_tasks_per_child == 1000

    def test_remittance_task_registered(self):
        import app.services.queue.tasks  # noqa: F401

        assert "process_remittance_file" in celery_app.tasks
