"""Application teardown and the gunicorn worker hooks that call it."""

import importlib.util
from pathlib import Path

import pytest

from hospital_meals.app import cleanup_application

GUNICORN_CONF = Path(__file__).resolve().parents[2] / 'gunicorn.conf.py'


@pytest.fixture
def gunicorn_conf():
    spec = importlib.util.spec_from_file_location('gunicorn_conf', GUNICORN_CONF)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestCleanupApplication:

    def test_closes_store_client(self, app, store, mocker):
        close = mocker.patch.object(store, 'close')
        cleanup_application(app)
        close.assert_called_once_with()

    def test_object_without_store_is_ignored(self, mocker):
        cleanup_application(mocker.MagicMock(extensions={}))
        cleanup_application(object())


class TestWorkerExitHook:

    def test_closes_the_worker_application(self, gunicorn_conf, app, store, mocker):
        close = mocker.patch.object(store, 'close')
        worker = mocker.MagicMock(wsgi=app, pid=4242)

        gunicorn_conf.worker_exit(mocker.MagicMock(), worker)

        close.assert_called_once_with()
        worker.log.info.assert_called_once()

    def test_worker_that_never_loaded_the_app(self, gunicorn_conf, mocker):
        worker = mocker.MagicMock(wsgi=None, pid=4242)
        gunicorn_conf.worker_exit(mocker.MagicMock(), worker)
        worker.log.info.assert_called_once()
