import logging

import pytest

import aspendev
from aspendev.config.host import HostProfile
from aspendev.config.settings import load_settings


class FakeExecutor(object):

    def __init__(self, running=None, returncode=0):
        self.running = running or {}
        self.returncode = returncode
        self.calls = []

    def build_image(self, options, settings, host):
        self.calls.append(('build', options))
        return self.returncode

    def find_running_container(self, name):
        self.calls.append(('find', name))
        return self.running.get(name)

    def attach(self, name, shell):
        self.calls.append(('attach', name, shell))
        return self.returncode

    def run_container(self, options, settings, host, workspace):
        self.calls.append(('run', options, workspace))
        return self.returncode

    def actions(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def make_host():
    def factory(arch='x86_64', cpu_count=4, system='Linux'):
        return HostProfile(system, arch, cpu_count)
    return factory

@pytest.fixture
def host(make_host):
    return make_host()

@pytest.fixture
def settings(tmp_path):
    return load_settings(dirs=[], environ={}, base_path=tmp_path)

@pytest.fixture
def executor():
    return FakeExecutor()

@pytest.fixture
def patch_cli(monkeypatch, host, settings, executor):
    state = {'host': host, 'settings': settings, 'executor': executor}
    monkeypatch.setattr(aspendev, 'detect_host', lambda: state['host'])
    monkeypatch.setattr(aspendev, 'load_settings', lambda: state['settings'])
    monkeypatch.setattr(aspendev, 'DockerExecutor', lambda: state['executor'])
    return state

@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger('aspendev')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
