import subprocess

import pytest

from aspendev.config.defaults import BUILD_CONTEXT
from aspendev.config.options import Options
from aspendev.config.settings import load_settings
from aspendev.runtimes import docker as docker_mod
from aspendev.runtimes.docker import (
    DockerError, DockerNotFoundError, DockerExecutor,
    build_image_args, run_container_args, ssh_agent_args,
    find_container_args, exec_shell_args,
)

SOCK = '/run/host-services/ssh-auth.sock'


@pytest.fixture
def options():
    return Options(
        image='aspen-rs-image', tag='latest', platform='linux/amd64',
        container_name='aspen-rs-dev', cpus='4', cpuset='0-3', auto_cpus=True,
    )

@pytest.fixture
def docker_present(monkeypatch):
    monkeypatch.setattr(docker_mod.shutil, 'which', lambda name: f"/usr/bin/{name}")


def test_build_image_args(options, settings):
    context = settings.build_context()
    assert context == BUILD_CONTEXT

    assert build_image_args(options, settings) == [
        'docker', 'build',
        '--platform', 'linux/amd64',
        '-t', 'aspen-rs-image:latest',
        '-f', str(context / 'Dockerfile'),
        str(context),
    ]

def test_run_container_args(options, settings, host, tmp_path):
    workspace = tmp_path / 'home'
    args = run_container_args(options, settings, host, workspace, environ={})

    assert args == [
        'docker', 'run', '-it', '--rm',
        '--name', 'aspen-rs-dev',
        '--platform', 'linux/amd64',
        '--privileged',
        '--cap-add=SYS_PTRACE',
        '--security-opt', 'seccomp=unconfined',
        '--net=host',
        '-v', f"{workspace}:/home",
        '--cpus=4',
        '--cpuset-cpus=0-3',
        'aspen-rs-image:latest',
    ]

def test_run_container_args_without_cpu_flags(options, settings, host, tmp_path):
    options.cpus = None
    options.cpuset = None
    args = run_container_args(options, settings, host, tmp_path, environ={})

    assert not any(a.startswith('--cpu') for a in args)
    assert args[-1] == 'aspen-rs-image:latest'

def test_ssh_agent_forwarded_on_darwin(options, settings, make_host, tmp_path):
    host = make_host(arch='arm64', system='Darwin')
    environ = {'SSH_AUTH_SOCK': '/private/tmp/agent.sock'}

    assert ssh_agent_args(host, environ) == [
        '-v', f"{SOCK}:{SOCK}", '-e', f"SSH_AUTH_SOCK={SOCK}",
    ]
    args = run_container_args(options, settings, host, tmp_path, environ=environ)
    assert args[-5:] == [
        '-v', f"{SOCK}:{SOCK}", '-e', f"SSH_AUTH_SOCK={SOCK}",
        'aspen-rs-image:latest',
    ]

@pytest.mark.parametrize('system, environ', [
    ('Linux', {'SSH_AUTH_SOCK': '/tmp/agent.sock'}),
    ('Darwin', {}),
    ('Darwin', {'SSH_AUTH_SOCK': ''}),
])
def test_ssh_agent_not_forwarded(make_host, system, environ):
    assert ssh_agent_args(make_host(system=system), environ) == []

def test_find_and_exec_args():
    assert find_container_args('dev') == ['docker', 'ps', '-q', '-f', 'name=^dev$']
    assert exec_shell_args('dev', '/bin/bash') == [
        'docker', 'exec', '-it', 'dev', '/bin/bash',
    ]

def test_missing_docker(monkeypatch):
    monkeypatch.setattr(docker_mod.shutil, 'which', lambda name: None)

    with pytest.raises(DockerNotFoundError) as exc:
        DockerExecutor().find_running_container('aspen-rs-dev')
    assert exc.value.exit_code == 127

def test_find_running_container(monkeypatch, docker_present):
    calls = []

    def fake_command(args, write_output=True, **kwargs):
        calls.append(args)
        return subprocess.CompletedProcess(args, 0, stdout='3f2a9c1d\n', stderr='')

    monkeypatch.setattr(docker_mod, 'simple_command', fake_command)

    assert DockerExecutor().find_running_container('aspen-rs-dev') == '3f2a9c1d'
    assert calls == [['docker', 'ps', '-q', '-f', 'name=^aspen-rs-dev$']]

def test_find_running_container_none(monkeypatch, docker_present):
    monkeypatch.setattr(
        docker_mod, 'simple_command',
        lambda args, **kw: subprocess.CompletedProcess(args, 0, stdout='', stderr=''),
    )

    assert DockerExecutor().find_running_container('aspen-rs-dev') is None

def test_find_running_container_error(monkeypatch, docker_present):
    monkeypatch.setattr(
        docker_mod, 'simple_command',
        lambda args, **kw: subprocess.CompletedProcess(
            args, 1, stdout='', stderr='Cannot connect to the Docker daemon\n'
        ),
    )

    with pytest.raises(DockerError) as exc:
        DockerExecutor().find_running_container('aspen-rs-dev')
    assert exc.value.exit_code == 1
    assert 'Cannot connect' in str(exc.value)

def test_build_image_success(monkeypatch, docker_present, options, settings,
                             host, capsys):
    calls = []
    monkeypatch.setattr(
        docker_mod, 'call_command', lambda args: calls.append(args) or 0
    )

    assert DockerExecutor().build_image(options, settings, host) == 0
    assert calls == [build_image_args(options, settings)]

    out = capsys.readouterr().out
    assert 'Host architecture : x86_64' in out
    assert 'Target platform   : linux/amd64' in out
    assert 'Tag               : aspen-rs-image:latest' in out
    assert 'Successfully built aspen-rs-image:latest for linux/amd64' in out

def test_build_image_failure_propagates(monkeypatch, docker_present, options,
                                        settings, host, capsys):
    monkeypatch.setattr(docker_mod, 'call_command', lambda args: 17)

    assert DockerExecutor().build_image(options, settings, host) == 17
    assert 'Successfully built' not in capsys.readouterr().out

def test_attach(monkeypatch, docker_present):
    calls = []
    monkeypatch.setattr(
        docker_mod, 'call_command', lambda args: calls.append(args) or 130
    )

    assert DockerExecutor().attach('aspen-rs-dev', '/bin/bash') == 130
    assert calls == [['docker', 'exec', '-it', 'aspen-rs-dev', '/bin/bash']]

def test_run_container_execs(monkeypatch, docker_present, options, settings,
                             host, tmp_path, capsys):
    calls = []
    monkeypatch.setattr(docker_mod, 'exec_command', calls.append)

    DockerExecutor(environ={}).run_container(options, settings, host, tmp_path)

    assert calls == [
        run_container_args(options, settings, host, tmp_path, environ={})
    ]
    assert 'Full docker command' not in capsys.readouterr().out

def test_run_container_verbose_prints_command(monkeypatch, docker_present,
                                              options, settings, host,
                                              tmp_path, capsys):
    monkeypatch.setattr(docker_mod, 'exec_command', lambda args: None)
    options.verbose = True

    DockerExecutor(environ={}).run_container(options, settings, host, tmp_path)

    out = capsys.readouterr().out
    assert 'Full docker command:' in out
    assert 'docker run -it --rm --name aspen-rs-dev' in out
    assert '--cpuset-cpus=0-3 aspen-rs-image:latest' in out

def test_run_container_exec_failure(monkeypatch, docker_present, options,
                                    settings, host, tmp_path):
    def failing_exec(args):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(docker_mod, 'exec_command', failing_exec)

    with pytest.raises(DockerNotFoundError):
        DockerExecutor(environ={}).run_container(options, settings, host, tmp_path)

def test_run_container_args_follow_settings(options, host, tmp_path):
    path = tmp_path / 'aspendev.toml'
    path.write_text('''
[container]
privileged = false
network = ""
cap_add = []
security_opt = []
mount_target = "/work"
''')
    settings = load_settings(path=path, base_path=tmp_path)

    args = run_container_args(options, settings, host, tmp_path, environ={})

    assert args == [
        'docker', 'run', '-it', '--rm',
        '--name', 'aspen-rs-dev',
        '--platform', 'linux/amd64',
        '-v', f"{tmp_path}:/work",
        '--cpus=4',
        '--cpuset-cpus=0-3',
        'aspen-rs-image:latest',
    ]
