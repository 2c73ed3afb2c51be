import os
import shlex
import shutil
import logging

from aspendev.errors import AspendevError
from aspendev.utils import simple_command, call_command, exec_command
from aspendev.config.defaults import SSH_AGENT_SOCKET

logger = logging.getLogger(__name__)


class DockerError(AspendevError):

    def __init__(self, command, message, exit_code=None):
        super().__init__(message, exit_code=exit_code)
        self.command = command


class DockerNotFoundError(DockerError):

    exit_code = 127

    def __init__(self, docker):
        super().__init__(
            None, f"Container runtime {docker!r} not found in PATH"
        )


def build_image_args(options, settings, docker='docker'):
    return [
        docker, 'build',
        '--platform', options.platform,
        '-t', options.image_ref,
        '-f', str(settings.dockerfile_path()),
        str(settings.build_context()),
    ]

def ssh_agent_args(host, environ=None):
    if environ is None:
        environ = os.environ

    # Only Docker Desktop on macOS forwards the agent socket
    if not environ.get('SSH_AUTH_SOCK') or not host.is_darwin:
        return []

    return [
        '-v', f"{SSH_AGENT_SOCKET}:{SSH_AGENT_SOCKET}",
        '-e', f"SSH_AUTH_SOCK={SSH_AGENT_SOCKET}",
    ]

def run_container_args(options, settings, host, workspace, environ=None,
                       docker='docker'):
    container = settings.data['container']

    args = [
        docker, 'run', '-it', '--rm',
        '--name', options.container_name,
        '--platform', options.platform,
    ]
    if container['privileged']:
        args.append('--privileged')
    args.extend(f"--cap-add={cap}" for cap in container['cap_add'])
    for opt in container['security_opt']:
        args.extend(['--security-opt', opt])
    if container['network']:
        args.append(f"--net={container['network']}")
    args.extend(['-v', f"{workspace}:{container['mount_target']}"])
    args.extend(options.cpu_args())
    args.extend(ssh_agent_args(host, environ))
    args.append(options.image_ref)

    return args

def find_container_args(name, docker='docker'):
    # Anchored, since the name filter otherwise matches substrings
    return [docker, 'ps', '-q', '-f', f"name=^{name}$"]

def exec_shell_args(name, shell, docker='docker'):
    return [docker, 'exec', '-it', name, shell]


class DockerExecutor(object):

    def __init__(self, docker='docker', environ=None):
        self.docker = docker
        self.environ = os.environ if environ is None else environ
        self._checked = False

    def __repr__(self):
        return f"<{self.__class__.__name__} docker={self.docker!r}>"

    def check_available(self):
        if not self._checked:
            if shutil.which(self.docker) is None:
                raise DockerNotFoundError(self.docker)
            self._checked = True
        return self

    def build_image(self, options, settings, host):
        self.check_available()
        docker_cmd = build_image_args(options, settings, docker=self.docker)

        print('Building image:', flush=True)
        print(f"  Host architecture : {host.arch}")
        print(f"  Target platform   : {options.platform}")
        print(f"  Dockerfile        : {settings.get('image', 'dockerfile')}")
        print(f"  Tag               : {options.image_ref}")
        print(flush=True)

        logger.debug(f"Executing: {shlex.join(docker_cmd)}")
        returncode = call_command(docker_cmd)
        if returncode:
            logger.error(f"Build failed with exit code {returncode}")
            return returncode

        print()
        print(
            f"Successfully built {options.image_ref} for {options.platform}",
            flush=True,
        )
        return 0

    def find_running_container(self, name):
        self.check_available()
        docker_cmd = find_container_args(name, docker=self.docker)
        proc = simple_command(docker_cmd, write_output=False)
        if proc.returncode:
            errmsg = proc.stderr.strip() or 'Error listing containers'
            raise DockerError(docker_cmd, errmsg, exit_code=proc.returncode)

        ids = proc.stdout.split()
        if not ids:
            logger.debug(f"No running container named {name!r}")
            return None
        return ids[0]

    def attach(self, name, shell):
        self.check_available()
        docker_cmd = exec_shell_args(name, shell, docker=self.docker)
        logger.debug(f"Executing: {shlex.join(docker_cmd)}")
        return call_command(docker_cmd)

    def run_container(self, options, settings, host, workspace):
        self.check_available()
        docker_cmd = run_container_args(
            options, settings, host, workspace,
            environ=self.environ, docker=self.docker,
        )

        if options.verbose:
            print()
            print('Full docker command:')
            print(shlex.join(docker_cmd))
            print(flush=True)

        try:
            exec_command(docker_cmd)
        except FileNotFoundError:
            raise DockerNotFoundError(self.docker) from None
        except OSError as e:
            raise DockerError(docker_cmd, str(e)) from None
