from pathlib import Path

SETTINGS_FILENAME = 'aspendev.toml'

# Shipped with the package, so builds work from any directory
BUILD_CONTEXT = Path(__file__).resolve().parent.parent / 'container'

ARM_ARCHS = ('arm64', 'aarch64')

PLATFORMS = {
    'amd64': 'linux/amd64',
    'arm64': 'linux/arm64',
}

# Docker Desktop exposes the host's agent at this path inside the VM
SSH_AGENT_SOCKET = '/run/host-services/ssh-auth.sock'

def default_base_paths(cwd=None, home=None):
    if cwd is None:
        cwd = Path.cwd()
    if home is None:
        home = Path.home()

    return [
        Path(cwd) / '.aspendev',
        Path(home) / '.aspendev',
        Path('/etc/aspendev'),
    ]

def default_settings():
    return {
        'image': {
            'name': 'aspen-rs-image',
            'dockerfile': 'Dockerfile',
            'context': str(BUILD_CONTEXT),
        },
        'tags': {
            'amd64': 'latest',
            'arm64': 'arm64',
        },
        'container': {
            'name': 'aspen-rs-dev',
            'shell': '/bin/bash',
            'workspace': 'home',
            'mount_target': '/home',
            'privileged': True,
            'network': 'host',
            'cap_add': ['SYS_PTRACE'],
            'security_opt': ['seccomp=unconfined'],
        },
    }
