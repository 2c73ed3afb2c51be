import os
import copy
import logging
import toml
from pathlib import Path

from aspendev.errors import SettingsError
from .defaults import SETTINGS_FILENAME, default_base_paths, default_settings

SETTINGS_ENV = 'ASPENDEV_CONFIG'

logger = logging.getLogger(__name__)


class Settings(object):

    def __init__(self, path, data, base_path=None):
        self.path = path
        self.data = data
        # Workspace paths are taken from where the tool was invoked
        self.base_path = Path.cwd() if base_path is None else Path(base_path)
        # Build paths are taken from the settings file's directory
        self.config_base = Path(path).parent if path else self.base_path

    def __repr__(self):
        path = str(self.path) if self.path else None
        return f"<{self.__class__.__name__} path={path!r}>"

    def get(self, section, key):
        return self.data[section][key]

    def get_path(self, section, key, base=None):
        if base is None:
            base = self.base_path

        path = Path(self.data[section][key]).expanduser()
        if not path.is_absolute():
            path = (base / path).resolve()
        return path

    def tag_for(self, arch):
        return self.data['tags'][arch]

    def build_context(self):
        return self.get_path('image', 'context', base=self.config_base)

    def dockerfile_path(self):
        return self.build_context() / self.get('image', 'dockerfile')

    def check_build_context(self):
        context = self.build_context()
        if not context.is_dir():
            raise SettingsError(
                self.path or context, f"build context {context} not found"
            )
        dockerfile = self.dockerfile_path()
        if not dockerfile.is_file():
            raise SettingsError(
                self.path or dockerfile, f"Dockerfile {dockerfile} not found"
            )
        return context


_TYPE_NAMES = {
    str: 'a string',
    bool: 'a boolean',
    list: 'a list of strings',
}

def _check_type(name, default, value):
    # bool is an int subclass, so compare exact types
    expected = type(default)
    if type(value) is not expected:
        raise TypeError(
            f"Setting {name!r} must be {_TYPE_NAMES.get(expected, expected)}"
        )
    if expected is list and not all(isinstance(v, str) for v in value):
        raise TypeError(f"Setting {name!r} must be {_TYPE_NAMES[list]}")

def merge_settings(base, overrides, where=()):
    merged = copy.deepcopy(base)

    for key, value in overrides.items():
        name = '.'.join(where + (key,))
        if key not in merged:
            raise KeyError(f"Unknown setting {name!r}")
        if isinstance(merged[key], dict):
            if not isinstance(value, dict):
                raise TypeError(f"Setting {name!r} must be a table")
            merged[key] = merge_settings(merged[key], value, where + (key,))
        else:
            _check_type(name, merged[key], value)
            merged[key] = value

    return merged

def find_settings_file(dirs=None, environ=None):
    if environ is None:
        environ = os.environ

    # Explicit file must exist; searched ones are optional
    env_path = environ.get(SETTINGS_ENV)
    if env_path:
        path = Path(env_path).expanduser()
        if not path.exists():
            raise SettingsError(path, 'settings file not found')
        return path

    if dirs is None:
        dirs = default_base_paths()

    for dirp in dirs:
        path = Path(dirp) / SETTINGS_FILENAME
        if path.exists():
            return path

    return None

def load_settings(path=None, dirs=None, base_path=None, environ=None):
    if path is None:
        path = find_settings_file(dirs=dirs, environ=environ)

    data = default_settings()
    if path is None:
        logger.debug('No settings file found, using defaults')
        return Settings(None, data, base_path=base_path)

    try:
        overrides = toml.load(path)
    # TomlDecodeError and UnicodeDecodeError are both ValueErrors
    except (OSError, ValueError) as e:
        raise SettingsError(path, str(e)) from None

    try:
        data = merge_settings(data, overrides)
    except (KeyError, TypeError) as e:
        raise SettingsError(path, e.args[0]) from None

    logger.debug(f"Loaded settings from {path}")
    return Settings(path, data, base_path=base_path)
