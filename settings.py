import importlib.util
import logging
import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

logger = logging.getLogger(__name__)


def _env(*names, default=None):
    for name in names:
        value = os.getenv(name)
        if value not in (None, ""):
            return value
    return default


def _env_bool(*names, default=True):
    value = _env(*names)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


ENV = _env("FETCH_MANIFEST_ENV", "FLASK_ENV", default="development")
HOST = _env("FETCH_MANIFEST_HOST", "HOST", default="0.0.0.0")
PORT = int(_env("FETCH_MANIFEST_PORT", "PORT", default="3000"))
CORS = _env_bool("FETCH_MANIFEST_CORS", default=True)
TIMEOUT = float(_env("FETCH_MANIFEST_TIMEOUT", default="10"))
LOG_LEVEL = _env("FETCH_MANIFEST_LOG_LEVEL", "LOG_LEVEL", default="INFO")


def settings_local_path():
    path = _env("FETCH_MANIFEST_SETTINGS", "SETTINGS", default="settings_local.py")
    if not path.endswith(".py"):
        path += ".py"
    if not os.path.isabs(path):
        path = os.path.join(BASE_DIR, path)
    return path


def load_local_settings(path=None, namespace=None):
    """Override UPPER_CASE settings from a local module, if it exists."""
    path = path or settings_local_path()
    namespace = globals() if namespace is None else namespace
    if not os.path.isfile(path):
        return {}
    module_spec = importlib.util.spec_from_file_location("settings_local", path)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    overrides = {k: getattr(module, k) for k in dir(module) if k.isupper()}
    namespace.update(overrides)
    logger.info("Using settings file %s", path)
    return overrides


load_local_settings()
