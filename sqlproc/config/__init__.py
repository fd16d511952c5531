"""
Expose the environment configuration through ``get_config``.

The first call loads environment variables (including ``.env``) and
caches a ``Config`` instance. Example:

    from sqlproc.config import get_config
    print(get_config().DATABASE_COMMAND_TIMEOUT)
"""

from .env import Config, get_config, load_config  # noqa: F401
