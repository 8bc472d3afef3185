# AGPL-3.0 License

from os.path import abspath, dirname, join

from dynaconf import Dynaconf

current_dir = dirname(abspath(__file__))
global_settings = Dynaconf(
    envvar_prefix="BRANCH_GUARD",
    merge_enabled=True,
    settings_files=[join(current_dir, f) for f in [
        "settings/configuration.toml",
    ]]
)


def get_settings():
    """
    Return the process-wide settings object.

    Values can be overridden through environment variables prefixed with
    ``BRANCH_GUARD_`` (nested keys use a double underscore, e.g.
    ``BRANCH_GUARD_GITHUB__WEBHOOK_SECRET``).
    """
    return global_settings
