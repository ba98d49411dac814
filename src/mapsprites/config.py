"""Configuration management for mapsprites.

Settings are loaded with Dynaconf from multiple locations in order of
increasing priority:

1. Global settings (/etc/mapsprites/)
2. User settings (~/.config/mapsprites/)
3. Current directory settings (./)
4. Environment variable specified file (MAPSPRITES_SETTINGS_FILE_FOR_DYNACONF)

Individual keys can be overridden with ``MAPSPRITES_<KEY>`` environment
variables. Keys used by the package, with their defaults:

output_dir : str
    Root of generated sprite sheets (``./output``).
cache_dir : str
    Root of the raster and descriptor cache (``./cache``).
base_url : str
    Public URL under which ``output_dir`` is served.
tile_size : int
    Pixel size of IIIF tiles (1024).
max_side : int
    Largest allowed sheet side in pixels (65500).
workers : int
    Concurrent downloads and tile writers (8).
timeout : float
    Seconds before a download is abandoned (60).
default_variants : str
    Variants built when none are given on the command line ("128").
"""
import os
import pathlib

from dynaconf import Dynaconf

USER_DIR = pathlib.Path("~/.config/mapsprites").expanduser()
GLOB_DIR = pathlib.Path("/etc/mapsprites/")
CURR_DIR = pathlib.Path("./").absolute()
settings_files = [
    GLOB_DIR / "settings.toml",
    GLOB_DIR / ".secrets.toml",
    USER_DIR / "settings.toml",
    USER_DIR / ".secrets.toml",
    CURR_DIR / "settings.toml",
    CURR_DIR / ".secrets.toml"
    ]
extra_file = os.getenv("MAPSPRITES_SETTINGS_FILE_FOR_DYNACONF")
if extra_file:
    settings_files.append(pathlib.Path(extra_file).absolute())

settings = Dynaconf(
    merge_enabled=True,
    envvar_prefix="MAPSPRITES",
    settings_files=settings_files,
    environments=True,
    load_dotenv=True,
)

DEFAULTS = {
    "output_dir": "./output",
    "cache_dir": "./cache",
    "base_url": "https://pages.allmaps.org/sprite-test",
    "tile_size": 1024,
    "max_side": 65500,
    "workers": 8,
    "timeout": 60,
    "default_variants": "128",
}


def get(key):
    """Return a setting, falling back to the package default.

    Parameters
    ----------
    key : str
        Setting name (case-insensitive, as in Dynaconf).
    """
    return settings.get(key, DEFAULTS.get(key.lower()))


def change_env(new_env):
    """Change the active Dynaconf environment.

    Parameters
    ----------
    new_env : str
        The environment name to switch to (e.g., 'development', 'production').
    """
    settings.setenv(new_env)
    settings.reload()
