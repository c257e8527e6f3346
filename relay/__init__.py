"""Roblox import/export relay: API keys, scene → .rbxmx, asset pass-through."""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("roblox-asset-relay")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
