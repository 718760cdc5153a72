"""Image acquisition for the package."""

from .asset_resolver import AssetMap, AssetResolver

__all__ = ["AssetMap", "AssetResolver"]
