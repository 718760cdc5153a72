"""Chapter markup transformation."""

from .transformer import Transformer
from .xhtml_transformer import XhtmlTransformer

__all__ = ["Transformer", "XhtmlTransformer"]
