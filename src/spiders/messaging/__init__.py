"""Message encoding: typed pairs to wire buffers."""

from .encoder import EncodedBatch, EncodeFailure, MessageEncoder, encode_batch, validate_tag

__all__ = ["MessageEncoder", "EncodedBatch", "EncodeFailure", "encode_batch", "validate_tag"]
