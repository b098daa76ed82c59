"""Wire codec for the Event and Tensor schemas."""

from .decoding import EventMessage, TensorMessage, decode, decode_batch, iter_batch
from .encoding import encode_event, encode_tensor, event_size, tensor_size

__all__ = [
    "encode_event",
    "encode_tensor",
    "event_size",
    "tensor_size",
    "EventMessage",
    "TensorMessage",
    "decode",
    "decode_batch",
    "iter_batch",
]
