"""
fieldreg Device and Tensor Helpers

All numerics run in double precision. Device selection mirrors the
registration pipelines: CUDA when available, otherwise CPU.
"""

from typing import Optional, Sequence, Union

import numpy as np
import torch

from .logging_config import get_logger

logger = get_logger("device")

DTYPE = torch.float64

ArrayLike = Union[torch.Tensor, np.ndarray, Sequence[float], float]


def get_device(device: Optional[str] = None, verbose: bool = False) -> torch.device:
    """
    Get computation device.

    Args:
        device: Explicit device string ("cuda", "cpu"), "auto" or None for auto
        verbose: Whether to log device selection

    Returns:
        torch.device instance
    """
    if device is not None and device != "auto":
        selected = torch.device(device)
    elif torch.cuda.is_available():
        selected = torch.device("cuda")
    else:
        selected = torch.device("cpu")

    if verbose:
        logger.info(f"Using device: {selected}")
        if selected.type == "cuda":
            logger.info(f"  GPU: {torch.cuda.get_device_name(0)}")

    return selected


def as_tensor(values: ArrayLike, device: Optional[torch.device] = None) -> torch.Tensor:
    """Convert to a float64 tensor without copying when already in the right form"""
    return torch.as_tensor(values, dtype=DTYPE, device=device)


def as_points(points: ArrayLike, dim: int, device: Optional[torch.device] = None):
    """
    Normalize user input to a batch of points.

    Args:
        points: A single point (D,) or a batch (N, D)
        dim: Expected dimensionality D
        device: Target device

    Returns:
        (batch, is_single) where batch has shape (N, D)

    Raises:
        DimensionMismatchError: If the trailing dimension is not D
    """
    from ..common.errors import DimensionMismatchError

    tensor = as_tensor(points, device=device)
    if tensor.dim() == 0:
        tensor = tensor.reshape(1)
    single = tensor.dim() == 1
    if single:
        tensor = tensor.unsqueeze(0)
    if tensor.dim() != 2 or tensor.shape[1] != dim:
        raise DimensionMismatchError(
            f"Expected points of dimension {dim}, got tensor of shape {tuple(tensor.shape)}"
        )
    return tensor, single


def as_vector(values: ArrayLike, device: Optional[torch.device] = None) -> torch.Tensor:
    """Convert to a 1D float64 tensor"""
    tensor = as_tensor(values, device=device)
    return tensor.reshape(-1)
