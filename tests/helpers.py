"""Numerical helpers shared by the test modules."""

import torch


def finite_difference(fn, x, h=1e-6):
    """Central difference of a vector-valued fn at a vector x, returns (out, in)."""
    x = torch.as_tensor(x, dtype=torch.float64)
    columns = []
    for i in range(x.shape[0]):
        step = torch.zeros_like(x)
        step[i] = h
        columns.append((torch.as_tensor(fn(x + step)) - torch.as_tensor(fn(x - step))) / (2 * h))
    return torch.stack(columns, dim=-1)
