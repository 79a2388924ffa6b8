from __future__ import annotations
from dataclasses import dataclass, field
import numpy as np
from typing import Dict

@dataclass
class GroundPoints:
    """Back-projected surface points (body-fixed km) with per-point attributes."""
    xyz: np.ndarray                       # (N, 3) km
    attrs: Dict[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # km-scale coordinates need double precision to keep sub-metre detail
        self.xyz = np.asarray(self.xyz, dtype=np.float64).reshape(-1, 3)
        n = len(self.xyz)
        for k, v in list(self.attrs.items()):
            v = np.asarray(v)
            if v.ndim == 0 or v.shape[0] != n:
                raise ValueError(f"Attribute '{k}' length {v.shape[0] if v.ndim else 0} != {n}")
            self.attrs[k] = v

    def __len__(self) -> int:
        return len(self.xyz)
