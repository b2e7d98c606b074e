from distprov.core.time.abc import Time
from distprov.core.time.real import RealTime

__all__ = [
    "RealTime",
    "Time",
]
