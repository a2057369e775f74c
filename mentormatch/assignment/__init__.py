"""Greedy mentor-mentee assignment."""

from .greedy import assign

__all__ = ["assign"]
