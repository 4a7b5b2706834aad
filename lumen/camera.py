"""
Camera module for generating primary rays.

A fixed pinhole camera at the origin looking down -Z, with +Y up and
+X to the right. The viewport sits `focal_length` in front of the eye.
"""

from __future__ import annotations
from .vec3 import Vec3, Point3
from .ray import Ray


class Camera:
    """An axis-aligned pinhole camera."""

    def __init__(
        self,
        aspect_ratio: float = 16.0 / 9.0,
        viewport_height: float = 2.0,
        focal_length: float = 1.0
    ):
        """Create a camera.

        Args:
            aspect_ratio: Width / Height ratio of the viewport
            viewport_height: Height of the viewport in world units
            focal_length: Distance from the eye to the viewport
        """
        self.aspect_ratio = aspect_ratio
        self.viewport_height = viewport_height
        self.viewport_width = aspect_ratio * viewport_height
        self.focal_length = focal_length

        self.origin = Point3(0, 0, 0)
        self.horizontal = Vec3(self.viewport_width, 0, 0)
        self.vertical = Vec3(0, viewport_height, 0)
        self.lower_left_corner = (
            self.origin
            - self.horizontal / 2
            - self.vertical / 2
            - Vec3(0, 0, focal_length)
        )

    def get_ray(self, u: float, v: float) -> Ray:
        """Generate a ray for the given UV coordinates on the image plane.

        Args:
            u: Horizontal coordinate [0, 1] (0 = left, 1 = right)
            v: Vertical coordinate [0, 1] (0 = bottom, 1 = top)

        Returns:
            A ray from the eye through the viewport point. The direction
            is left unnormalized.
        """
        direction = (
            self.lower_left_corner
            + self.horizontal * u
            + self.vertical * v
            - self.origin
        )
        return Ray(self.origin, direction)

    def __repr__(self) -> str:
        return (
            f"Camera(aspect_ratio={self.aspect_ratio:.4f}, "
            f"viewport_height={self.viewport_height}, focal_length={self.focal_length})"
        )
