"""
Geometric shapes for the ray tracer.

Each shape implements the Hittable interface: a single `hit` method plus
a bounding box used by the BVH.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional
import math

import numpy as np

from .vec3 import Vec3, Point3
from .ray import Ray


@dataclass
class HitRecord:
    """Stores information about a ray-object intersection.

    Attributes:
        point: The intersection point in world space
        normal: The surface normal at the intersection (always points against ray)
        t: The ray parameter at intersection
        front_face: True if ray hit from outside the object
    """
    point: Point3
    normal: Vec3
    t: float
    front_face: bool

    def set_face_normal(self, ray: Ray, outward_normal: Vec3) -> None:
        """Set the normal to always point against the ray direction.

        Args:
            ray: The incoming ray
            outward_normal: The geometric normal pointing outward from surface
        """
        self.front_face = ray.direction.dot(outward_normal) < 0
        self.normal = outward_normal if self.front_face else -outward_normal


class Hittable(ABC):
    """Anything a ray can be intersected with."""

    @abstractmethod
    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        """Test if ray intersects this object.

        Only intersections with t strictly inside (t_min, t_max) count.

        Args:
            ray: The ray to test
            t_min: Lower bound on t (excluded), rejects self-intersection
            t_max: Upper bound on t (excluded)

        Returns:
            A new HitRecord for the nearest accepted hit, None otherwise
        """

    @abstractmethod
    def bounding_box(self) -> Optional[AABB]:
        """Get the axis-aligned bounding box for this object.

        Returns:
            AABB if the object is bounded, None otherwise
        """


class Sphere(Hittable):
    """A sphere defined by center and radius."""

    def __init__(self, center: Point3, radius: float):
        self.center = center
        self.radius = radius

    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        """Test ray-sphere intersection using the quadratic formula.

        The equation (P-C)·(P-C) = r² where P = ray.at(t)
        expands to: t²(d·d) + 2t(d·(O-C)) + (O-C)·(O-C) - r² = 0.
        With half_b = d·(O-C) the roots are (-half_b ± √(half_b² - a·c)) / a.
        """
        oc = ray.origin - self.center
        a = np.float64(ray.direction.length_squared())
        half_b = oc.dot(ray.direction)
        c = oc.length_squared() - self.radius * self.radius

        discriminant = half_b * half_b - a * c
        if discriminant < 0:
            return None

        sqrtd = math.sqrt(discriminant)

        # A zero-length direction gives nan roots, which fail both range
        # checks below.
        with np.errstate(divide='ignore', invalid='ignore'):
            root = float((-half_b - sqrtd) / a)
            if not (t_min < root < t_max):
                root = float((-half_b + sqrtd) / a)
                if not (t_min < root < t_max):
                    return None

        point = ray.at(root)
        outward_normal = (point - self.center) / self.radius

        hit_record = HitRecord(
            point=point,
            normal=outward_normal,
            t=root,
            front_face=True
        )
        hit_record.set_face_normal(ray, outward_normal)

        return hit_record

    def bounding_box(self) -> Optional[AABB]:
        """Return the AABB containing this sphere."""
        r_vec = Vec3(abs(self.radius), abs(self.radius), abs(self.radius))
        return AABB(self.center - r_vec, self.center + r_vec)

    def __repr__(self) -> str:
        return f"Sphere(center={self.center}, radius={self.radius})"


class AABB:
    """Axis-Aligned Bounding Box for acceleration structures."""

    def __init__(self, minimum: Point3, maximum: Point3):
        self.minimum = minimum
        self.maximum = maximum

    def hit(self, ray: Ray, t_min: float, t_max: float) -> bool:
        """Test if ray overlaps this box anywhere in (t_min, t_max), slab method."""
        for i in range(3):
            d = ray.direction[i]
            with np.errstate(divide='ignore', invalid='ignore'):
                inv_d = np.float64(1.0) / np.float64(d)
                t0 = float((self.minimum[i] - ray.origin[i]) * inv_d)
                t1 = float((self.maximum[i] - ray.origin[i]) * inv_d)

            if inv_d < 0:
                t0, t1 = t1, t0

            # nan slabs (origin on a face with zero direction) leave the
            # interval unchanged
            t_min = max(t_min, t0)
            t_max = min(t_max, t1)

            if t_max <= t_min:
                return False

        return True

    def centroid(self) -> Point3:
        return (self.minimum + self.maximum) * 0.5

    @staticmethod
    def surrounding_box(box0: AABB, box1: AABB) -> AABB:
        """Return the AABB that contains both input boxes."""
        return AABB(
            Vec3.from_array(np.minimum(box0.minimum.to_array(), box1.minimum.to_array())),
            Vec3.from_array(np.maximum(box0.maximum.to_array(), box1.maximum.to_array()))
        )

    def __repr__(self) -> str:
        return f"AABB(min={self.minimum}, max={self.maximum})"


class HittableList(Hittable):
    """An ordered collection of hittable objects, the scene aggregate.

    `hit` is a linear nearest-hit scan. The upper bound shrinks to the
    t of each accepted hit so later objects can only replace it with a
    strictly nearer one.
    """

    def __init__(self, objects: Optional[Iterable[Hittable]] = None):
        self.objects: list[Hittable] = list(objects) if objects is not None else []

    def add(self, obj: Hittable) -> None:
        """Add an object to the list."""
        self.objects.append(obj)

    def clear(self) -> None:
        """Remove all objects."""
        self.objects.clear()

    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        """Find the closest intersection among all objects."""
        closest_hit: Optional[HitRecord] = None
        closest_so_far = t_max

        for obj in self.objects:
            hit_record = obj.hit(ray, t_min, closest_so_far)
            if hit_record is not None:
                closest_hit = hit_record
                closest_so_far = hit_record.t

        return closest_hit

    def bounding_box(self) -> Optional[AABB]:
        """Return the AABB containing all objects."""
        if not self.objects:
            return None

        output_box: Optional[AABB] = None
        for obj in self.objects:
            box = obj.bounding_box()
            if box is None:
                return None
            output_box = box if output_box is None else AABB.surrounding_box(output_box, box)

        return output_box

    def __len__(self) -> int:
        return len(self.objects)

    def __iter__(self) -> Iterator[Hittable]:
        return iter(self.objects)
