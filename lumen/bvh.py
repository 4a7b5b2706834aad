"""
Bounding Volume Hierarchy (BVH) for accelerating ray-object intersection.

BVH is a tree structure where each node contains an AABB and either:
- Two child nodes (interior node)
- A HittableList of primitives (leaf node)

It answers `hit` with the same nearest-hit result as a linear scan over a
HittableList, so a scene can be swapped for its BVH without any change to
the shading code.
"""

from __future__ import annotations
from typing import Optional, List

import numpy as np

from .ray import Ray
from .shapes import Hittable, HitRecord, AABB, HittableList


class BVHNode(Hittable):
    """A node in the Bounding Volume Hierarchy tree.

    Objects must all be bounded. Interior nodes split at the median
    centroid along the longest axis of the centroid bounds.
    """

    def __init__(self, objects: List[Hittable], max_leaf_size: int = 4):
        self.left: Optional[Hittable] = None
        self.right: Optional[Hittable] = None
        self.bbox: Optional[AABB] = None

        if not objects:
            return

        if len(objects) <= max_leaf_size:
            self.left = objects[0] if len(objects) == 1 else HittableList(objects)
            self.bbox = self.left.bounding_box()
            return

        centroids = np.array([obj.bounding_box().centroid().to_array() for obj in objects])
        axis = int(np.argmax(centroids.max(axis=0) - centroids.min(axis=0)))
        order = np.argsort(centroids[:, axis], kind='stable')
        ordered = [objects[i] for i in order]

        mid = len(ordered) // 2
        self.left = BVHNode(ordered[:mid], max_leaf_size)
        self.right = BVHNode(ordered[mid:], max_leaf_size)
        self.bbox = AABB.surrounding_box(self.left.bounding_box(), self.right.bounding_box())

    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        """Test ray intersection with BVH node."""
        if self.bbox is None or not self.bbox.hit(ray, t_min, t_max):
            return None

        hit_left = self.left.hit(ray, t_min, t_max) if self.left else None

        # A left hit bounds the search on the right
        upper = hit_left.t if hit_left else t_max
        hit_right = self.right.hit(ray, t_min, upper) if self.right else None

        return hit_right if hit_right else hit_left

    def bounding_box(self) -> Optional[AABB]:
        return self.bbox


class BVH(Hittable):
    """Bounding Volume Hierarchy acceleration structure.

    Unbounded objects cannot live in the tree; they are kept aside and
    scanned linearly after the tree query.
    """

    def __init__(self, objects: List[Hittable], max_leaf_size: int = 4):
        if max_leaf_size < 1:
            raise ValueError(f"max_leaf_size must be at least 1, got {max_leaf_size}")

        self.objects = list(objects)
        bounded = [obj for obj in self.objects if obj.bounding_box() is not None]
        self.unbounded = HittableList(obj for obj in self.objects if obj.bounding_box() is None)
        self.root: Optional[BVHNode] = BVHNode(bounded, max_leaf_size) if bounded else None

    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        """Test ray intersection using the BVH."""
        closest = self.root.hit(ray, t_min, t_max) if self.root else None
        upper = closest.t if closest else t_max
        other = self.unbounded.hit(ray, t_min, upper)
        return other if other else closest

    def bounding_box(self) -> Optional[AABB]:
        """Return the bounding box for the entire BVH."""
        if self.root is None or len(self.unbounded):
            return None
        return self.root.bounding_box()

    def __len__(self) -> int:
        return len(self.objects)


def build_bvh(scene: HittableList, max_leaf_size: int = 4) -> BVH:
    """Convenience function to build a BVH from a HittableList."""
    return BVH(list(scene.objects), max_leaf_size)
