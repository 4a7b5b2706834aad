"""
Lumen - A Python Diffuse Ray Tracer

A small, deterministic ray tracer with support for:
- Analytic sphere intersection with a nearest-hit scene aggregate
- Optional BVH acceleration behind the same hit interface
- Recursive diffuse bounces with a sky-gradient background
- Jittered multi-sample anti-aliasing, seedable per pixel
- Multi-threaded tile rendering
- Plain-text PPM (P3) and Pillow image output
- YAML/JSON scene descriptions
"""

__version__ = "0.1.0"
__author__ = "Lumen Team"

from .vec3 import Vec3, Point3, Color
from .ray import Ray
from .shapes import Sphere, HittableList, AABB, HitRecord, Hittable
from .bvh import BVH, BVHNode, build_bvh
from .camera import Camera
from .renderer import Renderer, RenderSettings, ImageSaveError, ray_color, sky_color
from .ppm import PPMWriteError, write_ppm, save_ppm
from .scene_parser import SceneParser, SceneParseError, load_scene, parse_scene
