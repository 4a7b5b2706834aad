"""
Renderer module - the heart of the ray tracer.

Implements:
- Recursive diffuse path tracing with a fixed bounce budget
- Jittered multi-sample anti-aliasing
- Tile-based rendering, optionally multi-threaded
- 8-bit quantization and image output

Orientation: row 0 of every image returned here is the TOP of the
picture. Output row j samples image-plane row h = height - 1 - j, so the
camera's v coordinate grows from the bottom row (v = 0) to the top
(v = 1). Rays pointing up see the blue end of the sky gradient.
"""

from __future__ import annotations
import math
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple
import numpy as np

from .vec3 import Vec3, Color
from .ray import Ray
from .camera import Camera
from .shapes import Hittable
from .ppm import save_ppm

WHITE = Color(1.0, 1.0, 1.0)
SKY_BLUE = Color(0.5, 0.7, 1.0)

# Fraction of incoming light a diffuse surface reflects per bounce
DIFFUSE_REFLECTANCE = 0.5

# Hits closer than this are treated as the surface the ray left from
T_MIN = 0.001

# Largest channel value before quantization; * 256 keeps results <= 255
MAX_CHANNEL = 0.999


class ImageSaveError(OSError):
    """The rendered image could not be written to its destination."""


def sky_color(ray: Ray) -> Color:
    """Vertical background gradient: white below, sky blue straight up."""
    unit_direction = ray.direction.unit()
    t = 0.5 * (unit_direction.y + 1.0)
    return WHITE * (1.0 - t) + SKY_BLUE * t


def ray_color(ray: Ray, scene: Hittable, depth: int, rng: np.random.Generator) -> Color:
    """Compute the color carried back along a ray.

    Args:
        ray: The ray to trace
        scene: The scene to trace against
        depth: Remaining bounce budget; at 0 the ray is fully absorbed
        rng: Random source for the diffuse bounce directions

    Returns:
        Linear color for this ray
    """
    if depth <= 0:
        return Color(0, 0, 0)

    hit_record = scene.hit(ray, T_MIN, math.inf)
    if hit_record is None:
        return sky_color(ray)

    # Aim at a random point in the unit ball resting on the surface
    target = hit_record.point + hit_record.normal + Vec3.random_in_unit_sphere(rng)
    bounce = Ray(hit_record.point, target - hit_record.point)
    return ray_color(bounce, scene, depth - 1, rng) * DIFFUSE_REFLECTANCE


@dataclass
class RenderSettings:
    """Configuration for the renderer."""
    width: int = 400
    aspect_ratio: float = 16.0 / 9.0
    samples_per_pixel: int = 100
    max_depth: int = 50
    tile_size: int = 32
    num_threads: int = 1  # 0 = auto-detect
    seed: Optional[int] = None
    gamma_correct: bool = False

    def __post_init__(self):
        if self.width < 1:
            raise ValueError(f"width must be at least 1, got {self.width}")
        if self.aspect_ratio <= 0:
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        if self.samples_per_pixel < 1:
            raise ValueError(f"samples_per_pixel must be at least 1, got {self.samples_per_pixel}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must not be negative, got {self.max_depth}")
        if self.tile_size < 1:
            raise ValueError(f"tile_size must be at least 1, got {self.tile_size}")
        if self.seed is not None and self.seed < 0:
            raise ValueError(f"seed must not be negative, got {self.seed}")
        if self.num_threads < 0:
            raise ValueError(f"num_threads must not be negative, got {self.num_threads}")
        if self.num_threads == 0:
            self.num_threads = os.cpu_count() or 4

    @property
    def height(self) -> int:
        """Image height derived from width and aspect ratio."""
        return max(1, int(self.width / self.aspect_ratio))


class Renderer:
    """Multi-sample diffuse path tracer."""

    def __init__(self, settings: RenderSettings = None):
        """Create a renderer with the given settings.

        Args:
            settings: Render configuration (uses defaults if None)
        """
        self.settings = settings if settings else RenderSettings()
        self._progress_callback: Optional[Callable[[float], None]] = None

    def set_progress_callback(self, callback: Callable[[float], None]) -> None:
        """Set a callback function for progress updates.

        Args:
            callback: Function that takes progress as float (0.0 to 1.0)
        """
        self._progress_callback = callback

    def render(self, scene: Hittable, camera: Camera) -> np.ndarray:
        """Render the scene and return the averaged linear colors.

        Every pixel draws its jitter and bounce directions from its own
        generator seeded with (seed, h, w). A fixed seed therefore gives
        the same image for any thread count or tile size.

        Args:
            scene: The scene to render (any Hittable), shared read-only
            camera: The camera to render from

        Returns:
            Image as numpy array of shape (height, width, 3), top row first
        """
        width = self.settings.width
        height = self.settings.height

        seed = self.settings.seed
        if seed is None:
            seed = np.random.SeedSequence().entropy

        image = np.zeros((height, width, 3), dtype=np.float64)

        tiles = self._generate_tiles(width, height)
        total_tiles = len(tiles)
        completed_tiles = 0
        lock = threading.Lock()

        def render_tile(tile: Tuple[int, int, int, int]) -> None:
            nonlocal completed_tiles
            x0, y0, x1, y1 = tile
            for j in range(y0, y1):
                for i in range(x0, x1):
                    image[j, i] = self.render_pixel(scene, camera, i, height - 1 - j, seed).to_array()

            # Reporting under the lock keeps fractions in increasing order
            with lock:
                completed_tiles += 1
                if self._progress_callback:
                    self._progress_callback(completed_tiles / total_tiles)

        if self.settings.num_threads > 1:
            # Tiles write disjoint slices of the image
            with ThreadPoolExecutor(max_workers=self.settings.num_threads) as executor:
                list(executor.map(render_tile, tiles))
        else:
            for tile in tiles:
                render_tile(tile)

        return image

    def render_pixel(self, scene: Hittable, camera: Camera, w: int, h: int, seed: int) -> Color:
        """Average samples_per_pixel jittered samples for one pixel.

        Args:
            w: Column, counted from the left
            h: Image-plane row, counted from the bottom
            seed: Render seed; the pixel generator is keyed on (seed, h, w)
        """
        width = self.settings.width
        height = self.settings.height
        samples = self.settings.samples_per_pixel
        max_depth = self.settings.max_depth

        rng = np.random.default_rng([seed, h, w])

        # A single column or row has nothing to spread across
        u_span = max(width - 1, 1)
        v_span = max(height - 1, 1)

        pixel_color = Color(0, 0, 0)
        for _ in range(samples):
            u = (w + rng.random()) / u_span
            v = (h + rng.random()) / v_span
            ray = camera.get_ray(u, v)
            pixel_color += ray_color(ray, scene, max_depth, rng)

        return pixel_color / samples

    def _generate_tiles(self, width: int, height: int) -> list[Tuple[int, int, int, int]]:
        """Split the image into tiles as (x0, y0, x1, y1), top-left first."""
        tile_size = self.settings.tile_size
        tiles = []

        for y in range(0, height, tile_size):
            for x in range(0, width, tile_size):
                x1 = min(x + tile_size, width)
                y1 = min(y + tile_size, height)
                tiles.append((x, y, x1, y1))

        return tiles

    def to_ldr(self, image: np.ndarray) -> np.ndarray:
        """Quantize averaged linear colors to 8 bits.

        Channels are clamped to [0, 0.999] and scaled by 256, then
        truncated, so every value lands in [0, 255]. With gamma_correct
        set, a square-root (gamma 2) curve is applied before clamping.
        Non-finite values from degenerate geometry map to 0 or 255.

        Returns:
            uint8 array with the same shape as the input
        """
        values = np.nan_to_num(image, nan=0.0, posinf=1.0, neginf=0.0)
        if self.settings.gamma_correct:
            values = np.sqrt(np.clip(values, 0.0, None))
        return (np.clip(values, 0.0, MAX_CHANNEL) * 256).astype(np.uint8)

    @staticmethod
    def pixels(ldr_image: np.ndarray) -> Iterator[Tuple[int, int, int]]:
        """Yield (r, g, b) integer triples in row-major order, top row first."""
        for row in ldr_image:
            for r, g, b in row:
                yield int(r), int(g), int(b)

    def save_image(self, image: np.ndarray, filename: str) -> None:
        """Save image to file.

        '.ppm' files and '-' (stdout) are written as plain-text P3; any
        other extension goes through Pillow.

        Args:
            image: Averaged linear image from render()
            filename: Output filename (extension determines format)
        """
        ldr = self.to_ldr(image)
        height, width = ldr.shape[:2]

        if filename == '-' or filename.lower().endswith('.ppm'):
            save_ppm(filename, width, height, self.pixels(ldr))
            return

        from PIL import Image as PILImage

        try:
            PILImage.fromarray(ldr).save(filename)
        except (ValueError, OSError) as e:
            # Pillow reports unknown extensions as ValueError
            raise ImageSaveError(f"Cannot save image to {filename}: {e}") from e
