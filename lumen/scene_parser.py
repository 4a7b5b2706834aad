"""
Scene description parser.

Supports a YAML (or JSON) scene description with:
- Camera configuration
- Render settings
- Objects

Example scene file:
```yaml
camera:
  viewport_height: 2.0
  focal_length: 1.0

render:
  width: 400
  aspect_ratio: 1.7778
  samples: 100
  max_depth: 50
  seed: 7
  gamma: false
  bvh: false

objects:
  - type: sphere
    center: [0, 0, -1]
    radius: 0.5

  - type: sphere
    center: [0, -100.5, -1]
    radius: 100
```

The camera's aspect ratio defaults to the render aspect ratio so the
viewport always matches the image shape.
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Any, Tuple, Union
import json

import yaml

from .vec3 import Vec3
from .camera import Camera
from .shapes import Sphere, Hittable, HittableList
from .renderer import RenderSettings
from .bvh import build_bvh


class SceneParseError(Exception):
    """Error during scene parsing."""


class SceneParser:
    """Parser for scene description files."""

    def __init__(self):
        self.objects: HittableList = HittableList()

    def parse_file(self, filepath: Union[str, Path]) -> Tuple[Hittable, Camera, RenderSettings]:
        """Parse a scene file.

        Args:
            filepath: Path to the scene file (YAML or JSON)

        Returns:
            Tuple of (scene, camera, settings)
        """
        path = Path(filepath)
        if not path.exists():
            raise SceneParseError(f"Scene file not found: {filepath}")

        try:
            content = path.read_text()
        except OSError as e:
            raise SceneParseError(f"Cannot read scene file {filepath}: {e}") from e

        try:
            if path.suffix == '.json':
                data = json.loads(content)
            else:
                # YAML is a superset of JSON, so other suffixes go through it
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SceneParseError(f"Cannot parse {filepath}: {e}") from e

        return self.parse_dict(data)

    def parse_dict(self, data: Dict[str, Any]) -> Tuple[Hittable, Camera, RenderSettings]:
        """Parse a scene from a dictionary.

        Args:
            data: Scene description dictionary

        Returns:
            Tuple of (scene, camera, settings)
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SceneParseError(f"Scene description must be a mapping, got {type(data).__name__}")

        # Each parse builds its own scene so earlier results stay untouched
        self.objects = HittableList()

        settings, use_bvh = self._parse_settings(data.get('render', {}))

        if 'objects' in data:
            self._parse_objects(data['objects'])

        camera = self._parse_camera(data.get('camera', {}), settings.aspect_ratio)

        scene: Hittable = build_bvh(self.objects) if use_bvh else self.objects
        return scene, camera, settings

    def _parse_vec3(self, data: Any) -> Vec3:
        """Parse a Vec3 from a list or an x/y/z mapping."""
        if isinstance(data, (list, tuple)):
            if len(data) != 3:
                raise SceneParseError(f"Vec3 must have 3 components, got {len(data)}")
            return Vec3(self._number(data[0]), self._number(data[1]), self._number(data[2]))
        elif isinstance(data, dict):
            return Vec3(
                self._number(data.get('x', 0)),
                self._number(data.get('y', 0)),
                self._number(data.get('z', 0))
            )
        else:
            raise SceneParseError(f"Cannot parse Vec3 from: {data}")

    @staticmethod
    def _number(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise SceneParseError(f"Expected a number, got: {value!r}") from e

    def _parse_objects(self, objects_data: Any) -> None:
        """Parse objects section."""
        if not isinstance(objects_data, list):
            raise SceneParseError("'objects' must be a list")

        for obj_data in objects_data:
            if not isinstance(obj_data, dict):
                raise SceneParseError(f"Object entry must be a mapping, got: {obj_data!r}")
            obj_type = str(obj_data.get('type', 'sphere')).lower()

            if obj_type == 'sphere':
                center = self._parse_vec3(obj_data.get('center', [0, 0, 0]))
                radius = self._number(obj_data.get('radius', 1.0))
                self.objects.add(Sphere(center, radius))
            else:
                raise SceneParseError(f"Unknown object type: {obj_type}")

    def _parse_camera(self, camera_data: Dict[str, Any], default_aspect: float) -> Camera:
        """Parse camera section."""
        if not isinstance(camera_data, dict):
            raise SceneParseError("'camera' must be a mapping")
        return Camera(
            aspect_ratio=self._number(camera_data.get('aspect_ratio', default_aspect)),
            viewport_height=self._number(camera_data.get('viewport_height', 2.0)),
            focal_length=self._number(camera_data.get('focal_length', 1.0))
        )

    def _parse_settings(self, settings_data: Dict[str, Any]) -> Tuple[RenderSettings, bool]:
        """Parse render settings section; also returns the BVH flag."""
        if not isinstance(settings_data, dict):
            raise SceneParseError("'render' must be a mapping")

        seed = settings_data.get('seed')
        try:
            settings = RenderSettings(
                width=int(settings_data.get('width', 400)),
                aspect_ratio=self._number(settings_data.get('aspect_ratio', 16 / 9)),
                samples_per_pixel=int(settings_data.get('samples', 100)),
                max_depth=int(settings_data.get('max_depth', 50)),
                tile_size=int(settings_data.get('tile_size', 32)),
                num_threads=int(settings_data.get('threads', 1)),
                seed=None if seed is None else int(seed),
                gamma_correct=bool(settings_data.get('gamma', False))
            )
        except (TypeError, ValueError) as e:
            raise SceneParseError(f"Invalid render settings: {e}") from e

        return settings, bool(settings_data.get('bvh', False))


def load_scene(filepath: Union[str, Path]) -> Tuple[Hittable, Camera, RenderSettings]:
    """Convenience function to load a scene file."""
    parser = SceneParser()
    return parser.parse_file(filepath)


def parse_scene(data: Dict[str, Any]) -> Tuple[Hittable, Camera, RenderSettings]:
    """Convenience function to parse a scene from a dictionary."""
    parser = SceneParser()
    return parser.parse_dict(data)
