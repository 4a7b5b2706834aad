#!/usr/bin/env python3
"""
Lumen - A Python Diffuse Ray Tracer

Main entry point for rendering scenes. Image data goes to the output file
(or stdout with --output -); status and progress go to stderr.
"""

import argparse
import dataclasses
import sys
import time
from pathlib import Path

from lumen.vec3 import Point3
from lumen.camera import Camera
from lumen.shapes import Sphere, HittableList
from lumen.bvh import build_bvh
from lumen.renderer import Renderer, RenderSettings
from lumen.scene_parser import SceneParseError, load_scene


def create_default_scene() -> HittableList:
    """A small sphere resting on a very large one that acts as the ground."""
    world = HittableList()
    world.add(Sphere(Point3(0, 0, -1), 0.5))
    world.add(Sphere(Point3(0, -100.5, -1), 100))
    return world


def log(message: str, quiet: bool, end: str = '\n') -> None:
    if not quiet:
        print(message, file=sys.stderr, end=end, flush=True)


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Lumen - A Python Diffuse Ray Tracer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  python main.py > image.ppm
  python main.py --width 800 --samples 200 --output render.png
  python main.py --scene-file scenes/spheres.yaml --seed 7 --output render.ppm
        '''
    )

    parser.add_argument('--width', type=int, help='Image width (default: 400)')
    parser.add_argument('--aspect-ratio', type=float, help='Width / height (default: 16/9)')
    parser.add_argument('--samples', type=int, help='Samples per pixel (default: 100)')
    parser.add_argument('--depth', type=int, help='Max bounce depth (default: 50)')
    parser.add_argument('--threads', type=int, help='Number of threads (0=auto, default: 1)')
    parser.add_argument('--seed', type=int, help='Random seed for a reproducible render')
    parser.add_argument('--gamma', action='store_true', default=None,
                        help='Apply square-root gamma before quantizing')
    parser.add_argument('--bvh', action='store_true', help='Wrap the scene in a BVH')
    parser.add_argument('--scene', type=str, default='default', choices=['default', 'empty'],
                        help='Built-in scene to render (default: default)')
    parser.add_argument('--scene-file', type=str, help='YAML or JSON scene description')
    parser.add_argument('--output', type=str, default='-',
                        help="Output filename, '-' for PPM on stdout (default: -)")
    parser.add_argument('--quiet', action='store_true', help='No progress output')

    args = parser.parse_args(argv)
    quiet = args.quiet

    overrides = {
        'width': args.width,
        'aspect_ratio': args.aspect_ratio,
        'samples_per_pixel': args.samples,
        'max_depth': args.depth,
        'num_threads': args.threads,
        'seed': args.seed,
        'gamma_correct': args.gamma,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}

    try:
        if args.scene_file:
            world, camera, settings = load_scene(args.scene_file)
            settings = dataclasses.replace(settings, **overrides)
        else:
            settings = RenderSettings(**overrides)
            world = create_default_scene() if args.scene == 'default' else HittableList()
            camera = Camera(aspect_ratio=settings.aspect_ratio)
    except (SceneParseError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.bvh and isinstance(world, HittableList):
        world = build_bvh(world)

    log(f"Resolution: {settings.width}x{settings.height}", quiet)
    log(f"Samples: {settings.samples_per_pixel}  Max Depth: {settings.max_depth}  "
        f"Threads: {settings.num_threads}", quiet)
    log(f"Objects in scene: {len(world)}", quiet)

    renderer = Renderer(settings)

    def progress_callback(progress: float):
        pct = int(progress * 100)
        bar_len = 40
        filled = int(bar_len * progress)
        bar = '#' * filled + '.' * (bar_len - filled)
        log(f'\rRendering: [{bar}] {pct}%', quiet, end='')

    renderer.set_progress_callback(progress_callback)

    start_time = time.time()
    image = renderer.render(world, camera)
    elapsed = time.time() - start_time
    log(f"\nRender completed in {elapsed:.2f} seconds", quiet)

    try:
        if args.output != '-':
            Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        renderer.save_image(image, args.output)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log("Done.", quiet)
    return 0


if __name__ == '__main__':
    sys.exit(main())
