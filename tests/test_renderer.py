"""Tests for the shading function and Renderer class."""

import os
import pytest
import numpy as np
from PIL import Image

from lumen.vec3 import Vec3, Point3, Color
from lumen.ray import Ray
from lumen.camera import Camera
from lumen.shapes import Sphere, HittableList
from lumen.bvh import build_bvh
from lumen.renderer import Renderer, RenderSettings, ImageSaveError, ray_color, sky_color


def one_sphere_scene():
    return HittableList([Sphere(Point3(0, 0, -1), 0.5)])


def small_settings(**kwargs):
    defaults = dict(width=4, aspect_ratio=1.0, samples_per_pixel=1, max_depth=3, seed=11)
    defaults.update(kwargs)
    return RenderSettings(**defaults)


class TestSkyColor:
    """Test the background gradient."""

    def test_straight_up_is_sky_blue(self):
        assert sky_color(Ray(Point3(0, 0, 0), Vec3(0, 1, 0))) == Color(0.5, 0.7, 1.0)

    def test_straight_down_is_white(self):
        assert sky_color(Ray(Point3(0, 0, 0), Vec3(0, -1, 0))) == Color(1, 1, 1)

    def test_horizon_is_midpoint(self):
        assert sky_color(Ray(Point3(0, 0, 0), Vec3(0, 0, -1))) == Color(0.75, 0.85, 1.0)

    def test_independent_of_x_and_scale(self):
        a = sky_color(Ray(Point3(0, 0, 0), Vec3(0, 3, -3)))
        b = sky_color(Ray(Point3(5, 5, 5), Vec3(0, 1, -1)))
        assert a == b
        c = sky_color(Ray(Point3(0, 0, 0), Vec3(3, 3 * 2 ** 0.5, -3)))
        assert c.y == pytest.approx(a.y)


class TestRayColor:
    """Test the recursive diffuse shading function."""

    def test_depth_zero_is_black(self):
        rng = np.random.default_rng(0)
        ray = Ray(Point3(0, 0, 0), Vec3(0, 0, -1))
        for scene in (HittableList(), one_sphere_scene()):
            assert ray_color(ray, scene, 0, rng) == Color(0, 0, 0)

    def test_miss_returns_background(self):
        rng = np.random.default_rng(0)
        empty = HittableList()
        assert ray_color(Ray(Point3(0, 0, 0), Vec3(0, 1, 0)), empty, 5, rng) == Color(0.5, 0.7, 1.0)
        assert ray_color(Ray(Point3(0, 0, 0), Vec3(0, -1, 0)), empty, 5, rng) == Color(1, 1, 1)

    def test_hit_with_one_bounce_left_is_black(self):
        rng = np.random.default_rng(0)
        ray = Ray(Point3(0, 0, 0), Vec3(0, 0, -1))
        assert ray_color(ray, one_sphere_scene(), 1, rng) == Color(0, 0, 0)

    def test_single_bounce_is_half_the_sky(self):
        # A bounce off a lone convex sphere always escapes to the sky
        ray = Ray(Point3(0, 0, 0), Vec3(0, 0, -1))
        for seed in range(20):
            c = ray_color(ray, one_sphere_scene(), 2, np.random.default_rng(seed))
            assert 0.25 <= c.r <= 0.5
            assert 0.35 <= c.g <= 0.5
            assert c.b == pytest.approx(0.5)

    def test_seeded_rng_is_reproducible(self):
        scene = HittableList([Sphere(Point3(0, 0, -1), 0.5), Sphere(Point3(0, -100.5, -1), 100)])
        ray = Ray(Point3(0, 0, 0), Vec3(0.1, -0.2, -1))
        a = ray_color(ray, scene, 10, np.random.default_rng(99))
        b = ray_color(ray, scene, 10, np.random.default_rng(99))
        assert np.array_equal(a.to_array(), b.to_array())

    def test_enclosed_ray_loses_energy(self):
        # Inside a sphere every bounce hits again until the budget runs out
        scene = HittableList([Sphere(Point3(0, 0, 0), 10.0)])
        ray = Ray(Point3(0, 0, 0), Vec3(0, 0, -1))
        assert ray_color(ray, scene, 6, np.random.default_rng(3)) == Color(0, 0, 0)


class TestRenderSettings:
    """Test RenderSettings configuration."""

    def test_default_values(self):
        settings = RenderSettings()
        assert settings.width == 400
        assert settings.samples_per_pixel == 100
        assert settings.max_depth == 50
        assert settings.num_threads == 1
        assert settings.seed is None
        assert settings.gamma_correct is False

    def test_height_is_derived(self):
        assert RenderSettings(width=400, aspect_ratio=2.0).height == 200
        assert RenderSettings(width=3, aspect_ratio=1.0).height == 3

    def test_height_is_at_least_one(self):
        assert RenderSettings(width=1, aspect_ratio=10.0).height == 1

    def test_auto_thread_detection(self):
        settings = RenderSettings(num_threads=0)
        assert settings.num_threads == (os.cpu_count() or 4)

    @pytest.mark.parametrize('field,value', [
        ('width', 0),
        ('aspect_ratio', 0.0),
        ('samples_per_pixel', 0),
        ('max_depth', -1),
        ('tile_size', 0),
        ('num_threads', -2),
        ('seed', -5),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValueError):
            RenderSettings(**{field: value})


class TestRendererRender:
    """Test the sampling loop."""

    def test_render_produces_image(self):
        renderer = Renderer(small_settings(width=6, aspect_ratio=2.0))
        image = renderer.render(one_sphere_scene(), Camera(aspect_ratio=2.0))

        assert image.shape == (3, 6, 3)
        assert image.dtype == np.float64

    def test_seeded_render_is_bit_reproducible(self):
        settings = small_settings(width=2)
        camera = Camera(aspect_ratio=1.0)

        first = Renderer(settings).render(one_sphere_scene(), camera)
        second = Renderer(settings).render(one_sphere_scene(), camera)

        assert first.shape == (2, 2, 3)
        assert np.array_equal(first, second)

    def test_threads_and_tiles_do_not_change_result(self):
        camera = Camera(aspect_ratio=1.0)
        serial = Renderer(small_settings(samples_per_pixel=2)).render(one_sphere_scene(), camera)
        threaded = Renderer(small_settings(samples_per_pixel=2, num_threads=3, tile_size=1)).render(
            one_sphere_scene(), camera
        )
        assert np.array_equal(serial, threaded)

    def test_bvh_scene_matches_list(self):
        world = HittableList([Sphere(Point3(0, 0, -1), 0.5), Sphere(Point3(0, -100.5, -1), 100)])
        camera = Camera(aspect_ratio=1.0)
        renderer = Renderer(small_settings())
        assert np.array_equal(renderer.render(world, camera), renderer.render(build_bvh(world), camera))

    def test_different_seeds_differ(self):
        camera = Camera(aspect_ratio=1.0)
        world = HittableList([Sphere(Point3(0, 0, -1), 0.5), Sphere(Point3(0, -100.5, -1), 100)])
        a = Renderer(small_settings(seed=1)).render(world, camera)
        b = Renderer(small_settings(seed=2)).render(world, camera)
        assert not np.array_equal(a, b)

    def test_unseeded_render_runs(self):
        renderer = Renderer(small_settings(seed=None, width=2))
        image = renderer.render(HittableList(), Camera(aspect_ratio=1.0))
        assert np.all(np.isfinite(image))

    def test_top_row_is_sky_side(self):
        renderer = Renderer(small_settings(samples_per_pixel=4))
        image = renderer.render(HittableList(), Camera(aspect_ratio=1.0))

        # Red falls from 1.0 (white, looking down) to 0.5 (blue, looking up)
        assert image[0, :, 0].mean() < image[-1, :, 0].mean()
        assert image[0, :, 0].max() < image[2, :, 0].min()

    def test_sphere_appears_in_center(self):
        renderer = Renderer(small_settings(width=9, max_depth=1))
        image = renderer.render(one_sphere_scene(), Camera(aspect_ratio=1.0))

        # With a single bounce the sphere absorbs everything
        assert np.array_equal(image[4, 4], [0.0, 0.0, 0.0])
        assert image[0, 0].sum() > 0

    def test_samples_are_averaged(self):
        renderer = Renderer(small_settings(samples_per_pixel=8))
        image = renderer.render(HittableList(), Camera(aspect_ratio=1.0))
        assert image.max() <= 1.0
        assert image.min() >= 0.5

    def test_progress_callback(self):
        progress = []
        renderer = Renderer(small_settings(tile_size=2))
        renderer.set_progress_callback(progress.append)
        renderer.render(HittableList(), Camera(aspect_ratio=1.0))

        assert len(progress) == 4
        assert progress[-1] == pytest.approx(1.0)

    def test_progress_increases_with_threads(self):
        progress = []
        renderer = Renderer(small_settings(tile_size=1, num_threads=4))
        renderer.set_progress_callback(progress.append)
        renderer.render(HittableList(), Camera(aspect_ratio=1.0))

        assert len(progress) == 16
        assert progress == sorted(progress)
        assert progress[-1] == pytest.approx(1.0)

    def test_generate_tiles_cover_image(self):
        renderer = Renderer(small_settings(tile_size=3))
        tiles = renderer._generate_tiles(4, 4)
        assert tiles == [(0, 0, 3, 3), (3, 0, 4, 3), (0, 3, 3, 4), (3, 3, 4, 4)]


class TestQuantization:
    """Test 8-bit conversion."""

    def test_clamps_to_byte_range(self):
        renderer = Renderer(small_settings())
        image = np.array([[[1.5, -0.5, 0.5]]])
        assert renderer.to_ldr(image).tolist() == [[[255, 0, 128]]]

    def test_boundaries(self):
        renderer = Renderer(small_settings())
        image = np.array([[[0.0, 0.999, 1.0]]])
        assert renderer.to_ldr(image).tolist() == [[[0, 255, 255]]]

    def test_gamma_option(self):
        plain = Renderer(small_settings())
        gamma = Renderer(small_settings(gamma_correct=True))
        image = np.array([[[0.25, 0.25, 0.25]]])
        assert plain.to_ldr(image).tolist() == [[[64, 64, 64]]]
        assert gamma.to_ldr(image).tolist() == [[[128, 128, 128]]]

    def test_non_finite_values_stay_in_range(self):
        renderer = Renderer(small_settings())
        image = np.array([[[np.nan, np.inf, -np.inf]]])
        assert renderer.to_ldr(image).tolist() == [[[0, 255, 0]]]

    def test_pixels_row_major(self):
        ldr = np.array([[[1, 2, 3], [4, 5, 6]], [[7, 8, 9], [10, 11, 12]]], dtype=np.uint8)
        assert list(Renderer.pixels(ldr)) == [(1, 2, 3), (4, 5, 6), (7, 8, 9), (10, 11, 12)]


class TestSaveImage:
    """Test image output."""

    def test_save_ppm(self, tmp_path):
        renderer = Renderer(small_settings(width=2))
        image = np.array([[[1.0, 0.0, 0.5], [0.0, 0.0, 0.0]],
                          [[0.25, 0.25, 0.25], [1.0, 1.0, 1.0]]])
        path = tmp_path / 'out.ppm'
        renderer.save_image(image, str(path))

        assert path.read_text() == 'P3\n2 2\n255\n255 0 128 0 0 0\n64 64 64 255 255 255\n'

    def test_save_png(self, tmp_path):
        renderer = Renderer(small_settings(width=3))
        image = renderer.render(one_sphere_scene(), Camera(aspect_ratio=1.0))
        path = tmp_path / 'out.png'
        renderer.save_image(image, str(path))

        with Image.open(path) as im:
            assert im.size == (3, 3)
            assert np.array_equal(np.asarray(im.convert('RGB')), renderer.to_ldr(image))

    def test_save_to_stdout(self, capsys):
        renderer = Renderer(small_settings(width=1))
        renderer.save_image(np.zeros((1, 1, 3)), '-')
        assert capsys.readouterr().out == 'P3\n1 1\n255\n0 0 0\n'

    def test_unknown_extension(self, tmp_path):
        renderer = Renderer(small_settings(width=1))
        with pytest.raises(ImageSaveError) as excinfo:
            renderer.save_image(np.zeros((1, 1, 3)), str(tmp_path / 'out.xyz'))
        assert isinstance(excinfo.value, OSError)
        assert not (tmp_path / 'out.xyz').exists()
