"""Tests for pixel buffers, material maps and map sets."""

import unittest

import numpy as np

from MapBrew.config import MAP_ORDER, MapKind
from MapBrew.core import (
    DerivationParams,
    DimensionMismatch,
    MapGenerationError,
    MaterialMap,
    MaterialMapSet,
    PartialMaterialMapSet,
    PixelBuffer,
    RenderContextError,
    allocate_pixels,
    check_same_size,
    grayscale_map,
)

from conftest import solid_buffer


def _map_set(width=4, height=3):
    return MaterialMapSet(**{
        kind.value: MaterialMap(kind, np.zeros((height, width, 3), dtype=np.uint8))
        for kind in MAP_ORDER
    })


class TestPixelBuffer(unittest.TestCase):
    def test_shape_properties(self):
        buf = PixelBuffer(np.zeros((3, 5, 4), dtype=np.uint8))
        self.assertEqual(buf.width, 5)
        self.assertEqual(buf.height, 3)
        self.assertEqual(buf.channels, 4)
        self.assertTrue(buf.has_alpha)
        self.assertEqual(buf.size, (5, 3))
        self.assertEqual(buf.shape, (3, 5, 4))
        self.assertEqual(buf.rgb.shape, (3, 5, 3))
        self.assertEqual(buf.alpha.shape, (3, 5))

    def test_rgb_has_no_alpha(self):
        buf = PixelBuffer(np.zeros((2, 2, 3), dtype=np.uint8))
        self.assertFalse(buf.has_alpha)
        self.assertIsNone(buf.alpha)

    def test_rejects_wrong_dtype(self):
        with self.assertRaises(ValueError):
            PixelBuffer(np.zeros((2, 2, 3), dtype=np.float32))

    def test_rejects_wrong_channel_count(self):
        with self.assertRaises(ValueError):
            PixelBuffer(np.zeros((2, 2, 2), dtype=np.uint8))
        with self.assertRaises(ValueError):
            PixelBuffer(np.zeros((2, 2), dtype=np.uint8))

    def test_rejects_empty(self):
        with self.assertRaises(ValueError):
            PixelBuffer(np.zeros((0, 4, 3), dtype=np.uint8))

    def test_is_read_only_and_detached_from_source(self):
        src = np.zeros((2, 2, 3), dtype=np.uint8)
        buf = PixelBuffer(src)
        src[0, 0, 0] = 99
        self.assertEqual(int(buf.pixels[0, 0, 0]), 0)
        with self.assertRaises(ValueError):
            buf.pixels[0, 0, 0] = 1

    def test_equality_compares_pixels(self):
        a = solid_buffer(2, 2, (1, 2, 3))
        b = solid_buffer(2, 2, (1, 2, 3))
        c = solid_buffer(2, 2, (1, 2, 4))
        self.assertEqual(a, b)
        self.assertNotEqual(a, c)


class TestMaterialMap(unittest.TestCase):
    def test_kind_is_tagged(self):
        m = MaterialMap(MapKind.AO, np.zeros((2, 2, 3), dtype=np.uint8))
        self.assertIs(m.kind, MapKind.AO)
        self.assertIn("ao", repr(m))

    def test_kind_accepts_string_value(self):
        m = MaterialMap("height", np.zeros((2, 2, 3), dtype=np.uint8))
        self.assertIs(m.kind, MapKind.HEIGHT)

    def test_maps_of_different_kind_are_not_equal(self):
        arr = np.zeros((2, 2, 3), dtype=np.uint8)
        self.assertNotEqual(MaterialMap(MapKind.AO, arr), MaterialMap(MapKind.HEIGHT, arr))

    def test_grayscale_map_copies_alpha(self):
        arr = np.zeros((2, 3, 4), dtype=np.uint8)
        arr[:, :, 3] = 17
        src = PixelBuffer(arr)
        m = grayscale_map(MapKind.HEIGHT, src, np.full((2, 3), 300.0))
        self.assertEqual(m.channels, 4)
        self.assertTrue(np.all(m.pixels[:, :, :3] == 255))
        self.assertTrue(np.all(m.pixels[:, :, 3] == 17))


class TestMaterialMapSet(unittest.TestCase):
    def test_iterates_in_canonical_order(self):
        maps = _map_set()
        self.assertEqual([m.kind for m in maps], MAP_ORDER)
        self.assertEqual(list(maps.as_dict()), [k.value for k in MAP_ORDER])
        self.assertIs(maps[MapKind.AO].kind, MapKind.AO)
        self.assertEqual(maps.size, (4, 3))

    def test_dimension_mismatch_rejected(self):
        kwargs = {
            kind.value: MaterialMap(kind, np.zeros((3, 4, 3), dtype=np.uint8))
            for kind in MAP_ORDER
        }
        kwargs["height"] = MaterialMap(MapKind.HEIGHT, np.zeros((3, 5, 3), dtype=np.uint8))
        with self.assertRaises(DimensionMismatch):
            MaterialMapSet(**kwargs)

    def test_wrong_kind_in_slot_rejected(self):
        kwargs = {
            kind.value: MaterialMap(kind, np.zeros((3, 4, 3), dtype=np.uint8))
            for kind in MAP_ORDER
        }
        kwargs["ao"] = kwargs["height"]
        with self.assertRaises(ValueError):
            MaterialMapSet(**kwargs)

    def test_check_matches_source(self):
        maps = _map_set(4, 3)
        maps.check_matches(solid_buffer(4, 3, (0, 0, 0)))
        with self.assertRaises(DimensionMismatch):
            maps.check_matches(solid_buffer(3, 4, (0, 0, 0)))


class TestPartialMaterialMapSet(unittest.TestCase):
    def test_complete_partial_converts(self):
        full = _map_set()
        partial = PartialMaterialMapSet(maps={m.kind: m for m in full})
        self.assertTrue(partial.ok)
        self.assertEqual(partial.require_complete(), full)

    def test_require_complete_raises_recorded_error(self):
        err = MapGenerationError(MapKind.NORMAL, "boom")
        partial = PartialMaterialMapSet(errors={MapKind.NORMAL: err})
        self.assertFalse(partial.ok)
        self.assertEqual(partial.failed_kinds, [MapKind.NORMAL])
        with self.assertRaises(MapGenerationError) as ctx:
            partial.require_complete()
        self.assertIs(ctx.exception.kind, MapKind.NORMAL)
        self.assertIn("normal", str(ctx.exception))

    def test_require_complete_reports_missing(self):
        with self.assertRaises(ValueError):
            PartialMaterialMapSet().require_complete()


class TestHelpers(unittest.TestCase):
    def test_check_same_size(self):
        a = solid_buffer(3, 2, (0, 0, 0))
        b = solid_buffer(3, 2, (1, 1, 1, 1))
        self.assertEqual(check_same_size(a, b), (3, 2))
        with self.assertRaises(DimensionMismatch):
            check_same_size(a, solid_buffer(2, 3, (0, 0, 0)))

    def test_allocate_pixels_failure_is_render_context_error(self):
        with self.assertRaises(RenderContextError):
            allocate_pixels(-1, 4, 3)


class TestDerivationParams(unittest.TestCase):
    def test_valid(self):
        params = DerivationParams(normal_strength=2.5, roughness_multiplier=0.6, is_metal=False)
        self.assertEqual(params.normal_strength, 2.5)

    def test_all_fields_required(self):
        with self.assertRaises(TypeError):
            DerivationParams(normal_strength=2.5)

    def test_rejects_non_finite(self):
        with self.assertRaises(ValueError):
            DerivationParams(normal_strength=float("nan"), roughness_multiplier=1.0, is_metal=False)
        with self.assertRaises(ValueError):
            DerivationParams(normal_strength=1.0, roughness_multiplier=float("inf"), is_metal=False)

    def test_rejects_non_bool_metal_flag(self):
        with self.assertRaises(TypeError):
            DerivationParams(normal_strength=1.0, roughness_multiplier=1.0, is_metal=1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
