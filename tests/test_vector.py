"""Tests for the vector helpers."""

import math

import numpy as np
import pytest

from py_terragen.core.vector import (
    distance, into_variance, lerp, normalize, normalize_rows, slerp, sorted_pair, variance, vec3
)


class TestNormalize:
    """Test unit-length scaling."""

    def test_unit_length(self):
        v = normalize(vec3(3.0, 4.0, 12.0))
        assert np.linalg.norm(v) == pytest.approx(1.0)

    def test_zero_vector_unchanged(self):
        """Zero vector has no direction and is returned as is."""
        v = normalize(vec3())
        np.testing.assert_array_equal(v, vec3())

    def test_rows(self):
        rows = np.array([[2.0, 0.0, 0.0], [0.0, 0.0, 0.0], [1.0, 1.0, 0.0]])
        out = normalize_rows(rows)
        np.testing.assert_allclose(out[0], [1.0, 0.0, 0.0])
        np.testing.assert_array_equal(out[1], [0.0, 0.0, 0.0])
        assert np.linalg.norm(out[2]) == pytest.approx(1.0)


class TestInterpolation:
    """Test lerp and slerp."""

    def test_lerp_midpoint(self):
        np.testing.assert_allclose(lerp(vec3(0, 0, 0), vec3(2, 4, 6), 0.5), [1, 2, 3])

    def test_slerp_stays_on_sphere(self):
        """Slerp between unit vectors yields unit vectors."""
        v0 = vec3(1.0, 0.0, 0.0)
        v1 = vec3(0.0, 1.0, 0.0)
        for t in (0.0, 0.25, 0.5, 0.75, 1.0):
            assert np.linalg.norm(slerp(v0, v1, t)) == pytest.approx(1.0)

    def test_slerp_midpoint(self):
        mid = slerp(vec3(1.0, 0.0, 0.0), vec3(0.0, 1.0, 0.0), 0.5)
        expected = 1.0 / math.sqrt(2.0)
        np.testing.assert_allclose(mid, [expected, expected, 0.0])

    def test_slerp_endpoints(self):
        v0 = vec3(0.0, 0.0, 1.0)
        v1 = vec3(0.0, 1.0, 0.0)
        np.testing.assert_allclose(slerp(v0, v1, 0.0), v0, atol=1e-12)
        np.testing.assert_allclose(slerp(v0, v1, 1.0), v1, atol=1e-12)

    def test_slerp_parallel_falls_back_to_lerp(self):
        v = vec3(0.0, 0.0, 1.0)
        np.testing.assert_allclose(slerp(v, v, 0.5), v)


class TestVariance:
    """Test the streaming variance."""

    def test_known_values(self):
        assert into_variance([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]) == pytest.approx(4.0)

    def test_generator_input(self):
        assert into_variance(x for x in (1.0, 3.0)) == pytest.approx(1.0)

    def test_too_few_samples(self):
        """Variance is undefined below two samples."""
        assert math.isnan(into_variance([]))
        assert math.isnan(into_variance([1.0]))

    def test_array_input(self):
        assert variance(np.array([1.0, 1.0, 1.0])) == pytest.approx(0.0)


class TestMisc:
    def test_distance(self):
        assert distance(vec3(1, 2, 3), vec3(4, 6, 3)) == pytest.approx(5.0)

    def test_sorted_pair(self):
        assert sorted_pair(5, 2) == (2, 5)
        assert sorted_pair(2, 5) == (2, 5)
