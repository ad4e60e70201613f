"""
Unit tests for dominant-color extraction.

Tests the extraction pipeline components:
- strided pixel sampling from RGBA buffers
- the three reduction strategies
- deterministic k-means with the empty-cluster policy
- cancellation and option validation
"""
import numpy as np
import pytest

from colorfinder.errors import ExtractionCancelled, InvalidOptions, InvalidPixel
from colorfinder.services.colors.extraction import (
    CancellationToken, ExtractionStrategy, ExtractOptions,
    extract, extract_report, kmeans, sample_pixels
)

WHITE = (255, 255, 255)
SCARLET = (255, 36, 0)
SKY = (135, 206, 235)
ORANGE = (255, 103, 0)
TEAL = (0, 128, 128)
LIME = (50, 205, 50)


def halves(top, bottom, height=20):
    return lambda x, y: top if y < height // 2 else bottom


class TestSamplePixels:
    """Test strided sampling"""
    
    def test_stride_walks_flattened_buffer(self, make_rgba):
        buf = make_rgba(10, 10, lambda x, y: (x, y, 0))
        samples = sample_pixels(buf, 10, 10, stride=25)
        # Pixels 0, 25, 50, 75
        np.testing.assert_array_equal(samples, [[0, 0, 0], [5, 2, 0], [0, 5, 0], [5, 7, 0]])
    
    def test_default_stride_matches_400_bytes(self, make_rgba):
        buf = make_rgba(100, 10, WHITE)
        assert len(sample_pixels(buf, 100, 10, stride=100)) == 10
    
    def test_transparent_pixels_skipped(self, make_rgba):
        buf = make_rgba(4, 1, lambda x, y: (255, 0, 0, 0) if x % 2 else (0, 0, 255, 255))
        samples = sample_pixels(buf, 4, 1, stride=1)
        np.testing.assert_array_equal(samples, [[0, 0, 255], [0, 0, 255]])
    
    def test_three_dimensional_input(self):
        img = np.zeros((4, 5, 3), dtype=np.uint8)
        img[:, :] = SKY
        samples = sample_pixels(img, stride=1)
        assert samples.shape == (20, 3)
    
    def test_samples_do_not_alias_buffer(self):
        img = np.full((2, 2, 4), 255, dtype=np.uint8)
        samples = sample_pixels(img.reshape(-1), 2, 2, stride=1)
        img[:] = 0
        assert samples.max() == 255
    
    def test_buffer_length_mismatch(self, make_rgba):
        buf = make_rgba(4, 4, WHITE)
        with pytest.raises(InvalidPixel):
            sample_pixels(buf, 5, 4, stride=1)
    
    def test_dimensions_required_for_flat_buffer(self, make_rgba):
        with pytest.raises(InvalidPixel):
            sample_pixels(make_rgba(2, 2, WHITE), None, None)
    
    def test_invalid_stride(self, make_rgba):
        with pytest.raises(InvalidOptions):
            sample_pixels(make_rgba(2, 2, WHITE), 2, 2, stride=0)


class TestStridedDedup:
    """Test order-of-discovery dedup strategy"""
    
    def test_solid_image(self, make_rgba, palette):
        buf = make_rgba(20, 20, WHITE)
        colors = extract(buf, 20, 20, palette, ExtractOptions(strategy="strided_dedup", stride=1))
        assert [c.code for c in colors] == ["001"]
    
    def test_discovery_order(self, make_rgba, palette):
        buf = make_rgba(20, 20, halves(SCARLET, SKY))
        colors = extract(buf, 20, 20, palette, ExtractOptions(strategy="strided_dedup", stride=1))
        assert [c.code for c in colors] == ["003", "004"]
    
    def test_threshold_drops_close_matches(self, make_rgba, palette):
        # Scarlet and Orange Flame are ~67 apart in RGB
        buf = make_rgba(20, 20, halves(SCARLET, ORANGE))
        loose = extract(buf, 20, 20, palette, ExtractOptions(strategy="strided_dedup", stride=1, dedup_threshold=50))
        strict = extract(buf, 20, 20, palette, ExtractOptions(strategy="strided_dedup", stride=1, dedup_threshold=70))
        assert [c.code for c in loose] == ["003", "008"]
        assert [c.code for c in strict] == ["003"]
    
    def test_cap_stops_early(self, make_rgba, palette):
        stripes = [WHITE, SCARLET, SKY, TEAL]
        buf = make_rgba(8, 8, lambda x, y: stripes[y // 2])
        colors = extract(buf, 8, 8, palette, ExtractOptions(strategy="strided_dedup", stride=1, max_colors=2))
        assert [c.code for c in colors] == ["001", "003"]


class TestFrequency:
    """Test frequency-mode strategy"""
    
    def test_descending_count(self, make_rgba, palette):
        buf = make_rgba(10, 10, lambda x, y: SKY if y < 7 else SCARLET)
        colors = extract(buf, 10, 10, palette, ExtractOptions(strategy=ExtractionStrategy.FREQUENCY, stride=1))
        assert [c.code for c in colors] == ["004", "003"]
    
    def test_ties_follow_palette_order(self, make_rgba, palette):
        buf = make_rgba(20, 20, halves(SKY, SCARLET))
        colors = extract(buf, 20, 20, palette, ExtractOptions(strategy="frequency", stride=1))
        assert [c.code for c in colors] == ["003", "004"]
    
    def test_top_n(self, make_rgba, palette):
        stripes = [WHITE, WHITE, SCARLET, SKY]
        buf = make_rgba(8, 8, lambda x, y: stripes[y // 2])
        colors = extract(buf, 8, 8, palette, ExtractOptions(strategy="frequency", stride=1, top_n=2))
        assert [c.code for c in colors] == ["001", "003"]


class TestKMeans:
    """Test deterministic k-means"""
    
    def test_returns_exactly_k_with_fewer_samples(self):
        samples = np.array([[0, 0, 0], [255, 255, 255]])
        centroids = kmeans(samples, k=5, iterations=10)
        assert centroids.shape == (5, 3)
        np.testing.assert_array_equal(centroids[:2], samples)
    
    def test_empty_cluster_keeps_previous_centroid(self):
        # Both initial centroids start on (10, 10, 10); cluster 1 receives no members at first
        samples = np.array([[10, 10, 10], [10, 10, 10], [10, 10, 10], [200, 200, 200]])
        centroids = kmeans(samples, k=2, iterations=10)
        assert not np.any(np.all(centroids == 0, axis=1))
        rows = sorted(map(tuple, centroids))
        assert rows == [(10.0, 10.0, 10.0), (200.0, 200.0, 200.0)]
    
    def test_first_k_samples_initialize(self):
        samples = np.array([[255, 0, 0], [0, 0, 255], [250, 5, 5], [5, 5, 250]])
        centroids = kmeans(samples, k=2, iterations=1)
        np.testing.assert_allclose(centroids, [[252.5, 2.5, 2.5], [2.5, 2.5, 252.5]])
    
    def test_deterministic(self):
        rng = np.random.default_rng(7)
        samples = rng.integers(0, 256, size=(300, 3))
        np.testing.assert_array_equal(kmeans(samples, 5, 10), kmeans(samples, 5, 10))
    
    def test_no_samples(self):
        with pytest.raises(InvalidPixel):
            kmeans(np.empty((0, 3)), k=3, iterations=5)
    
    def test_invalid_parameters(self):
        with pytest.raises(InvalidOptions):
            kmeans(np.zeros((3, 3)), k=0, iterations=5)
        with pytest.raises(InvalidOptions):
            kmeans(np.zeros((3, 3)), k=2, iterations=0)
    
    def test_extract_maps_and_dedups_centroids(self, make_rgba, palette):
        buf = make_rgba(20, 20, halves(LIME, TEAL))
        colors = extract(buf, 20, 20, palette, ExtractOptions(strategy="kmeans", stride=1, clusters=5))
        codes = [c.code for c in colors]
        assert sorted(codes) == ["005", "009"]
        assert len(codes) == len(set(codes))


class TestExtractContract:
    """Shared output contract and error handling"""
    
    @pytest.mark.parametrize("strategy", ["strided_dedup", "frequency", "kmeans"])
    @pytest.mark.parametrize("metric", ["rgb", "lab"])
    def test_unique_palette_members(self, palette, strategy, metric):
        rng = np.random.default_rng(3)
        img = rng.integers(0, 256, size=(30, 30, 4), dtype=np.uint8)
        img[:, :, 3] = 255
        colors = extract(img.reshape(-1), 30, 30, palette,
                         ExtractOptions(strategy=strategy, metric=metric, stride=3))
        codes = [c.code for c in colors]
        assert codes
        assert len(codes) == len(set(codes))
        assert all(code in palette for code in codes)
    
    @pytest.mark.parametrize("strategy", ["strided_dedup", "frequency", "kmeans"])
    def test_chunking_does_not_change_result(self, palette, strategy):
        rng = np.random.default_rng(11)
        img = rng.integers(0, 256, size=(25, 25, 4), dtype=np.uint8)
        img[:, :, 3] = 255
        small = extract(img, None, None, palette, ExtractOptions(strategy=strategy, stride=2, chunk_size=7))
        large = extract(img, None, None, palette, ExtractOptions(strategy=strategy, stride=2, chunk_size=4096))
        assert small == large
    
    def test_all_transparent_image(self, make_rgba, palette):
        buf = make_rgba(5, 5, (255, 0, 0, 0))
        report = extract_report(buf, 5, 5, palette, ExtractOptions(stride=1))
        assert report.colors == ()
        assert report.sample_count == 0
        assert report.warnings
    
    def test_report_metadata(self, make_rgba, palette):
        buf = make_rgba(10, 10, WHITE)
        report = extract_report(buf, 10, 10, palette, ExtractOptions(strategy="frequency", metric="lab", stride=10))
        assert report.codes == ("001",)
        assert report.strategy == "frequency"
        assert report.metric == "lab"
        assert report.sample_count == 10
        assert report.extraction_id.startswith("ext-")
        assert report.duration_ms >= 0
    
    @pytest.mark.parametrize("kwargs", [
        {"strategy": "median"},
        {"metric": "hsv"},
        {"stride": 0},
        {"clusters": 0},
        {"iterations": -1},
        {"max_colors": 0},
        {"top_n": 0},
        {"dedup_threshold": -5},
    ])
    def test_invalid_options(self, kwargs):
        with pytest.raises(InvalidOptions):
            ExtractOptions(**kwargs)
    
    def test_empty_palette(self, make_rgba):
        from colorfinder.errors import InvalidPalette
        with pytest.raises(InvalidPalette):
            extract(make_rgba(2, 2, WHITE), 2, 2, [])


class CountdownToken(CancellationToken):
    """Cancels itself after a number of checks."""
    
    def __init__(self, checks):
        super().__init__()
        self.remaining = checks
    
    def raise_if_cancelled(self):
        self.remaining -= 1
        if self.remaining < 0:
            self.cancel()
        super().raise_if_cancelled()


class TestCancellation:
    """Test cooperative cancellation"""
    
    def test_cancelled_before_start(self, make_rgba, palette):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ExtractionCancelled):
            extract(make_rgba(4, 4, WHITE), 4, 4, palette, cancel=token)
    
    @pytest.mark.parametrize("strategy", ["strided_dedup", "frequency", "kmeans"])
    def test_cancelled_mid_extraction(self, make_rgba, palette, strategy):
        buf = make_rgba(20, 20, halves(SCARLET, SKY))
        options = ExtractOptions(strategy=strategy, stride=1, chunk_size=10, max_colors=6)
        with pytest.raises(ExtractionCancelled):
            extract(buf, 20, 20, palette, options, cancel=CountdownToken(2))
    
    def test_cancellation_is_not_value_error(self):
        assert not issubclass(ExtractionCancelled, ValueError)
