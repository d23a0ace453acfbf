"""Tests for ShippingWeightEstimator."""
import pytest

from app.services.errors import ConfigurationError
from app.services.weight_engine import ShippingWeightEstimator, WeightLine


@pytest.fixture(scope="module")
def estimator():
    return ShippingWeightEstimator()


class TestEstimate:

    def test_postcard_scenario(self, estimator):
        """0.0004 lb/sq in x 24 sq in x 5000 + 1.0 lb packaging = 49.0 lb."""
        assert estimator.estimate(0.0004, 4, 6, 5000, 1.0) == 49.0

    def test_one_decimal(self, estimator):
        """0.00022 x 93.5 x 500 = 10.285 lb -> +1.0 -> 11.3 lb."""
        assert estimator.estimate(0.00022, 8.5, 11, 500, 1.0) == 11.3

    def test_missing_paper_weight(self, estimator):
        with pytest.raises(ConfigurationError) as exc:
            estimator.estimate(None, 4, 6, 100)
        assert exc.value.field == "paper.weight_per_sq_in"

    def test_bad_dimensions(self, estimator):
        with pytest.raises(ConfigurationError):
            estimator.estimate(0.0004, 0, 6, 100)

    def test_negative_overhead(self, estimator):
        with pytest.raises(ConfigurationError):
            estimator.estimate(0.0004, 4, 6, 100, -1.0)


class TestLineItems:

    def test_rounds_once_after_summing(self, estimator):
        """
        Two lines of 0.045 lb each. Rounded per line they would vanish
        (0.0 + 0.0); summed first they make 0.09 -> 0.1 lb.
        """
        lines = [WeightLine(0.0001, 1, 1, 450), WeightLine(0.0001, 1, 1, 450)]
        assert estimator.estimate_line_items(lines, packaging_overhead_lbs=0.0) == 0.1

    def test_overhead_added_once(self, estimator):
        lines = [WeightLine(0.0004, 4, 6, 1000), WeightLine(0.0004, 4, 6, 1000)]
        assert estimator.estimate_line_items(lines, packaging_overhead_lbs=1.0) == 20.2

    def test_empty_cart(self, estimator):
        with pytest.raises(ConfigurationError):
            estimator.estimate_line_items([])


class TestBuildPackage:

    def test_default_box(self, estimator):
        package = estimator.build_package([WeightLine(0.0004, 4, 6, 5000)], origin_state="TX")
        assert package.total_weight == 49.0
        assert package.box_count == 1
        assert (package.dimensions.length, package.dimensions.width, package.dimensions.height) == (12, 9, 6)

    def test_intelligent_packing_splits_boxes(self, estimator):
        """0.0004 x 24 x 12500 = 120 lb + 1 = 121 lb -> three 50 lb boxes."""
        lines = [WeightLine(0.0004, 4, 6, 12500)]
        assert estimator.build_package(lines, "TX", intelligent_packing=True).box_count == 3
        assert estimator.build_package(lines, "TX", intelligent_packing=False).box_count == 1
