"""Tests for the version Filter."""

import pytest

from crash_dashboard.exceptions import InvalidArgumentError
from crash_dashboard.filters import Filter


class TestFilter:
    def test_default_allow(self):
        flt = Filter()
        assert flt.get("Firefox", "52.0a1")
        assert flt.get("Anything", "at all")

    def test_set_and_get(self):
        flt = Filter()
        flt.set("Firefox", "50.0", False)
        flt.set("Firefox", "51.0", True)
        assert flt.get("Firefox", "50.0") is False
        assert flt.get("Firefox", "51.0") is True
        assert flt.get("Firefox", "52.0") is True

    def test_accepts_and_rejects_partition_set_pairs(self):
        flt = Filter()
        pairs = [("X", "1.0"), ("X", "2.0"), ("Y", "1.0"), ("X", "1.0")]
        for i, (product, version) in enumerate(pairs):
            flt.set(product, version, i % 2 == 0)
        accepts = set(flt.get_accepts())
        rejects = set(flt.get_rejects())
        assert accepts.isdisjoint(rejects)
        assert accepts | rejects == set(pairs)
        # The last set wins
        assert ("X", "1.0") in rejects

    def test_accepted_keys(self):
        flt = Filter()
        flt.set("Firefox", "50.0", True)
        flt.set("Firefox", "51.0", False)
        assert flt.accepted_keys() == ["Firefox 50.0"]

    @pytest.mark.parametrize("product,version", [("", "1.0"), ("X", ""), (None, "1.0")])
    def test_empty_arguments(self, product, version):
        flt = Filter()
        with pytest.raises(InvalidArgumentError):
            flt.set(product, version, True)
        with pytest.raises(InvalidArgumentError):
            flt.get(product, version)

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            Filter().get("", "")

    def test_from_selection(self):
        versions = [("X", "1.0"), ("X", "2.0"), ("Y", "3.0")]
        flt = Filter.from_selection(versions, ["X 2.0"])
        assert flt.get_accepts() == [("X", "2.0")]
        assert sorted(flt.get_rejects()) == [("X", "1.0"), ("Y", "3.0")]
        # Versions not on display stay accepted
        assert flt.get("Z", "9.0")

    def test_from_selection_builds_new_object(self):
        versions = [("X", "1.0")]
        first = Filter.from_selection(versions, [])
        second = Filter.from_selection(versions, ["X 1.0"])
        assert first is not second
        assert first.get("X", "1.0") is False

    def test_repr(self):
        flt = Filter()
        flt.set("X", "1.0", False)
        assert "rejects=[('X', '1.0')]" in repr(flt)
