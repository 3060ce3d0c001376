"""Unit tests for PVC size recommendation."""

import os

import pytest

from goldenimage.sizing import GIB, get_pvc_size


class TestGetPVCSize:
    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "1Gi"),
            (100, "1Gi"),
            (GIB, "2Gi"),
            (10 * GIB, "13Gi"),
        ],
    )
    def test_adds_overhead_and_rounds_up(self, tmp_path, size, expected):
        path = tmp_path / "disk.qcow2"
        with open(path, "wb") as f:
            f.truncate(size)
        assert get_pvc_size(str(path)) == expected

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            get_pvc_size(os.path.join(tmp_path, "missing.qcow2"))
