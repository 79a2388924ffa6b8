import numpy as np

from demshape.core.exporter import LasWriter, NpzWriter, PlyWriter
from demshape.core.pointcloud import GroundPoints


def test_npz_writer_fills_missing_attributes(tmp_path) -> None:
    path = tmp_path / "ground.npz"
    writer = NpzWriter(str(path))
    batch1 = GroundPoints(
        xyz=np.array([[3396.0, 0.0, 0.0]]),
        attrs={"normal": np.array([[1.0, 0.0, 0.0]], dtype=np.float32)},
    )
    batch2 = GroundPoints(
        xyz=np.array([[0.0, 3396.0, 0.0]]),
        attrs={},
    )
    writer.write_batch(batch1)
    writer.write_batch(batch2)
    writer.close()

    with np.load(path) as data:
        xyz = data["xyz_km"]
        normal = data["normal"]
    assert xyz.dtype == np.float64
    assert xyz.shape == (2, 3)
    assert normal.shape == (2, 3)
    np.testing.assert_array_equal(normal[0], np.array([1.0, 0.0, 0.0], dtype=np.float32))
    np.testing.assert_array_equal(normal[1], np.zeros(3, dtype=np.float32))


def test_ply_writer_concatenates_batches(tmp_path) -> None:
    path = tmp_path / "ground.ply"
    writer = PlyWriter(str(path))
    writer.write_batch(GroundPoints(xyz=np.array([[3396.0, 0.0, 0.0], [0.0, 3396.0, 0.0]])))
    writer.write_batch(GroundPoints(xyz=np.array([[0.0, 0.0, 3376.2], [-3396.123456789, 0.0, 0.0]])))
    writer.close()

    with open(path, "r", encoding="utf-8") as f:
        lines = [line.strip() for line in f.readlines()]
    assert lines[0] == "ply"
    assert "element vertex 4" in lines
    end_idx = lines.index("end_header")
    data = np.array([[float(val) for val in row.split()] for row in lines[end_idx + 1 :]])
    assert data.shape == (4, 3)
    # sub-millimetre digits survive the ASCII round trip
    assert data[3, 0] == -3396.123456789


def test_writers_ignore_empty_runs(tmp_path) -> None:
    path = tmp_path / "empty.npz"
    writer = NpzWriter(str(path))
    writer.close()
    assert not path.exists()


def test_las_writer_stores_metres_and_extra_dimensions(tmp_path) -> None:
    import laspy

    path = tmp_path / "ground.las"
    writer = LasWriter(str(path))
    batch = GroundPoints(
        xyz=np.array([[3396.0, 0.0, 0.0], [3395.5, 1.25, -0.75]]),
        attrs={
            "lat_deg": np.array([0.0, -0.01]),
            "lon_deg": np.array([0.0, 0.02]),
            "resolution_m": np.array([10.0, 11.0], dtype=np.float32),
            "normal": np.array([[1.0, 0.0, 0.0], [1.0, 0.0, 0.0]], dtype=np.float32),
        },
    )
    writer.write_batch(batch)
    writer.close()

    with laspy.open(path) as reader:
        points = reader.read()
        extra = set(reader.header.point_format.extra_dimension_names)
    assert {"Latitude", "Longitude", "Resolution", "NormalX", "NormalY", "NormalZ"} <= extra
    np.testing.assert_allclose(points.x, [3396000.0, 3395500.0], atol=1e-3)
    np.testing.assert_allclose(points.y, [0.0, 1250.0], atol=1e-3)
    np.testing.assert_allclose(points["Resolution"], [10.0, 11.0])
    np.testing.assert_allclose(points["NormalX"], [1.0, 1.0])
