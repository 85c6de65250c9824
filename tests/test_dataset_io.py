"""
Test loading and saving datasets from directories of image files.
"""

import numpy as np
import PIL.Image
import pytest

from RadiometricResponseTool.Dataset import Dataset
from RadiometricResponseTool.DatasetIO import load_dataset, save_dataset
from RadiometricResponseTool.Exceptions import DatasetError, SerializationError
from RadiometricResponseTool.ImageFileFactory import ImageFileFactory


def color_image(value):
    image = np.zeros((4, 5, 3), dtype=np.uint8)
    image[:, :, 0] = value
    image[:, :, 1] = value + 1
    image[:, :, 2] = value + 2
    return image


class TestImageFileFactory:
    """Test format dispatch for single image files."""

    def test_valid_extensions(self):
        assert ImageFileFactory.is_valid_image_file("000010_000.png")
        assert ImageFileFactory.is_valid_image_file("000010_000.MAT")
        assert not ImageFileFactory.is_valid_image_file("notes.txt")

    def test_png_is_read_as_bgr(self, tmp_path):
        rgb = np.zeros((2, 2, 3), dtype=np.uint8)
        rgb[:, :, 0] = 200
        PIL.Image.fromarray(rgb).save(tmp_path / "red.png")

        image = ImageFileFactory.read_image(tmp_path / "red.png")
        assert image.shape == (2, 2, 3)
        assert np.all(image[:, :, 2] == 200)
        assert np.all(image[:, :, 0] == 0)

    def test_png_write_read(self, tmp_path):
        ImageFileFactory.write_image(tmp_path / "c.png", color_image(10))
        assert np.array_equal(ImageFileFactory.read_image(tmp_path / "c.png"),
                              color_image(10))

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(SerializationError, match="Unsupported file format"):
            ImageFileFactory.read_image(tmp_path / "image.tiff")

    def test_corrupt_png(self, tmp_path):
        (tmp_path / "broken.png").write_bytes(b"not a png")
        with pytest.raises(SerializationError, match="Failed to decode"):
            ImageFileFactory.read_image(tmp_path / "broken.png")

    def test_palette_png_expanded_to_color(self, tmp_path):
        palette = PIL.Image.new("P", (2, 2))
        palette.putpalette([200, 0, 0, 0, 0, 50])
        palette.putdata([0, 1, 1, 0])
        palette.save(tmp_path / "palette.png")

        image = ImageFileFactory.read_image(tmp_path / "palette.png")
        assert image.shape == (2, 2, 3)
        assert image[0, 0].tolist() == [0, 0, 200]
        assert image[0, 1].tolist() == [50, 0, 0]

    def test_alpha_png_rejected(self, tmp_path):
        rgba = np.full((2, 2, 4), 100, dtype=np.uint8)
        PIL.Image.fromarray(rgba).save(tmp_path / "alpha.png")

        with pytest.raises(SerializationError, match="Unsupported PNG mode RGBA"):
            ImageFileFactory.read_image(tmp_path / "alpha.png")

    def test_16_bit_png_rejected(self, tmp_path):
        deep = np.full((2, 2), 40000, dtype=np.uint16)
        PIL.Image.fromarray(deep).save(tmp_path / "deep.png")

        with pytest.raises(SerializationError, match="Unsupported PNG mode"):
            ImageFileFactory.read_image(tmp_path / "deep.png")


class TestLoadDataset:
    """Test reading a dataset directory."""

    @pytest.mark.parametrize("fileformat", ["mat", "png"])
    def test_save_then_load(self, tmp_path, fileformat):
        dataset = Dataset()
        dataset.insert(40, color_image(100))
        dataset.insert(40, color_image(101))
        dataset.insert(20, color_image(50))

        save_dataset(dataset, tmp_path, fileformat=fileformat)

        assert (tmp_path / f"000040_000.{fileformat}").exists()
        assert (tmp_path / f"000040_001.{fileformat}").exists()
        assert (tmp_path / f"000020_000.{fileformat}").exists()

        loaded = load_dataset(tmp_path)
        assert loaded.get_exposure_times() == [40, 20]
        assert loaded.get_num_images(40) == 2
        assert loaded.get_image_size() == (5, 4)
        assert loaded.num_channels == 3
        assert np.array_equal(loaded.get_images(40)[1], color_image(101))
        assert np.array_equal(loaded.get_images(20)[0], color_image(50))

    def test_junk_files_skipped(self, tmp_path):
        dataset = Dataset()
        dataset.insert(10, np.full((3, 3), 7, dtype=np.uint8))
        save_dataset(dataset, tmp_path)

        (tmp_path / "readme.txt").write_text("not an image")
        (tmp_path / "abcdef_000.mat").write_bytes(b"\x00" * 32)
        (tmp_path / "000020_000.mat").write_bytes(b"\x01\x02\x03")

        loaded = load_dataset(tmp_path)
        assert loaded.get_exposure_times() == [10]
        assert loaded.get_num_images() == 1

    def test_alpha_png_skipped(self, tmp_path):
        dataset = Dataset()
        dataset.insert(10, np.full((3, 3), 7, dtype=np.uint8))
        save_dataset(dataset, tmp_path, fileformat="png")

        rgba = np.full((3, 3, 4), 9, dtype=np.uint8)
        PIL.Image.fromarray(rgba).save(tmp_path / "000020_000.png")

        loaded = load_dataset(tmp_path)
        assert loaded.get_exposure_times() == [10]

    def test_progress_callback(self, tmp_path):
        dataset = Dataset()
        for t in (10, 20, 30):
            dataset.insert(t, np.zeros((2, 2), dtype=np.uint8))
        save_dataset(dataset, tmp_path)

        calls = []
        load_dataset(tmp_path, progress_cb=lambda **kw: calls.append(kw))

        assert [c["current"] for c in calls] == [1, 2, 3]
        assert all(c["phase"] == "loading" and c["total"] == 3 for c in calls)

    def test_empty_directory(self, tmp_path):
        assert load_dataset(tmp_path).is_empty()

    def test_missing_directory(self, tmp_path):
        with pytest.raises(DatasetError, match="does not exist"):
            load_dataset(tmp_path / "nope")

    def test_mixed_sizes_rejected(self, tmp_path):
        ImageFileFactory.write_image(tmp_path / "000010_000.mat",
                                     np.zeros((2, 2), dtype=np.uint8))
        ImageFileFactory.write_image(tmp_path / "000020_000.mat",
                                     np.zeros((3, 3), dtype=np.uint8))

        with pytest.raises(DatasetError, match="different size"):
            load_dataset(tmp_path)
