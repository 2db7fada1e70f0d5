"""Tests for Scanner class."""

import pytest
from imgbatch.errors import InputRootError
from imgbatch.scanner import Scanner, expand_braces


def _touch(root, *names):
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b'x')


class TestExpandBraces:
    """Tests for brace expansion."""

    def test_no_braces(self):
        """Test patterns without braces pass through."""
        assert expand_braces('**/*.jpg') == ['**/*.jpg']

    def test_single_group(self):
        """Test one alternative group."""
        assert expand_braces('*.{jpg,png}') == ['*.jpg', '*.png']

    def test_multiple_groups(self):
        """Test groups combine as a product."""
        assert expand_braces('{a,b}/*.{jpg,png}') == ['a/*.jpg', 'a/*.png', 'b/*.jpg', 'b/*.png']

    def test_single_option_left_alone(self):
        """Test braces without a comma are literal."""
        assert expand_braces('{a}.jpg') == ['{a}.jpg']


class TestScanner:
    """Tests for Scanner class."""

    def test_default_pattern(self, tmp_path, logger):
        """Test the default pattern matches JPEG and PNG files recursively."""
        _touch(tmp_path, 'a.jpg', 'b.PNG', 'c.png', 'd.gif', 'sub/e.jpeg', 'sub/f.JPG')

        files = Scanner(logger).scan(tmp_path, ['**/*.{jpg,jpeg,JPG,JPEG,png}'])

        names = [f.relative_to(tmp_path.resolve()).as_posix() for f in files]
        assert names == ['a.jpg', 'c.png', 'sub/e.jpeg', 'sub/f.JPG']

    def test_sorted_absolute(self, tmp_path, logger):
        """Test results are absolute and sorted."""
        _touch(tmp_path, 'b.jpg', 'a.jpg')

        files = Scanner(logger).scan(tmp_path, ['*.jpg'])

        assert all(f.is_absolute() for f in files)
        assert files == sorted(files)

    def test_negated_pattern(self, tmp_path, logger):
        """Test '!' patterns exclude matches."""
        _touch(tmp_path, 'a.jpg', 'drafts/b.jpg')

        files = Scanner(logger).scan(tmp_path, ['**/*.jpg', '!drafts/**/*.jpg'])

        assert [f.name for f in files] == ['a.jpg']

    def test_exclude_dir(self, tmp_path, logger):
        """Test an output root nested in the input root is not scanned."""
        _touch(tmp_path, 'a.jpg', 'public/a-640w.jpg')

        files = Scanner(logger).scan(tmp_path, ['**/*.jpg'], exclude_dir=tmp_path / 'public')

        assert [f.name for f in files] == ['a.jpg']

    def test_exclude_dir_same_as_root(self, tmp_path, logger):
        """Test output root equal to input root excludes nothing."""
        _touch(tmp_path, 'a.jpg')

        files = Scanner(logger).scan(tmp_path, ['*.jpg'], exclude_dir=tmp_path)

        assert len(files) == 1

    def test_exclude_dir_containing_root(self, tmp_path, logger):
        """Test an output root above the input root excludes nothing."""
        _touch(tmp_path, 'src/a.jpg', 'src/sub/b.jpg')

        files = Scanner(logger).scan(tmp_path / 'src', ['**/*.jpg'], exclude_dir=tmp_path)

        assert [f.name for f in files] == ['a.jpg', 'b.jpg']

    def test_exclude_dir_outside_root(self, tmp_path, logger):
        """Test an unrelated output root excludes nothing."""
        _touch(tmp_path, 'src/a.jpg')

        files = Scanner(logger).scan(tmp_path / 'src', ['*.jpg'], exclude_dir=tmp_path / 'public')

        assert len(files) == 1

    def test_no_matches(self, tmp_path, logger):
        """Test zero matches is an empty list."""
        assert Scanner(logger).scan(tmp_path, ['**/*.jpg']) == []

    def test_missing_root(self, tmp_path, logger):
        """Test a missing root is fatal."""
        with pytest.raises(InputRootError) as exc_info:
            Scanner(logger).scan(tmp_path / 'missing', ['*.jpg'])

        assert 'does not exist' in str(exc_info.value)

    def test_root_is_file(self, tmp_path, logger):
        """Test a file as root is fatal."""
        _touch(tmp_path, 'a.jpg')

        with pytest.raises(InputRootError) as exc_info:
            Scanner(logger).scan(tmp_path / 'a.jpg', ['*.jpg'])

        assert 'is not a directory' in str(exc_info.value)
