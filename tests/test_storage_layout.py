"""Tests for date-partitioned storage layout."""

from datetime import datetime

import pytest

from photobackup.exceptions import StorageError
from photobackup.storage_layout import StorageLayout, epoch_millis, split_client_name

NOW = datetime(2024, 3, 7, 9, 5, 1, 250000)


@pytest.fixture
def layout(backup_root):
    return StorageLayout(backup_root)


class TestResolveDestination:
    """Tests for the YYYY-MM-DD partition."""

    def test_creates_zero_padded_date_directory(self, layout, backup_root):
        destination = layout.resolve_destination(NOW)

        assert destination == backup_root / '2024-03-07'
        assert destination.is_dir()

    def test_existing_directory_is_reused(self, layout):
        first = layout.resolve_destination(NOW)
        (first / 'keep.jpg').write_bytes(b'x')

        second = layout.resolve_destination(NOW)

        assert second == first
        assert (second / 'keep.jpg').exists()

    def test_unwritable_root_raises_storage_error(self, tmp_path):
        blocker = tmp_path / 'not_a_dir'
        blocker.write_text('file in the way')
        layout = StorageLayout(blocker)

        with pytest.raises(StorageError, match="cannot create date directory"):
            layout.resolve_destination(NOW)


class TestEnsureRoot:
    """Tests for backup root creation."""

    def test_creates_nested_root(self, tmp_path):
        root = tmp_path / 'a' / 'b' / 'backup'

        assert StorageLayout(root).ensure_root() == root
        assert root.is_dir()

    def test_root_blocked_by_file(self, tmp_path):
        blocker = tmp_path / 'backup'
        blocker.write_text('')

        with pytest.raises(StorageError, match="cannot create backup root"):
            StorageLayout(blocker).ensure_root()


class TestBuildFileName:
    """Tests for <epochMillis>-<base><ext> naming."""

    def test_declared_name_wins(self, layout):
        name = layout.build_file_name('IMG_0001.HEIC', 'upload.jpg', NOW)

        assert name == f'{epoch_millis(NOW)}-IMG_0001.HEIC'

    def test_empty_declared_name_falls_back_to_original(self, layout):
        name = layout.build_file_name('', 'beach.png', NOW)

        assert name == f'{epoch_millis(NOW)}-beach.png'

    def test_missing_extension_defaults_to_jpg(self, layout):
        name = layout.build_file_name(None, 'IMG_0042', NOW)

        assert name == f'{epoch_millis(NOW)}-IMG_0042.jpg'

    def test_no_names_at_all(self, layout):
        assert layout.build_file_name(None, None, NOW) == f'{epoch_millis(NOW)}-.jpg'

    def test_directory_components_are_dropped(self, layout):
        name = layout.build_file_name('../../etc/passwd.png', 'x.jpg', NOW)

        assert name == f'{epoch_millis(NOW)}-passwd.png'
        assert '/' not in name

    def test_windows_separators_are_dropped(self, layout):
        name = layout.build_file_name(None, 'C:\\Users\\me\\photo.jpeg', NOW)

        assert name == f'{epoch_millis(NOW)}-photo.jpeg'

    def test_timestamp_is_epoch_millis(self, layout):
        millis = int(layout.build_file_name(None, 'a.jpg', NOW).split('-')[0])

        assert millis == int(NOW.timestamp() * 1000)


class TestSplitClientName:

    @pytest.mark.parametrize('name, expected', [
        ('photo.jpg', ('photo', '.jpg')),
        ('archive.tar.gz', ('archive.tar', '.gz')),
        ('.hidden', ('.hidden', '')),
        ('noext', ('noext', '')),
        ('dir/sub/pic.PNG', ('pic', '.PNG')),
    ])
    def test_split(self, name, expected):
        assert split_client_name(name) == expected


def test_relative_path_is_posix(layout, backup_root):
    path = backup_root / '2024-03-07' / '1-a.jpg'

    assert layout.relative_path(path) == '2024-03-07/1-a.jpg'
