import io

import pytest


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 Bytes"), (1023, "1023 Bytes"), (1024, "1 KB"), (1536, "1.5 KB"), (10 * 1024 * 1024, "10 MB")],
)
def test_format_size(size, expected):
    from sharebox.services import files

    assert files.format_size(size) == expected


def test_stored_names_ignore_client_path(client):
    from sharebox import storage

    name = storage.reserve_stored_name("../../etc/passwd.TXT")
    assert "/" not in name
    assert name.endswith(".txt")
    assert storage.reserve_stored_name("no-extension").endswith(".bin")


def test_write_stream_refuses_to_overwrite(client):
    from sharebox import storage
    from sharebox.core import exceptions

    name = storage.reserve_stored_name("a.txt")
    assert storage.write_stream(name, io.BytesIO(b"first")) == 5
    with pytest.raises(exceptions.StorageWriteFailed):
        storage.write_stream(name, io.BytesIO(b"second"))
    assert storage.path_for(name).read_bytes() == b"first"


def test_path_traversal_is_rejected(client):
    from sharebox import storage

    assert storage.exists("../outside.txt") is False
    assert storage.remove_file("../outside.txt") is False
