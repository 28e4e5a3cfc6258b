import pytest

from fast3r_engine.media.store import MediaStore, extension_for, parse_data_uri, to_data_uri


def test_put_read_release(tmp_path):
    store = MediaStore(tmp_path / "media")
    ref = store.put(b"mp4", "video/mp4")

    assert ref.url.startswith("blob:fast3r/")
    assert ref.path.suffix == ".mp4"
    assert store.read(ref.url) == b"mp4"

    store.release(ref.url)
    assert not ref.path.exists()
    with pytest.raises(KeyError):
        store.read(ref.url)


def test_clear_removes_all_files(tmp_path):
    store = MediaStore(tmp_path)
    refs = [store.put(b"x", "image/png"), store.put(b"y", "image/jpeg")]
    store.clear()
    assert all(not ref.path.exists() for ref in refs)
    assert store.resolve(refs[0].url) is None


def test_data_uri_helpers():
    uri = to_data_uri(b"hello", "image/jpeg")
    assert uri.startswith("data:image/jpeg;base64,")
    assert parse_data_uri(uri) == (b"hello", "image/jpeg")
    with pytest.raises(ValueError):
        parse_data_uri("blob:fast3r/abc")


def test_extension_for_known_types():
    assert extension_for("image/jpeg") == ".jpg"
    assert extension_for("video/mp4") == ".mp4"
    assert extension_for(None) == ".bin"
