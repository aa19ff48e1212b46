import io

from PIL import Image
from sqlmodel import Session

from conftest import as_user, upload


def _png(width=1200, height=900, color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def _stored_name(file_id):
    from sharebox import db
    from sharebox.models import FileRecord

    with Session(db.engine) as session:
        return session.get(FileRecord, file_id).stored_name


def test_image_upload_creates_bounded_thumbnail(client):
    response = upload(client, files=[("files", ("photo.png", _png(), "image/png"))])
    assert response.status_code == 201
    file_id = response.json()["files"][0]["id"]
    stored_name = _stored_name(file_id)

    thumb = client.upload_dir / "thumbnails" / f"thumb_{stored_name}"
    assert thumb.is_file()
    with Image.open(thumb) as img:
        assert img.format == "JPEG"
        assert max(img.size) <= 200
    # JPEG bytes under the original suffix
    assert thumb.suffix == ".png"


def test_image_preview_is_downscaled_jpeg(client):
    file_id = upload(client, files=[("files", ("photo.png", _png(), "image/png"))]).json()["files"][0]["id"]

    response = client.get(f"/api/files/preview/{file_id}", headers=as_user())
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    with Image.open(io.BytesIO(response.content)) as img:
        assert max(img.size) == 800

    thumb = client.get(f"/api/files/preview/{file_id}", params={"thumbnail": "true"}, headers=as_user())
    assert thumb.status_code == 200
    with Image.open(io.BytesIO(thumb.content)) as img:
        assert max(img.size) <= 200


def test_broken_image_still_uploads_and_previews_original(client):
    payload = b"not really a png"
    response = upload(client, files=[("files", ("broken.png", payload, "image/png"))])
    assert response.status_code == 201
    file_id = response.json()["files"][0]["id"]
    stored_name = _stored_name(file_id)
    assert not (client.upload_dir / "thumbnails" / f"thumb_{stored_name}").exists()

    preview = client.get(f"/api/files/preview/{file_id}", headers=as_user())
    assert preview.status_code == 200
    assert preview.content == payload


def test_svg_is_previewed_without_rendering(client):
    svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"/>'
    file_id = upload(client, files=[("files", ("icon.svg", svg, "image/svg+xml"))]).json()["files"][0]["id"]

    preview = client.get(f"/api/files/preview/{file_id}", headers=as_user())
    assert preview.status_code == 200
    assert preview.content == svg
    assert not (client.upload_dir / "thumbnails").exists()
