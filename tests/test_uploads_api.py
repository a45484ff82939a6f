"""
Screenshot upload tests — storage status, single/multi upload, limits,
permissions, serving and deletion.
"""

import io

from bugfixer.integrations.image_storage import MAX_IMAGE_BYTES

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
FILES_BASE = "http://localhost:7070/api/upload/files/"


def _image(name="Shot.PNG", content_type="image/png", data=PNG):
    return (io.BytesIO(data), name, content_type)


def _upload(c, project_id, **extra):
    form = {"projectId": project_id, "image": _image()}
    form.update(extra)
    return c.post("/api/upload/image", data=form, content_type="multipart/form-data")


class TestStatus:
    def test_unconfigured(self, client):
        body = client.get("/api/upload/status").get_json()
        assert body["configured"] is False
        assert body["limits"] == {
            "maxFileSize": "10MB",
            "maxFiles": 5,
            "allowedTypes": ["image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml"],
        }

    def test_upload_without_storage(self, owner, project):
        c, _ = owner
        res = _upload(c, project["id"])
        assert res.status_code == 503
        assert res.get_json()["error"] == "Image upload service is not configured"

    def test_configured(self, client, storage):
        assert client.get("/api/upload/status").get_json()["configured"] is True


class TestUpload:
    def test_single_image_is_served(self, owner, project, storage, client):
        c, _ = owner
        res = _upload(c, project["id"])
        assert res.status_code == 201
        image = res.get_json()["image"]
        assert image == {
            "url": f"{FILES_BASE}{project['id']}/pending/1700000000000_shot.png",
            "originalName": "Shot.PNG",
            "size": len(PNG),
            "contentType": "image/png",
        }

        served = client.get(image["url"].replace("http://localhost:7070", ""))
        assert served.status_code == 200
        assert served.data == PNG
        assert served.mimetype == "image/png"

    def test_url_fills_bug_screenshots(self, owner, project, storage):
        c, _ = owner
        url = _upload(c, project["id"]).get_json()["image"]["url"]
        bug = c.post("/api/bugs", json={"title": "Broken checkout", "projectId": project["id"],
                                        "screenshots": [url]}).get_json()["bug"]
        assert bug["screenshots"] == [url]

    def test_bug_folder(self, owner, project, storage):
        c, _ = owner
        bug = c.post("/api/bugs", json={"title": "Broken checkout", "projectId": project["id"]}).get_json()["bug"]
        url = _upload(c, project["id"], bugId=bug["id"]).get_json()["image"]["url"]
        assert f"/{project['id']}/{bug['id']}/" in url

    def test_bug_from_other_project(self, owner, project, storage, register):
        c, _ = owner
        oc, _ = register("oscar@acme.io")
        other = oc.post("/api/projects", json={"name": "Other"}).get_json()["project"]
        foreign = oc.post("/api/bugs", json={"title": "Not yours", "projectId": other["id"]}).get_json()["bug"]
        res = _upload(c, project["id"], bugId=foreign["id"])
        assert res.status_code == 404
        assert res.get_json()["error"] == "Bug not found"

    def test_multiple_images(self, owner, project, storage):
        c, _ = owner
        res = c.post("/api/upload/images", data={
            "projectId": project["id"],
            "images": [_image("a.png"), _image("b.gif", "image/gif")],
        }, content_type="multipart/form-data")
        assert res.status_code == 201
        body = res.get_json()
        assert body["message"] == "2 image(s) uploaded successfully"
        assert [i["originalName"] for i in body["images"]] == ["a.png", "b.gif"]

    def test_too_many_images(self, owner, project, storage):
        c, _ = owner
        res = c.post("/api/upload/images", data={
            "projectId": project["id"],
            "images": [_image(f"{i}.png") for i in range(6)],
        }, content_type="multipart/form-data")
        assert res.status_code == 400
        assert res.get_json()["error"] == "Too many files. Maximum is 5 files per upload"

    def test_invalid_type(self, owner, project, storage, tmp_path):
        c, _ = owner
        res = c.post("/api/upload/image", data={
            "projectId": project["id"], "image": _image("notes.txt", "text/plain", b"hello"),
        }, content_type="multipart/form-data")
        assert res.status_code == 400
        assert res.get_json()["details"][0]["message"].startswith("Invalid file type: text/plain")
        assert not any(tmp_path.rglob("*.txt"))

    def test_too_large(self, owner, project, storage):
        c, _ = owner
        res = c.post("/api/upload/image", data={
            "projectId": project["id"], "image": _image(data=b"\x00" * (MAX_IMAGE_BYTES + 1)),
        }, content_type="multipart/form-data")
        assert res.status_code == 400
        assert res.get_json()["details"][0]["message"] == "File too large. Maximum size is 10MB"

    def test_missing_file_and_project(self, owner, storage):
        c, _ = owner
        res = c.post("/api/upload/image", data={}, content_type="multipart/form-data")
        assert res.status_code == 400
        assert res.get_json()["details"][0]["field"] == "projectId"

    def test_missing_file(self, owner, project, storage):
        c, _ = owner
        res = c.post("/api/upload/image", data={"projectId": project["id"]}, content_type="multipart/form-data")
        assert res.status_code == 400
        assert res.get_json()["error"] == "No image file provided"

    def test_viewer_and_outsider_denied(self, owner, project, storage, member_of, register):
        c, _ = owner
        vc, _ = member_of(c, project["id"], "vera@acme.io", "VIEWER")
        oc, _ = register("oscar@acme.io")
        assert _upload(vc, project["id"]).status_code == 403
        assert _upload(oc, project["id"]).status_code == 403

    def test_requires_auth(self, project, storage, client):
        assert _upload(client, project["id"]).status_code == 401


class TestDelete:
    def test_delete_then_gone(self, owner, project, storage, client):
        c, _ = owner
        url = _upload(c, project["id"]).get_json()["image"]["url"]

        res = c.delete("/api/upload/image", json={"url": url})
        assert res.status_code == 200
        assert res.get_json()["message"] == "Image deleted successfully"
        assert client.get(url.replace("http://localhost:7070", "")).status_code == 404
        assert c.delete("/api/upload/image", json={"url": url}).status_code == 404

    def test_member_of_other_project_cannot_delete(self, owner, project, storage, register):
        c, _ = owner
        url = _upload(c, project["id"]).get_json()["image"]["url"]
        oc, _ = register("oscar@acme.io")
        assert oc.delete("/api/upload/image", json={"url": url}).status_code == 403

    def test_foreign_url(self, owner, storage):
        c, _ = owner
        res = c.delete("/api/upload/image", json={"url": "https://cdn.example.com/x.png"})
        assert res.status_code == 404
        assert res.get_json()["error"] == "Image not found"

    def test_url_required(self, owner, storage):
        c, _ = owner
        res = c.delete("/api/upload/image", json={})
        assert res.status_code == 400
        assert res.get_json()["details"] == [{"field": "url", "message": "Image URL is required"}]

    def test_unknown_file_not_served(self, storage, client):
        assert client.get("/api/upload/files/nope/pending/1_x.png").status_code == 404
