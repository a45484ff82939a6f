"""
End-to-end flows across signup, projects, membership, bugs and the widget.
"""


class TestEndToEnd:
    def test_adding_a_member_opens_the_bug_list(self, register):
        ac, _ = register("alice@acme.io", "Alice")
        demo = ac.post("/api/projects", json={"name": "Demo", "isPublic": False}).get_json()["project"]
        assert demo["slug"] == "demo"

        bc, _ = register("bob@acme.io", "Bob")
        assert bc.get(f"/api/bugs/project/{demo['id']}").status_code == 403

        res = ac.post(f"/api/members/{demo['id']}", json={"email": "bob@acme.io", "role": "MEMBER"})
        assert res.status_code == 201
        assert bc.get(f"/api/bugs/project/{demo['id']}").status_code == 200

    def test_viewer_upgraded_to_member_can_report(self, register):
        ac, _ = register("alice@acme.io", "Alice")
        demo = ac.post("/api/projects", json={"name": "Demo"}).get_json()["project"]
        bc, bob = register("bob@acme.io", "Bob")
        ac.post(f"/api/members/{demo['id']}", json={"email": "bob@acme.io", "role": "VIEWER"})

        payload = {"title": "Login button misaligned", "projectId": demo["id"]}
        assert bc.post("/api/bugs", json=payload).status_code == 403

        assert ac.put(f"/api/members/{demo['id']}/{bob['id']}", json={"role": "MEMBER"}).status_code == 200
        res = bc.post("/api/bugs", json=payload)
        assert res.status_code == 201
        assert res.get_json()["bug"]["status"] == "TRIAGE"

    def test_anonymous_widget_report(self, register, client):
        ac, _ = register("alice@acme.io", "Alice")
        demo = ac.post("/api/projects", json={"name": "Demo"}).get_json()["project"]
        token = ac.post(f"/api/widget/settings/{demo['slug']}/generate").get_json()["widget"]["token"]

        res = client.post(f"/api/widget/{token}/bugs", json={"title": "X happened"},
                          headers={"Origin": "https://customer.io"})
        assert res.status_code == 201
        bug = ac.get(f"/api/bugs/{res.get_json()['bug']['id']}").get_json()["bug"]
        assert bug["reporterId"] is None
        assert bug["source"] == "CUSTOMER_REPORT"
        assert bug["status"] == "TRIAGE"

    def test_duplicate_pending_access_request(self, register):
        ac, _ = register("alice@acme.io", "Alice")
        public = ac.post("/api/projects", json={"name": "Open Demo", "isPublic": True}).get_json()["project"]
        cc, _ = register("carol@acme.io", "Carol")

        first = cc.post(f"/api/members/{public['id']}/request", json={"message": "Hi"})
        assert first.status_code == 201
        second = cc.post(f"/api/members/{public['id']}/request", json={"message": "Hi again"})
        assert second.status_code == 400

    def test_invite_signup_and_report(self, register, app):
        ac, _ = register("alice@acme.io", "Alice")
        demo = ac.post("/api/projects", json={"name": "Demo"}).get_json()["project"]
        invite = ac.post(f"/api/members/{demo['id']}", json={"email": "dave@acme.io", "role": "MEMBER"})
        assert invite.get_json()["message"] == "Invitation sent successfully"

        dc = app.test_client()
        signup = dc.post("/api/auth/signup", json={"email": "dave@acme.io", "password": "s3cret-pass",
                                                   "name": "Dave"})
        assert signup.get_json()["invitationsAccepted"] == 1
        projects = dc.get("/api/projects").get_json()["projects"]
        assert [p["id"] for p in projects] == [demo["id"]]
        assert dc.post("/api/bugs", json={"title": "Found on day one", "projectId": demo["id"]}).status_code == 201
