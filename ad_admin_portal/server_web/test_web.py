from __future__ import annotations
from unittest import IsolatedAsyncioTestCase
import json
import httpx

from . import app

COOKIE = {"Cookie": 'Authorization="Bearer token"'}


class WebTest(IsolatedAsyncioTestCase):
    def setUp(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        app.client = httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            base_url="http://api.test",
        )
        self.client = app.test_client()

    async def asyncTearDown(self):
        await app.client.aclose()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"detail": "Not Found"})
        return self.routes[key]

    def events(self, response) -> dict:
        return json.loads(response.headers["HX-Trigger"])

    async def test_login(self):
        self.routes["POST", "/token"] = httpx.Response(
            200, json={"access_token": "abc", "token_type": "bearer"}
        )
        response = await self.client.post(
            "/", form={"username": "admin", "password": "secret"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["HX-Redirect"], "/users")
        self.assertIn("Authorization=", response.headers["Set-Cookie"])
        self.assertIn("Bearer abc", response.headers["Set-Cookie"])
        (api_request,) = self.requests
        self.assertEqual(
            dict(httpx.QueryParams(api_request.content.decode())),
            {"username": "admin", "password": "secret"},
        )

    async def test_login_failure(self):
        self.routes["POST", "/token"] = httpx.Response(
            401, json={"detail": "Incorrect username or password"}
        )
        response = await self.client.post(
            "/", form={"username": "admin", "password": "nope"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            self.events(response),
            {"errorEvent": {"errors": ["Incorrect username or password"]}},
        )

    async def test_login_form_invalid(self):
        response = await self.client.post("/", form={"username": "admin"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.requests, [])

    async def test_expired_token_shows_login(self):
        self.routes["GET", "/users"] = httpx.Response(
            401, json={"detail": "Could not validate credentials"}
        )
        response = await self.client.get("/users?q=bob", headers=COOKIE)
        self.assertEqual(response.status_code, 200)
        self.assertIn("Sign in", await response.get_data(as_text=True))

    async def test_users(self):
        self.routes["GET", "/users"] = httpx.Response(
            200,
            json=[
                {
                    "sam": "bob",
                    "display_name": "Bob Builder",
                    "email": "bob@example.lan",
                    "enabled": False,
                    "distinguished_name": "CN=Bob,DC=example,DC=lan",
                }
            ],
        )
        response = await self.client.get(
            "/users?q=bob", headers={**COOKIE, "HX-Request": "true"}
        )
        self.assertEqual(response.status_code, 200)
        body = await response.get_data(as_text=True)
        self.assertIn("Bob Builder", body)
        self.assertNotIn("<nav>", body)
        self.assertEqual(self.requests[0].url.params["q"], "bob")
        self.assertEqual(
            self.requests[0].headers["Authorization"], "Bearer token"
        )

    async def test_user_action(self):
        self.routes["POST", "/user/bob/disable"] = httpx.Response(204)
        response = await self.client.post("/user/bob/disable", headers=COOKIE)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            self.events(response),
            {"successEvent": {"message": "User disabled"}, "updateUser": {}},
        )

    async def test_name_is_quoted_in_api_path(self):
        self.routes["POST", "/user/a#b/disable"] = httpx.Response(204)
        response = await self.client.post("/user/a%23b/disable", headers=COOKIE)
        self.assertEqual(response.status_code, 200)
        (api_request,) = self.requests
        self.assertEqual(api_request.url.raw_path, b"/user/a%23b/disable")

    async def test_group_name_is_quoted_in_api_path(self):
        self.routes["DELETE", "/group/50%off"] = httpx.Response(204)
        response = await self.client.delete("/group/50%25off", headers=COOKIE)
        self.assertEqual(response.status_code, 200)
        (api_request,) = self.requests
        self.assertEqual(api_request.url.raw_path, b"/group/50%25off")

    async def test_unknown_user_action(self):
        response = await self.client.post("/user/bob/explode", headers=COOKIE)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.requests, [])

    async def test_reset_password_rejected(self):
        self.routes["POST", "/user/bob/password"] = httpx.Response(
            400, json={"detail": "Failed to reset password: constraintViolation"}
        )
        response = await self.client.post(
            "/user/bob/password",
            headers=COOKIE,
            form={"new": "x", "confirm": "x", "must_change": "on"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            json.loads(self.requests[0].content),
            {"new": "x", "confirm": "x", "must_change": True},
        )

    async def test_group_members(self):
        self.routes["POST", "/group/Sales/members"] = httpx.Response(201)
        response = await self.client.post(
            "/group/Sales/members",
            headers=COOKIE,
            form={"members": "user:bob,group:Support,printer:p1"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            json.loads(self.requests[0].content),
            [
                {"type": "user", "sam": "bob"},
                {"type": "group", "sam": "Support"},
            ],
        )
        self.assertIn("updateGroup", self.events(response))

    async def test_create_user_like(self):
        self.routes["GET", "/user/alice/template"] = httpx.Response(
            200,
            json={
                "template_sam": "alice",
                "ou_dn": "OU=Dev,OU=SPB,DC=x,DC=lan",
                "job_title": "Engineer",
            },
        )
        self.routes["GET", "/ui/ous"] = httpx.Response(
            200,
            json=[
                {
                    "name": "SPB",
                    "distinguished_name": "OU=SPB,DC=x,DC=lan",
                    "expanded": True,
                    "children": [
                        {
                            "name": "Dev",
                            "distinguished_name": "OU=Dev,OU=SPB,DC=x,DC=lan",
                            "expanded": True,
                            "children": [],
                        }
                    ],
                }
            ],
        )
        response = await self.client.get("/users/new?like=alice", headers=COOKIE)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            self.requests[1].url.params["selected"], "OU=Dev,OU=SPB,DC=x,DC=lan"
        )
        body = await response.get_data(as_text=True)
        self.assertIn("<details open>", body)
        self.assertIn("SPB / Dev", body)
        self.assertIn('value="Engineer"', body)
        self.assertIn('name="template_sam" value="alice"', body)
        self.assertIn('value="OU=Dev,OU=SPB,DC=x,DC=lan" checked>', body)
        self.assertNotIn('value="OU=SPB,DC=x,DC=lan" checked', body)

    async def test_create_user(self):
        self.routes["POST", "/user"] = httpx.Response(201, json={"sam": "jdoe"})
        response = await self.client.post(
            "/users/new",
            headers=COOKIE,
            form={"sam": "jdoe", "password": "x", "confirm_password": "x"},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.headers["HX-Redirect"], "/user/jdoe")

    async def test_api_unreachable(self):
        def unreachable(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        await app.client.aclose()
        app.client = httpx.AsyncClient(
            transport=httpx.MockTransport(unreachable),
            base_url="http://api.test",
        )
        response = await self.client.get("/users", headers=COOKIE)
        self.assertEqual(response.status_code, 503)
