"""
Tests for the Deployment CRUD, scale and pod endpoints.
"""

import json

import pytest

from kubedeploy.modules.gateway import GatewayError, GatewayErrorKind

from conftest import make_deployment, make_pod

BASE = "/api/v1/namespaces"


def post_json(client, namespace, manifest):
    return client.post(
        f"{BASE}/{namespace}/deployments",
        content=json.dumps(manifest),
        headers={"Content-Type": "application/json"},
    )


class TestListDeployments:
    def test_empty_namespace_returns_empty_list(self, client):
        response = client.get(f"{BASE}/default/deployments")

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == 200
        assert body["message"] == "success"
        assert body["data"] == {"items": [], "total": 0}

    def test_lists_only_requested_namespace(self, client):
        post_json(client, "default", make_deployment(name="web"))
        post_json(client, "default", make_deployment(name="api"))
        post_json(client, "other", make_deployment(name="db", namespace="other"))

        data = client.get(f"{BASE}/default/deployments").json()["data"]

        assert data["total"] == 2
        assert sorted(item["name"] for item in data["items"]) == ["api", "web"]

    def test_upstream_failure_is_500(self, client, gateway):
        async def broken_list(namespace):
            raise GatewayError(GatewayErrorKind.OTHER, "connection refused")

        gateway.list = broken_list
        response = client.get(f"{BASE}/default/deployments")

        assert response.status_code == 500
        assert response.json() == {
            "code": 500,
            "message": "Failed to list Deployments: connection refused",
        }


class TestCreateDeployment:
    def test_create_json(self, client, gateway):
        response = post_json(client, "default", make_deployment())

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "web"
        assert data["namespace"] == "default"
        assert data["replicas"] == 2
        assert data["uid"]
        assert data["containers"] == [{"name": "web", "image": "nginx:1.25"}]
        assert ("default", "web") in gateway.deployments

    def test_create_yaml(self, client, gateway):
        body = """
apiVersion: apps/v1
kind: Deployment
metadata:
  name: api
spec:
  replicas: 3
  selector:
    matchLabels: {app: api}
  template:
    metadata:
      labels: {app: api}
    spec:
      containers:
        - name: api
          image: api:2
"""
        response = client.post(
            f"{BASE}/team-a/deployments", content=body, headers={"Content-Type": "application/yaml"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["namespace"] == "team-a"
        assert gateway.deployments[("team-a", "api")]["metadata"]["namespace"] == "team-a"

    def test_create_then_get_returns_same_object(self, client):
        created = post_json(client, "default", make_deployment()).json()["data"]
        fetched = client.get(f"{BASE}/default/deployments/web").json()["data"]

        assert fetched == created

    def test_duplicate_is_409(self, client):
        post_json(client, "default", make_deployment())
        response = post_json(client, "default", make_deployment())

        assert response.status_code == 409
        assert response.json() == {"code": 409, "message": "Deployment already exists"}

    @pytest.mark.parametrize("content_type", ["text/plain", "application/x-www-form-urlencoded"])
    def test_unsupported_content_type(self, client, gateway, content_type):
        response = client.post(
            f"{BASE}/default/deployments",
            content=json.dumps(make_deployment()),
            headers={"Content-Type": content_type},
        )

        assert response.status_code == 415
        assert gateway.calls == []

    @pytest.mark.parametrize("body", ["", "{broken", "[1, 2]", '{"kind": "Service"}'])
    def test_unparseable_body(self, client, gateway, body):
        response = client.post(
            f"{BASE}/default/deployments", content=body, headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["message"].startswith("Failed to parse Deployment")
        assert gateway.calls == []

    def test_invalid_manifest_name(self, client, gateway):
        response = post_json(client, "default", make_deployment(name="Bad_Name"))

        assert response.status_code == 400
        assert gateway.calls == []

    def test_namespace_mismatch(self, client, gateway):
        response = post_json(client, "default", make_deployment(namespace="other"))

        assert response.status_code == 400
        assert gateway.calls == []


class TestInvalidNamespace:
    """Malformed namespaces are rejected before any gateway call."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/Bad_NS!/deployments"),
            ("POST", "/Bad_NS!/deployments"),
            ("GET", "/Bad_NS!/deployments/web"),
            ("PUT", "/Bad_NS!/deployments/web"),
            ("DELETE", "/Bad_NS!/deployments/web"),
            ("PATCH", "/Bad_NS!/deployments/web/scale"),
            ("GET", "/Bad_NS!/deployments/web/pods"),
            ("GET", "/Bad_NS!/deployments/watch"),
            ("GET", "/-leading/deployments"),
        ],
    )
    def test_rejected_without_gateway_call(self, client, gateway, method, path):
        kwargs = {}
        if method in ("POST", "PUT"):
            kwargs = {"content": json.dumps(make_deployment()), "headers": {"Content-Type": "application/json"}}
        elif method == "PATCH":
            kwargs = {"json": {"replicas": 1}}

        response = client.request(method, BASE + path, **kwargs)

        assert response.status_code == 400
        assert response.json() == {"code": 400, "message": "Invalid namespace format"}
        assert gateway.calls == []

    @pytest.mark.parametrize("method", ["GET", "DELETE"])
    def test_invalid_name(self, client, gateway, method):
        response = client.request(method, f"{BASE}/default/deployments/Bad_Name")

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid Deployment name format"
        assert gateway.calls == []


class TestGetDeployment:
    def test_missing_is_404(self, client):
        response = client.get(f"{BASE}/default/deployments/ghost")

        assert response.status_code == 404
        assert response.json() == {"code": 404, "message": "Deployment not found"}

    def test_status_fields_projected(self, client, gateway):
        post_json(client, "default", make_deployment())
        gateway.deployments[("default", "web")]["status"] = {
            "readyReplicas": 2,
            "availableReplicas": 2,
            "updatedReplicas": 2,
            "conditions": [{"type": "Available", "status": "True", "reason": "MinimumReplicasAvailable"}],
        }

        data = client.get(f"{BASE}/default/deployments/web").json()["data"]

        assert data["readyReplicas"] == 2
        assert data["conditions"][0]["type"] == "Available"
        assert data["strategy"] == "RollingUpdate"
        assert data["selector"] == {"app": "web"}
        assert "status" not in data

    def test_unserializable_object_is_500(self, client, gateway):
        post_json(client, "default", make_deployment())
        gateway.deployments[("default", "web")]["spec"]["replicas"] = "lots"

        response = client.get(f"{BASE}/default/deployments/web")

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to serialize response"


class TestUpdateDeployment:
    def put_json(self, client, manifest, name="web"):
        return client.put(
            f"{BASE}/default/deployments/{name}",
            content=json.dumps(manifest),
            headers={"Content-Type": "application/json"},
        )

    def test_update(self, client):
        post_json(client, "default", make_deployment())
        response = self.put_json(client, make_deployment(replicas=4, image="nginx:1.27"))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["replicas"] == 4
        assert data["containers"][0]["image"] == "nginx:1.27"

    def test_name_defaults_from_path(self, client, gateway):
        post_json(client, "default", make_deployment())
        manifest = make_deployment(replicas=3)
        del manifest["metadata"]["name"]

        response = self.put_json(client, manifest)

        assert response.status_code == 200
        assert gateway.deployments[("default", "web")]["spec"]["replicas"] == 3

    def test_name_mismatch(self, client, gateway):
        response = self.put_json(client, make_deployment(name="api"))

        assert response.status_code == 400
        assert gateway.calls == []

    def test_missing_is_404(self, client):
        response = self.put_json(client, make_deployment())

        assert response.status_code == 404
        assert "may have been deleted" in response.json()["message"]

    def test_stale_resource_version_is_409(self, client):
        post_json(client, "default", make_deployment())
        manifest = make_deployment()
        manifest["metadata"]["resourceVersion"] = "stale"

        response = self.put_json(client, manifest)

        assert response.status_code == 409
        assert "resourceVersion" in response.json()["message"]


class TestDeleteDeployment:
    def test_delete_then_delete_again(self, client):
        post_json(client, "default", make_deployment())

        first = client.delete(f"{BASE}/default/deployments/web")
        second = client.delete(f"{BASE}/default/deployments/web")
        third = client.delete(f"{BASE}/default/deployments/web")

        assert first.status_code == 200
        assert first.json()["data"] == {"message": "deleted"}
        assert second.status_code == 404
        assert third.status_code == 404
        assert client.get(f"{BASE}/default/deployments/web").status_code == 404


class TestScaleDeployment:
    def test_scale(self, client, gateway):
        post_json(client, "default", make_deployment())

        response = client.patch(f"{BASE}/default/deployments/web/scale", json={"replicas": 7})

        assert response.status_code == 200
        assert response.json()["data"]["replicas"] == 7
        assert ("scale", ("default", "web", 7)) in gateway.calls

    def test_scale_to_zero(self, client):
        post_json(client, "default", make_deployment())
        response = client.patch(f"{BASE}/default/deployments/web/scale", json={"replicas": 0})

        assert response.json()["data"]["replicas"] == 0

    @pytest.mark.parametrize("body", [{"replicas": -1}, {"replicas": "many"}, {}])
    def test_invalid_replicas(self, client, gateway, body):
        response = client.patch(f"{BASE}/default/deployments/web/scale", json=body)

        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid request")
        assert gateway.calls == []

    def test_missing_is_404(self, client):
        response = client.patch(f"{BASE}/default/deployments/ghost/scale", json={"replicas": 1})
        assert response.status_code == 404


class TestDeploymentPods:
    def test_lists_pods(self, client, gateway):
        post_json(client, "default", make_deployment())
        gateway.pods["default"] = [make_pod("web-1", labels={"app": "web"}), make_pod("web-2")]

        data = client.get(f"{BASE}/default/deployments/web/pods").json()["data"]

        assert data["total"] == 2
        pod = data["items"][0]
        assert pod["name"] == "web-1"
        assert pod["phase"] == "Running"
        assert pod["podIp"] == "10.0.0.5"
        assert pod["nodeName"] == "node-1"
        assert pod["ready"] is True
        assert pod["restartCount"] == 1

    @pytest.mark.parametrize("limit,expected", [("1", 1), ("abc", 500), ("0", 500), ("-3", 500), (None, 500)])
    def test_limit_parsing(self, client, gateway, limit, expected):
        post_json(client, "default", make_deployment())
        gateway.calls.clear()

        params = {"limit": limit} if limit is not None else {}
        response = client.get(f"{BASE}/default/deployments/web/pods", params=params)

        assert response.status_code == 200
        assert gateway.calls == [("pod_list", ("default", "web", expected))]

    def test_missing_deployment_is_404(self, client):
        response = client.get(f"{BASE}/default/deployments/ghost/pods")
        assert response.status_code == 404


class TestService:
    def test_healthz(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/v1/nothing-here")

        assert response.status_code == 404
        assert response.json()["code"] == 404

    def test_gateway_missing_is_503(self, gateway):
        from fastapi.testclient import TestClient

        from kubedeploy.main import create_app

        from conftest import StaticConfigProvider

        app = create_app(gateway=gateway, config_provider=StaticConfigProvider())
        app.state.gateway = None
        response = TestClient(app).get(f"{BASE}/default/deployments")

        assert response.status_code == 503
        assert response.json() == {"code": 503, "message": "Service not initialized"}
