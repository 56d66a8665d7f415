from locust import HttpUser, task, between
import os
from urllib.parse import quote

PROXY_HOST = os.getenv("PROXY_HOST", "http://127.0.0.1:8000")
UPSTREAM = os.getenv("UPSTREAM", "http://127.0.0.1:8099")

# Authenticated tasks need a session that exists and is active in the store.
# Leave SESSION_ID unset to only exercise the simple (unmetered) path.
SESSION_ID = os.getenv("SESSION_ID", "")


class ProxyUser(HttpUser):
    host = PROXY_HOST
    wait_time = between(0.1, 0.3)

    def _simple(self, path: str, name: str):
        with self.client.get(
            "/proxy-service",
            params={"url": f"{UPSTREAM}{path}"},
            name=name,
            catch_response=True,
        ) as r:
            if r.status_code != 200:
                r.failure(f"unexpected status {r.status_code}: {r.text[:200]}")
            elif r.headers.get("X-Proxy-Status") != "success":
                r.failure("missing X-Proxy-Status")
            else:
                r.success()

    def _authenticated(self, path: str, name: str):
        encoded = quote(f"{UPSTREAM}{path}", safe="")
        with self.client.get(
            f"/proxy-service/{SESSION_ID}/{encoded}",
            name=name,
            catch_response=True,
        ) as r:
            # 401 is a legitimate answer once the balance runs out
            if r.status_code in (200, 401):
                r.success()
            else:
                r.failure(f"unexpected status {r.status_code}: {r.text[:200]}")

    @task(6)
    def html_page(self):
        self._simple("/page.html", "/proxy-service?url= html")

    @task(2)
    def stylesheet(self):
        self._simple("/static/site.css", "/proxy-service?url= css")

    @task(1)
    def large_binary(self):
        self._simple("/download/blob.bin", "/proxy-service?url= blob")

    @task(3)
    def metered_page(self):
        if not SESSION_ID:
            return
        self._authenticated("/page.html", "/proxy-service/{session}/{target} html")
