"""Tests for ServerContext, ContextSnapshot and ContextReloader (httpmeta/context.py).

Tests:
  - Default snapshot values
  - Charset setters (canonicalized, unknown ignored, None allowed)
  - Snapshots are immutable; in-flight requests keep theirs
  - Reload from YAML (valid file swaps, invalid file keeps prior)
  - Async watcher reloads on change
"""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from httpmeta.config import load_config
from httpmeta.context import ContextReloader, ContextSnapshot, ServerContext
from httpmeta.proxy.forwarded import ForwardedTrust, TrustPolicy


# ─── ServerContext ────────────────────────────────────────────────────────────


class TestServerContext:
    def test_defaults(self) -> None:
        context = ServerContext.with_defaults()
        assert context.request_charset == "UTF-8"
        assert context.response_charset == "UTF-8"
        assert context.trust.policy is TrustPolicy.TRUST_NONE
        assert context.snapshot().response_buffer_size == 1024

    def test_set_request_charset_canonicalized(self) -> None:
        context = ServerContext()
        assert context.set_request_charset("latin1") is True
        assert context.request_charset == "ISO-8859-1"

    def test_unknown_charset_keeps_prior(self) -> None:
        context = ServerContext()
        assert context.set_response_charset("bogus") is False
        assert context.response_charset == "UTF-8"

    def test_none_charset_allowed(self) -> None:
        context = ServerContext()
        assert context.set_request_charset(None) is True
        assert context.request_charset is None

    def test_snapshot_is_immutable(self) -> None:
        context = ServerContext()
        before = context.snapshot()
        context.set_request_charset("UTF-16")
        assert before.request_charset == "UTF-8"
        assert context.snapshot().request_charset == "UTF-16"

    def test_set_trust_and_server(self) -> None:
        context = ServerContext()
        context.set_trust(ForwardedTrust(policy=TrustPolicy.TRUST_ALL))
        context.set_server("example.com", 8443)
        snapshot = context.snapshot()
        assert snapshot.trust.policy is TrustPolicy.TRUST_ALL
        assert snapshot.server_name == "example.com"
        assert snapshot.server_port == 8443

    def test_from_config(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("version: 1\ncharset:\n  response: latin1\nresponse:\n  buffer_size: 64\n")
        context = ServerContext.from_config(load_config(str(path)))
        assert context.response_charset == "ISO-8859-1"
        assert context.snapshot().response_buffer_size == 64

    def test_concurrent_setters(self) -> None:
        """Last write wins; no setter is lost to a torn update."""
        context = ServerContext()

        def _worker() -> None:
            for _ in range(200):
                context.set_server("example.com", 8080)
                context.set_request_charset("ISO-8859-1")

        threads = [threading.Thread(target=_worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = context.snapshot()
        assert snapshot.server_name == "example.com"
        assert snapshot.request_charset == "ISO-8859-1"

    def test_in_flight_request_keeps_snapshot(self, make_request, context) -> None:
        request = make_request()
        context.set_server("late.example", 9000)
        assert request.server_name == "localhost"


# ─── ContextReloader ──────────────────────────────────────────────────────────


VALID = "version: 1\nserver:\n  name: reloaded.example\nforwarded:\n  trust_policy: trust_all\n"


class TestContextReloader:
    def test_reload_swaps_snapshot(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(VALID)
        context = ServerContext()
        reloader = ContextReloader(context, str(path))
        assert reloader.path == str(path)
        assert reloader.reload() is True
        assert context.snapshot().server_name == "reloaded.example"
        assert context.trust.policy is TrustPolicy.TRUST_ALL

    def test_invalid_yaml_keeps_prior(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(VALID)
        context = ServerContext()
        reloader = ContextReloader(context, str(path))
        reloader.reload()

        path.write_text("version: [1\n")
        assert reloader.reload() is False
        assert context.snapshot().server_name == "reloaded.example"

    def test_invalid_values_keep_prior(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("version: 1\nforwarded:\n  trust_policy: trust_proxy_allowlist\n")
        context = ServerContext(ContextSnapshot(server_name="before"))
        assert ContextReloader(context, str(path)).reload() is False
        assert context.snapshot().server_name == "before"

    def test_missing_file_keeps_prior(self, tmp_path: Path) -> None:
        context = ServerContext()
        assert ContextReloader(context, str(tmp_path / "missing.yaml")).reload() is False
        assert context.request_charset == "UTF-8"

    @pytest.mark.asyncio
    async def test_watcher_reloads_on_change(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(VALID)

        async def _fake_awatch(watched: str):
            assert watched == str(path)
            yield {("modified", watched)}

        monkeypatch.setattr("httpmeta.context.watchfiles.awatch", _fake_awatch)
        context = ServerContext()
        await ContextReloader(context, str(path)).start_watcher()
        assert context.snapshot().server_name == "reloaded.example"
