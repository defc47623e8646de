"""Tests for the entry point wiring (the UI itself is not started)."""

from unittest.mock import MagicMock, patch

import pytest

from elastic_ingest_top import cli
from elastic_ingest_top.config import Settings, SSHSettings
from elastic_ingest_top.errors import ConfigError


class TestMain:
    @patch("elastic_ingest_top.cli.load_settings", side_effect=ConfigError("REFRESH_INTERVAL must be between 1 and 60 (got: 0)"))
    def test_config_error_exits(self, _, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli.main([])
        assert excinfo.value.code == 1
        assert capsys.readouterr().err.startswith("ERROR: REFRESH_INTERVAL")

    @patch("elastic_ingest_top.cli.configure_logging")
    @patch("elastic_ingest_top.cli.IngestTopApp")
    @patch("elastic_ingest_top.cli.ClusterClient")
    @patch("elastic_ingest_top.cli.load_settings")
    def test_wires_client_and_app(self, load_settings, client_cls, app_cls, _):
        load_settings.return_value = Settings(url="https://es:9200", api_key="k", refresh=7, rate_samples=3, colormap="cool")
        cli.main([])

        client_cls.assert_called_once_with(
            "https://es:9200", auth=None, headers={"Authorization": "ApiKey k"}, verify=True, timeout=30.0
        )
        state, poller, details = app_cls.call_args.args
        assert state.refresh_interval == 7
        assert state.rate_samples == 3
        assert poller.source is client_cls.return_value
        assert details is client_cls.return_value
        assert app_cls.call_args.kwargs == {"url": "https://es:9200", "colormap": "cool"}
        app_cls.return_value.run.assert_called_once()
        client_cls.return_value.close.assert_called_once()

    @patch("elastic_ingest_top.cli.configure_logging")
    @patch("elastic_ingest_top.cli.IngestTopApp")
    @patch("elastic_ingest_top.cli.ClusterClient")
    @patch("elastic_ingest_top.cli.open_tunnel")
    @patch("elastic_ingest_top.cli.load_settings")
    def test_tunnel_endpoint_and_cleanup(self, load_settings, open_tunnel, client_cls, app_cls, _):
        ssh = SSHSettings(host="jump", user="me", key="/k")
        load_settings.return_value = Settings(url="https://es:9200", ssh=ssh)
        tunnel = MagicMock()
        open_tunnel.return_value = (tunnel, "https://localhost:19200")
        app_cls.return_value.run.side_effect = RuntimeError("terminal went away")

        with pytest.raises(RuntimeError):
            cli.main([])

        assert client_cls.call_args.args == ("https://localhost:19200",)
        tunnel.stop.assert_called_once()
        client_cls.return_value.close.assert_called_once()

    @patch("elastic_ingest_top.cli.configure_logging")
    @patch("elastic_ingest_top.cli.open_tunnel", side_effect=OSError("no route"))
    @patch("elastic_ingest_top.cli.load_settings")
    def test_tunnel_failure_exits(self, load_settings, *_):
        load_settings.return_value = Settings(ssh=SSHSettings(host="jump", user="me", password="pw"))
        with pytest.raises(SystemExit):
            cli.main([])
