"""Tests for the sslfactory-probe command line tool."""

from __future__ import annotations

import json

import pytest

from sslfactory.tools import probe


def test_probe_reports_session(pki, tls_server, capsys) -> None:
    exit_code = probe.main(
        [tls_server.host, str(tls_server.port), "--cafile", str(pki.ca.cert_path), "--timeout", "5"]
    )

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "[Probe] --- Session ---" in out
    assert f"peer={tls_server.host}:{tls_server.port}" in out
    assert "protocol=TLSv1.2" in out
    assert "subject=CN=localhost" in out


def test_probe_json_output(pki, tls_server, capsys) -> None:
    exit_code = probe.main(
        [tls_server.host, str(tls_server.port), "--cafile", str(pki.ca.cert_path), "--protocol", "TLSv1.3", "--json"]
    )

    snapshot = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert snapshot["protocol"] == "TLSv1.3"
    assert snapshot["port"] == tls_server.port
    assert snapshot["chain_length"] >= 1
    assert "sslfactory test CA" in snapshot["peer_issuer"]


def test_probe_reads_config_file(pki, tls_server, tmp_path, capsys) -> None:
    path = tmp_path / "probe.toml"
    path.write_text(f'[sslfactory]\ncafile = "{pki.ca.cert_path}"\nprotocol = "TLSv1.3"\n')

    exit_code = probe.main([tls_server.host, str(tls_server.port), "--config", str(path), "--protocol", "TLSv1.2"])

    assert exit_code == 0
    assert "protocol=TLSv1.2" in capsys.readouterr().out


def test_probe_untrusted_server_fails(pki, rogue_tls_server, capsys) -> None:
    exit_code = probe.main([rogue_tls_server.host, str(rogue_tls_server.port), "--cafile", str(pki.ca.cert_path)])

    assert exit_code == 1
    assert "connection to" in capsys.readouterr().err


def test_probe_without_material_is_a_config_error(capsys) -> None:
    assert probe.main(["127.0.0.1", "443"]) == 2
    assert "configuration error" in capsys.readouterr().err


@pytest.mark.parametrize("port", ["0", "65536", "https"])
def test_probe_rejects_bad_port(port) -> None:
    with pytest.raises(SystemExit):
        probe.main(["127.0.0.1", port])


def test_probe_rejects_negative_timeout() -> None:
    with pytest.raises(SystemExit):
        probe.main(["127.0.0.1", "443", "--cafile", "/tmp/ca.pem", "--timeout", "-1"])
