"""Unit tests for lib/pod_exec.py."""

from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from kubernetes.client.rest import ApiException

from lib.exceptions import PodExecError
from lib.pod_exec import ExecOptions, exec_in_pod


@pytest.fixture
def kube():
    return MagicMock()


@pytest.fixture
def options():
    return ExecOptions(
        namespace="default",
        pod_name="test-dns-pod-ab12cd",
        container_name="dnsutils",
        command=["nslookup", "kubernetes.default"],
        timeout=5,
    )


def _response(returncode=0, stdout="", stderr="", still_open=False):
    resp = MagicMock()
    resp.is_open.return_value = still_open
    resp.read_stdout.return_value = stdout
    resp.read_stderr.return_value = stderr
    resp.returncode = returncode
    return resp


@pytest.mark.unit
class TestExecInPod:
    @patch("lib.pod_exec.stream")
    def test_success(self, mock_stream, kube, options):
        resp = _response(stdout="Name: kubernetes.default\n")
        mock_stream.return_value = resp

        result = exec_in_pod(kube, options)

        assert result.exit_code == 0
        assert "kubernetes.default" in result.stdout
        resp.run_forever.assert_called_once_with(timeout=5)
        resp.close.assert_called_once()
        args, kwargs = mock_stream.call_args
        assert args == (kube.core_v1.connect_get_namespaced_pod_exec, "test-dns-pod-ab12cd", "default")
        assert kwargs["command"] == ["nslookup", "kubernetes.default"]
        assert kwargs["container"] == "dnsutils"
        assert kwargs["stdin"] is False and kwargs["tty"] is False

    @patch("lib.pod_exec.stream")
    def test_non_zero_exit(self, mock_stream, kube, options):
        mock_stream.return_value = _response(returncode=1, stderr=";; connection timed out")

        with pytest.raises(PodExecError) as exc_info:
            exec_in_pod(kube, options)

        assert exc_info.value.exit_code == 1
        assert exc_info.value.stderr == ";; connection timed out"
        assert "exited with code 1" in str(exc_info.value)

    @patch("lib.pod_exec.stream")
    def test_timeout(self, mock_stream, kube, options):
        resp = _response(still_open=True)
        mock_stream.return_value = resp

        with pytest.raises(PodExecError, match="did not finish within 5s"):
            exec_in_pod(kube, options)
        resp.close.assert_called_once()

    @patch("lib.pod_exec.stream")
    def test_pod_missing(self, mock_stream, kube, options):
        mock_stream.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(PodExecError, match="unable to exec"):
            exec_in_pod(kube, options)

    @patch("lib.pod_exec.stream")
    def test_connection_error(self, mock_stream, kube, options):
        mock_stream.side_effect = ConnectionError("handshake failed")

        with pytest.raises(PodExecError, match="handshake failed"):
            exec_in_pod(kube, options)

    @patch("lib.pod_exec.stream")
    def test_missing_exit_status(self, mock_stream, kube, options):
        resp = _response(stdout="partial")
        type(resp).returncode = PropertyMock(side_effect=TypeError("'NoneType' object is not subscriptable"))
        mock_stream.return_value = resp

        with pytest.raises(PodExecError, match="closed without an exit status") as exc_info:
            exec_in_pod(kube, options)

        assert exc_info.value.exit_code is None
        assert exc_info.value.stdout == "partial"
        resp.close.assert_called_once()
