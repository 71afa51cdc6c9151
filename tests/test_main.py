"""Unit tests for provision.py (main script).

Tests argument parsing, validation and the entry point flow.
"""

import threading
from unittest.mock import MagicMock, call, patch

import pytest

from lib.constants import EXIT_FAILURE, EXIT_INTERRUPT, EXIT_SUCCESS
from lib.exceptions import ProvisionExhaustedError, WaitTimeoutError
from lib.resources import ResourceHandle, ResourceKind
from lib.waiter import PollSpec
from provision import main, parse_args, run_pod, run_vm, validate_args

POD_ARGS = ["--kind", "pod", "--image", "busybox"]
VM_ARGS = ["--kind", "vm", "--script", "scripts/setup.sh"]


@pytest.mark.unit
class TestArgParsing:
    """Tests for command line argument parsing."""

    def test_kind_is_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_invalid_kind(self):
        with pytest.raises(SystemExit):
            parse_args(["--kind", "job"])

    def test_pod_defaults(self):
        args = parse_args(POD_ARGS)

        assert args.namespace == "core"
        assert args.interval == 15
        assert args.timeout == 300
        assert args.attempts == 3
        assert args.cleanup is False
        assert args.log_format == "text"

    def test_vm_options(self):
        args = parse_args(VM_ARGS + ["--ssh-key", "/keys/id_rsa", "--read-file", "/tmp/out.txt", "--memory", "4Gi"])

        assert args.template == "rhel8-4-az-a"
        assert args.template_namespace == "openshift"
        assert args.ssh_key == "/keys/id_rsa"
        assert args.ssh_user == "cloud-user"
        assert args.read_file == "/tmp/out.txt"
        assert args.memory == "4Gi"

    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "0.1.0" in capsys.readouterr().out


@pytest.mark.unit
class TestValidateArgs:
    def test_valid_pod_args(self, mock_logger):
        validate_args(parse_args(POD_ARGS), mock_logger)

        mock_logger.error.assert_not_called()

    @pytest.mark.parametrize(
        "argv",
        [
            ["--kind", "pod"],
            ["--kind", "vm"],
            POD_ARGS + ["--ssh-key", "/keys/id_rsa"],
            VM_ARGS + ["--read-file", "/tmp/out.txt"],
            POD_ARGS + ["--attempts", "0"],
            POD_ARGS + ["--timeout", "-1"],
            POD_ARGS + ["--name", "Not_Valid"],
            POD_ARGS + ["--namespace", "bad namespace"],
        ],
    )
    def test_invalid_args_exit(self, argv, mock_logger):
        with pytest.raises(SystemExit) as exc_info:
            validate_args(parse_args(argv), mock_logger)

        assert exc_info.value.code == EXIT_FAILURE
        mock_logger.error.assert_called_once()


@pytest.fixture
def ctx():
    ctx = MagicMock()
    ctx.name.side_effect = lambda role="": f"functional-test-{role}-ab12cd34"
    return ctx


@pytest.mark.unit
class TestRunners:
    def test_run_pod(self, ctx, mock_logger):
        args = parse_args(POD_ARGS + ["--command", "sh -c 'echo ok'", "--attempts", "5"])
        spec = PollSpec(interval=1, timeout=10)
        cancel = threading.Event()

        run_pod(args, ctx, spec, cancel, mock_logger)

        name, containers = ctx.pods.create_pod_with_retry.call_args[0]
        assert name == "functional-test-pod-ab12cd34"
        assert containers[0].image == "busybox"
        assert containers[0].command == ["sh", "-c", "echo ok"]
        assert ctx.pods.create_pod_with_retry.call_args[1]["attempts"] == 5
        ctx.track.assert_called_once_with(ctx.pods.create_pod_with_retry.return_value)

    def test_run_vm_without_ssh(self, ctx, mock_logger):
        args = parse_args(VM_ARGS + ["--name", "vm1"])

        run_vm(args, ctx, PollSpec(interval=1, timeout=10), threading.Event(), mock_logger)

        assert ctx.vms.create_vm.call_args[0] == ("vm1", "scripts/setup.sh")
        assert ctx.vms.create_vm.call_args[1]["wait"] is False
        ctx.vms.wait_for_template_instance.assert_called_once()
        ctx.vms.wait_for_vm_ready.assert_called_once()
        ctx.services.create_service.assert_not_called()
        assert ctx.track.call_count == 2

    @patch("provision.poll_ssh_connection")
    def test_run_vm_with_ssh(self, mock_poll, ctx, mock_logger):
        args = parse_args(VM_ARGS + ["--name", "vm1", "--ssh-key", "/keys/id_rsa", "--read-file", "/tmp/out.txt"])
        ctx.services.wait_for_external_ip.return_value = "10.0.0.5"
        session = mock_poll.return_value.__enter__.return_value
        session.read_file.return_value = "hello"

        run_vm(args, ctx, PollSpec(interval=1, timeout=10), threading.Event(), mock_logger)

        service_name, service_type, ports = ctx.services.create_service.call_args[0]
        assert service_name == "functional-test-ssh-ab12cd34"
        assert service_type == "LoadBalancer"
        assert ports[0]["port"] == 22
        assert ctx.services.create_service.call_args[1]["selector"] == {"vm.kubevirt.io/name": "vm1"}
        assert ctx.services.create_service.call_args[1]["wait"] is False
        ctx.services.get_external_ip.assert_not_called()
        target = mock_poll.call_args[0][0]
        assert target.host == "10.0.0.5"
        assert target.key_path == "/keys/id_rsa"
        session.read_file.assert_called_once_with("/tmp/out.txt")
        assert mock_poll.call_args[1]["logger"] is mock_logger

    def test_run_vm_tracks_resources_before_template_wait(self, ctx, mock_logger):
        args = parse_args(VM_ARGS + ["--name", "vm1"])
        ctx.vms.wait_for_template_instance.side_effect = WaitTimeoutError("templateinstance core/vm1 timed out")

        with pytest.raises(WaitTimeoutError):
            run_vm(args, ctx, PollSpec(interval=1, timeout=10), threading.Event(), mock_logger)

        assert ctx.track.call_args_list == [
            call(ctx.vms.template_instance_handle.return_value),
            call(ctx.vms.create_vm.return_value),
        ]
        ctx.vms.wait_for_vm_ready.assert_not_called()

    @patch("provision.poll_ssh_connection")
    def test_run_vm_tracks_service_before_address_wait(self, mock_poll, ctx, mock_logger):
        args = parse_args(VM_ARGS + ["--name", "vm1", "--ssh-key", "/keys/id_rsa"])
        ctx.services.wait_for_external_ip.side_effect = WaitTimeoutError("external IP of service timed out")

        with pytest.raises(WaitTimeoutError):
            run_vm(args, ctx, PollSpec(interval=1, timeout=10), threading.Event(), mock_logger)

        ctx.track.assert_called_with(ctx.services.create_service.return_value)
        assert ctx.track.call_count == 3
        mock_poll.assert_not_called()


@pytest.mark.unit
class TestMain:
    @pytest.fixture
    def env(self):
        with patch("provision.setup_logging") as mock_setup, patch("provision.KubeClient") as mock_client, patch(
            "provision.TestContext"
        ) as mock_ctx:
            yield mock_setup, mock_client, mock_ctx.return_value

    @patch("provision.run_pod")
    def test_success(self, mock_run, env):
        _, mock_client, ctx = env
        ctx.tracked = [ResourceHandle(ResourceKind.POD, "default", "web")]

        with pytest.raises(SystemExit) as exc_info:
            main(POD_ARGS)

        assert exc_info.value.code == EXIT_SUCCESS
        mock_client.return_value.verify_connection.assert_called_once()
        mock_run.assert_called_once()
        ctx.cleanup.assert_not_called()

    @patch("provision.run_pod")
    def test_failure_cleans_up(self, mock_run, env):
        _, _, ctx = env
        mock_run.side_effect = ProvisionExhaustedError("pod default/web failed after 3 attempts")

        with pytest.raises(SystemExit) as exc_info:
            main(POD_ARGS + ["--cleanup"])

        assert exc_info.value.code == EXIT_FAILURE
        ctx.cleanup.assert_called_once()

    @patch("provision.run_vm")
    def test_interrupt_sets_cancel(self, mock_run, env):
        mock_run.side_effect = KeyboardInterrupt

        with pytest.raises(SystemExit) as exc_info:
            main(VM_ARGS)

        assert exc_info.value.code == EXIT_INTERRUPT
        cancel = mock_run.call_args[0][3]
        assert cancel.is_set()

    @patch("provision.run_vm")
    def test_interrupt_with_cleanup_deletes_tracked(self, mock_run, env):
        _, _, ctx = env
        mock_run.side_effect = KeyboardInterrupt

        with pytest.raises(SystemExit) as exc_info:
            main(VM_ARGS + ["--cleanup"])

        assert exc_info.value.code == EXIT_INTERRUPT
        ctx.cleanup.assert_called_once()

    def test_connection_failure(self, env):
        _, mock_client, _ = env
        mock_client.return_value.verify_connection.side_effect = RuntimeError("no cluster")

        with pytest.raises(SystemExit) as exc_info:
            main(POD_ARGS)

        assert exc_info.value.code == EXIT_FAILURE
