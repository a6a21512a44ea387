import logging
import os
import subprocess
from dataclasses import replace
from typing import List, Optional

import requests
from packaging.version import InvalidVersion, Version
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .errors import InstallerError, UnsupportedDistributionError
from .errors_catalog import actionable_error
from .models import InstallConfig, Step, StepResult
from .services.archive import ArchiveService
from .services.cluster import JOIN_COMMAND, ClusterService
from .services.command_runner import CommandRunner
from .services.distribution import DistributionService
from .services.download import DownloadService
from .services.filesystem import FileSystemService
from .services.packages import PackageService
from .services.run_log import RunLog
from .services.runtime import RuntimeService
from .services.systemd import SystemdService

console = Console()
logger = logging.getLogger("kubeinstaller")


class NodeInstaller:
    def __init__(
        self,
        config: InstallConfig,
        root_dir: str = "/",
        command_runner: Optional[CommandRunner] = None,
        requests_module=requests,
        console: Console = console,
        tmp_root: Optional[str] = None,
    ):
        for label, value in (
            ("Kubernetes", config.kube_version),
            ("containerd", config.containerd_version),
            ("Calico", config.calico_version),
        ):
            self._validate_version(label, value)
        if config.node_ready_timeout_seconds <= 0:
            raise InstallerError("Node ready timeout must be a positive number of seconds.")

        self.config = replace(
            config,
            containerd_sha256=self._normalize_sha256(config.containerd_sha256, "containerd_sha256"),
        )
        self.console = console
        self.tmp_root = tmp_root
        self.run_log: Optional[RunLog] = None
        self.results: List[StepResult] = []
        self.current_step_name: Optional[str] = None

        self.command_runner = command_runner or CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console, root_dir=root_dir)
        self.archive_service = ArchiveService()
        self.download_service = DownloadService(
            logger=logger,
            console=console,
            requests_module=requests_module,
            retry_count=2,
            retry_backoff_seconds=3.0,
        )
        self.systemd_service = SystemdService(logger=logger, run_cmd=self._run_cmd)
        self.distribution_service = DistributionService(
            logger=logger,
            filesystem_service=self.filesystem_service,
        )
        self.package_service = PackageService(
            logger=logger,
            run_cmd=self._run_cmd,
            command_exists=self.command_runner.command_exists,
            filesystem_service=self.filesystem_service,
            download_service=self.download_service,
            systemd_service=self.systemd_service,
        )
        self.runtime_service = RuntimeService(
            logger=logger,
            run_cmd=self._run_cmd,
            filesystem_service=self.filesystem_service,
            download_service=self.download_service,
            archive_service=self.archive_service,
            systemd_service=self.systemd_service,
        )
        self.cluster_service = ClusterService(
            logger=logger,
            console=console,
            run_cmd=self._run_cmd,
            filesystem_service=self.filesystem_service,
            systemd_service=self.systemd_service,
        )

    @staticmethod
    def _validate_version(label: str, value: str):
        try:
            parsed = Version(str(value))
        except InvalidVersion as exc:
            raise InstallerError(
                actionable_error("invalid_version", label=label, value=str(value))
            ) from exc
        if parsed.local or parsed.is_prerelease or parsed.is_devrelease:
            raise InstallerError(actionable_error("invalid_version", label=label, value=str(value)))

    @staticmethod
    def _normalize_sha256(value: Optional[str], option_name: str) -> Optional[str]:
        if value is None:
            return None

        clean_value = value.strip().lower()
        if len(clean_value) != 64 or any(c not in "0123456789abcdef" for c in clean_value):
            raise InstallerError(actionable_error("invalid_sha256", option=option_name))
        return clean_value

    def _run_cmd(self, cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, **kwargs)

    def _staging_dir(self, name: str) -> str:
        base = self.run_log.tmp_dir if self.run_log else self.tmp_root
        return os.path.join(base or ".", name)

    # Step callbacks

    def check_distribution(self):
        self.distribution_service.ensure_supported(self.config.supported_release)

    def disable_swap(self):
        self.runtime_service.disable_swap()

    def remove_packages(self):
        self.package_service.remove_conflicting_packages()

    def install_packages(self):
        self.package_service.add_kubernetes_repository(self._staging_dir("apt"))
        self.package_service.install_pinned(self.config.kube_version)

    def install_containerd(self):
        self.runtime_service.install_containerd(
            self.config.containerd_url,
            self._staging_dir("containerd"),
            expected_sha256=self.config.containerd_sha256,
        )

    def configure_containerd(self):
        self.runtime_service.configure_containerd()

    def configure_system(self):
        self.runtime_service.configure_kernel()

    def configure_crictl(self):
        self.runtime_service.configure_crictl()

    def configure_kubelet(self):
        self.runtime_service.configure_kubelet()

    def start_services(self):
        self.runtime_service.start_services()

    def kubeadm_init(self):
        self.cluster_service.init_control_plane(
            self.config.kube_version,
            self.config.pod_network_cidr,
        )

    def install_cni(self):
        self.cluster_service.install_cni(self.config.calico_url)

    def wait_for_nodes(self):
        self.cluster_service.wait_for_nodes(self.config.node_ready_timeout_seconds)

    def remove_stale_kubeconfig(self):
        self.cluster_service.remove_stale_kubeconfigs(self.config.kubeconfig_users)

    def configure_kubeconfig(self):
        self.cluster_service.configure_kubeconfig(self.config.kubeconfig_users)

    def print_join_command(self):
        join_command = self.cluster_service.join_command()
        self.console.print()
        self.console.print("[bold]### Command to add a worker node ###[/bold]")
        self.console.print(join_command, markup=False, highlight=False)

    def check_worker_services(self):
        self.cluster_service.check_worker_services()

    def print_worker_instructions(self):
        self.console.print()
        self.console.print("[bold]### To add this node as a worker node ###[/bold]")
        self.console.print("Run the below on the control plane node:")
        self.console.print(" ".join(JOIN_COMMAND), markup=False, highlight=False)
        self.console.print("and execute the output on the worker nodes")
        self.console.print()

    # Plan

    def common_steps(self) -> List[Step]:
        return [
            Step("check_distribution", "Checking Linux distribution", self.check_distribution),
            Step("disable_swap", "Disabling swap", self.disable_swap),
            Step("remove_packages", "Removing packages", self.remove_packages, ignore_failure=True),
            Step("install_packages", "Installing packages", self.install_packages),
            Step("install_containerd", "Installing containerd", self.install_containerd),
            Step("configure_containerd", "Configuring containerd", self.configure_containerd),
            Step("configure_system", "Configuring system", self.configure_system),
            Step("configure_crictl", "Configuring crictl", self.configure_crictl),
            Step("configure_kubelet", "Configuring kubelet", self.configure_kubelet),
            Step("start_services", "Starting services", self.start_services),
        ]

    def control_plane_steps(self) -> List[Step]:
        return [
            Step("kubeadm_init", "Initializing the Kubernetes control plane", self.kubeadm_init),
            Step("install_cni", "Installing Calico CNI", self.install_cni),
            Step("wait_for_nodes", "Waiting for nodes to be ready...", self.wait_for_nodes),
            Step(
                "remove_stale_kubeconfig",
                "Removing stale kubeconfig files",
                self.remove_stale_kubeconfig,
                ignore_failure=True,
            ),
            Step(
                "configure_kubeconfig",
                f"Configuring kubeconfig for {' and '.join(self.config.kubeconfig_users)} users",
                self.configure_kubeconfig,
            ),
            Step("print_join_command", "Creating worker join command", self.print_join_command),
        ]

    def worker_steps(self) -> List[Step]:
        return [
            Step("check_worker_services", "Check worker services", self.check_worker_services),
            Step(
                "print_worker_instructions",
                "Printing worker join instructions",
                self.print_worker_instructions,
            ),
        ]

    def tail_steps(self) -> List[Step]:
        if self.config.is_control_plane:
            return self.control_plane_steps()
        return self.worker_steps()

    def build_steps(self) -> List[Step]:
        return self.common_steps() + self.tail_steps()

    def print_plan(self):
        table = Table(title=f"Install plan ({self.config.role.value} node)")
        table.add_column("#", justify="right")
        table.add_column("Step")
        table.add_column("Description")
        table.add_column("On failure")
        for index, step in enumerate(self.build_steps(), start=1):
            table.add_row(
                str(index),
                step.name,
                step.description,
                "continue" if step.ignore_failure else "abort",
            )
        self.console.print(table)

    # Execution

    def _run_step(self, step: Step) -> StepResult:
        self.current_step_name = step.name
        self.console.print(f"[blue]{step.description}[/blue]")
        logger.debug("==> Step %s", step.name)

        try:
            step.callback()
        except UnsupportedDistributionError:
            raise
        except Exception as exc:
            if not step.ignore_failure:
                self.results.append(StepResult(step.name, "failed", str(exc)))
                raise
            logger.warning("Ignoring failure in step %s: %s", step.name, exc)
            result = StepResult(step.name, "ignored", str(exc))
        else:
            result = StepResult(step.name, "success")

        self.results.append(result)
        self.current_step_name = None
        return result

    def run(self) -> int:
        if self.config.dry_run:
            self.print_plan()
            return 0

        exit_code = 1
        try:
            self.run_log = RunLog(logger=logger, tmp_root=self.tmp_root)
            self.console.print("Starting install...")
            self.console.print(f"==> Logging all output to {self.run_log.path}")
            logger.debug("Installing %s node with %s", self.config.role.value, self.config)

            for step in self.common_steps():
                self._run_step(step)

            if self.config.is_control_plane:
                self.console.print("[bold]Configuring control plane node...[/bold]")

            for step in self.tail_steps():
                self._run_step(step)

            self.console.print("[green]Install complete![/green]")
            if self.config.verbose:
                self.run_log.dump(self.console, title="### Log file ###")
            exit_code = 0
            return exit_code

        except UnsupportedDistributionError as exc:
            self.console.print(f"[bold red]ERROR:[/bold red] {escape(str(exc))}")
            exit_code = 1
            return exit_code
        except KeyboardInterrupt:
            self.console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            exit_code = 1
            return exit_code
        except Exception as exc:
            failed_step = self.current_step_name or "startup"
            if isinstance(exc, InstallerError):
                logger.error("Step %s failed: %s", failed_step, exc)
            else:
                logger.exception("Unexpected error in step %s", failed_step)
            self.console.print(f"[bold red]Error in step {failed_step}:[/bold red] {escape(str(exc))}")
            if self.run_log:
                self.run_log.dump(self.console, title="### Log file ###")
            self.console.print(f"[red]{escape(actionable_error('step_failed', step=failed_step))}[/red]")
            exit_code = 1
            return exit_code
        finally:
            if self.run_log:
                self.run_log.cleanup()
