"""Fixed versions, paths and file contents used during installation."""

KUBE_VERSION = "1.26.3"
CONTAINERD_VERSION = "1.7.0"
CALICO_VERSION = "3.25.0"
SUPPORTED_RELEASE = "22.04"
POD_NETWORK_CIDR = "192.168.0.0/16"
NODE_READY_TIMEOUT_SECONDS = 180
KUBECONFIG_USERS = ("root", "ubuntu")
ARCH = "amd64"

KUBE_PACKAGES = ("kubelet", "kubeadm", "kubectl", "kubernetes-cni")
PINNED_PACKAGES = ("kubelet", "kubeadm", "kubectl")
MOBY_PACKAGES = (
    "moby-buildx",
    "moby-cli",
    "moby-compose",
    "moby-containerd",
    "moby-engine",
    "moby-runc",
)
CONFLICTING_PACKAGES = ("docker.io", "containerd") + KUBE_PACKAGES
CALICO_MANIFESTS = ("tigera-operator", "custom-resources")
KERNEL_MODULES = ("overlay", "br_netfilter")

APT_KEY_URL = "https://packages.cloud.google.com/apt/doc/apt-key.gpg"
CONTAINERD_RELEASE_URL = (
    "https://github.com/containerd/containerd/releases/download/"
    "v{version}/containerd-{version}-linux-{arch}.tar.gz"
)
CALICO_URL = "https://raw.githubusercontent.com/projectcalico/calico/v{version}/manifests"

LSB_RELEASE_PATH = "/etc/lsb-release"
OS_RELEASE_PATH = "/etc/os-release"
FSTAB_PATH = "/etc/fstab"
APT_SOURCES_PATH = "/etc/apt/sources.list.d/kubernetes.list"
MODULES_LOAD_PATH = "/etc/modules-load.d/containerd.conf"
SYSCTL_PATH = "/etc/sysctl.d/99-kubernetes-cri.conf"
CONTAINERD_CONFIG_PATH = "/etc/containerd/config.toml"
CRICTL_CONFIG_PATH = "/etc/crictl.yaml"
KUBELET_DEFAULTS_PATH = "/etc/default/kubelet"
ADMIN_KUBECONFIG_PATH = "/etc/kubernetes/admin.conf"
BINARY_DIR = "/usr/bin"

CONTAINERD_SOCKET = "unix:///run/containerd/containerd.sock"

APT_SOURCES_CONTENT = "deb http://apt.kubernetes.io/ kubernetes-xenial main\n"

SYSCTL_CONTENT = """net.bridge.bridge-nf-call-iptables  = 1
net.ipv4.ip_forward                 = 1
net.bridge.bridge-nf-call-ip6tables = 1
"""

CRICTL_CONTENT = f"runtime-endpoint: {CONTAINERD_SOCKET}\n"

KUBELET_DEFAULTS_CONTENT = (
    'KUBELET_EXTRA_ARGS="--container-runtime remote '
    f'--container-runtime-endpoint {CONTAINERD_SOCKET}"\n'
)

CONTAINERD_CONFIG_CONTENT = """disabled_plugins = []
imports = []
oom_score = 0
plugin_dir = ""
required_plugins = []
root = "/var/lib/containerd"
state = "/run/containerd"
version = 2

[plugins]

  [plugins."io.containerd.grpc.v1.cri".containerd.runtimes]
    [plugins."io.containerd.grpc.v1.cri".containerd.runtimes.runc]
      base_runtime_spec = ""
      container_annotations = []
      pod_annotations = []
      privileged_without_host_devices = false
      runtime_engine = ""
      runtime_root = ""
      runtime_type = "io.containerd.runc.v2"

      [plugins."io.containerd.grpc.v1.cri".containerd.runtimes.runc.options]
        BinaryName = ""
        CriuImagePath = ""
        CriuPath = ""
        CriuWorkPath = ""
        IoGid = 0
        IoUid = 0
        NoNewKeyring = false
        NoPivotRoot = false
        Root = ""
        ShimCgroup = ""
        SystemdCgroup = true
"""

BINARY_MODE = 0o755
