# kindnodes

`kindnodes` works with the nodes of local Kubernetes clusters. Each node runs
as a container, and the package drives it through the `nerdctl` or `finch`
command line. It needs nothing outside the standard library.

## Installation

```
pip install kindnodes
```

To use the nerdctl backend, `nerdctl` or `finch` must be on `PATH`.

## Usage

```python
from kindnodes.nerdctl.node import is_available
from kindnodes.nerdctl.provider import new_provider
from kindnodes.nodeutils import control_plane_nodes

if is_available():
    provider = new_provider()            # nerdctl, or finch if only that is found
    print(provider.list_clusters())      # sorted names of clusters with nodes

    nodes = provider.list_nodes("kind")
    for node in control_plane_nodes(nodes):
        print(node, node.role(), node.ip())

    print(provider.get_api_server_endpoint("kind"))
    print(provider.info())
```

## Modules

### `kindnodes.nodes`

- `Cmd` describes one command line: `program`, `args`, an optional `env`
  (a list of `KEY=VALUE` entries that replaces the environment), `stdin`,
  `stdout`, `stderr` and `timeout`. `run()` sends output to the writers you
  set. `output()` returns standard output as bytes. `output_lines()` returns
  it split into lines.
- `RunError` is raised when a command cannot be started, exits non-zero or
  times out. It carries `command`, `output` and `returncode`.
- `Node` is the abstract node handle. `str(node)` gives its name. It has
  `role()`, `ip()` (IPv4 and IPv6), `command(...)` and `serial_logs(writer)`.

### `kindnodes.providers.base`

- `Provider` is the abstract interface a backend implements: `list_clusters`,
  `list_nodes`, `delete_nodes`, `get_api_server_endpoint`,
  `get_api_server_internal_endpoint` and `info`.
- `ProviderInfo` is a frozen dataclass of runtime capabilities: `rootless`,
  `cgroup2`, `supports_memory_limit`, `supports_pids_limit` and
  `supports_cpu_shares`.

### `kindnodes.nodeutils`

These helpers work with any `Node`:

- Role selection: `select_nodes_by_role`, `internal_nodes`,
  `external_load_balancer_node`, `api_server_endpoint_node`,
  `control_plane_nodes` (sorted by name), `bootstrap_control_plane_node` and
  `secondary_control_plane_nodes`. An impossible selection raises
  `NodeSelectionError`, for example several control planes and no load
  balancer.
- Work inside a node: `kube_version`, `write_file`, `copy_node_to_node`,
  `load_image_archive`, `image_id`, `image_tags` and `re_tag_image`.
- `parse_snapshotter` reads the CRI snapshotter name from a containerd TOML
  configuration dump. It raises `ValueError` when the name cannot be found.

### `kindnodes.nerdctl`

- `provider`: `NerdctlProvider` implements `Provider`, and `new_provider`
  creates one. `info()` is worked out once and then cached. `parse_info`
  turns the runtime's `info --format '{{json .}}'` output into a
  `ProviderInfo`. `mount_fuse` reports whether the runtime is rootless.
- `node`: `NerdctlNode` runs commands in its container through `exec`.
  `is_available()` checks for `nerdctl` first and then for `finch`.
- `network`: `ensure_network`, `create_network`, `check_if_network_exists`,
  `get_default_network_mtu`, `is_ipv6_unavailable_error`,
  `is_pool_overlap_error` and `generate_ula_subnet_from_name`. The last one
  derives an IPv6 ULA subnet from the network name:

  ```python
  from kindnodes.nerdctl.network import generate_ula_subnet_from_name

  generate_ula_subnet_from_name("kind", 0)  # 'fc00:f853:ccd:e793::/64'
  ```

- `images`: `sanitize_image`, `pull_if_not_present` and `pull`. `pull`
  retries with pauses that grow longer each time.

## What it does not do

- It cannot create or provision clusters. It works with nodes that already
  exist.
- It has only the nerdctl/finch backend. There is no podman backend yet, and
  the `kindnodes.podman` package is empty.
- It never picks a runtime by itself. You choose the backend and build its
  provider.
- It has no command-line program.