# runcclient

A Python client for the `runc` command line. It builds `runc` invocations,
starts them as child processes, waits for them and decodes what `runc`
prints: container state, process lists, resource statistics, event streams,
feature lists and version information.

The package has no third-party dependencies. It is a library only and does
not run containers by itself: a `runc` binary (or a compatible runtime) must
be on `PATH`, or named with `Runc(command=...)`.

## Installing

```
pip install .
```

## Using the client

```python
from runcclient.client import Runc
from runcclient.options import CreateOpts, DeleteOpts, KillOpts

runc = Runc(root="/run/runc")

runc.create("web", "/srv/bundles/web", CreateOpts(detach=True))
runc.start("web")

for container in runc.list():
    print(container.id, container.status, container.pid)

print(runc.ps("web"))

runc.kill("web", 15, KillOpts(all=True))
runc.delete("web", DeleteOpts(force=True))
```

`Runc` also has `state`, `exec`, `run`, `pause`, `resume`, `top`, `update`,
`version` and `features`. `Runc.args()` returns the global flags (`--root`,
`--debug`, `--log`, `--log-format`, `--systemd-cgroup`, `--rootless=...` and
`extra_args`) placed before every subcommand.

When `runc` exits with a non-zero status, `runcclient.options.ExitError` is
raised; its `status` holds the exit code and, where the output was captured,
its message includes what `runc` printed. `run` and `restore` return the exit
status when it is zero.

`exec` takes the OCI process spec as a mapping, writes it to a temporary
file (under `$XDG_RUNTIME_DIR` when set) and removes it afterwards. The
`started` option of `CreateOpts` and `ExecOpts` is a callable that receives
the child's pid once it is running.

### Process I/O

Give an options object an I/O setup through its `io` field to connect the
container's standard streams:

```python
from runcclient.procio import new_pipe_io, new_stdio, new_null_io

pipes = new_pipe_io(0, 0, open_stdin=True, open_stdout=True, open_stderr=False)
```

`new_pipe_io` creates pipes whose child ends are owned by the given uid and
gid; the caller's ends are `pipes.stdin`, `pipes.stdout` and `pipes.stderr`.
`new_stdio()` hands this process's own streams to `runc`, and `new_null_io()`
sends the child's output to the null device. All of them can be used as
context managers and closed with `close()`.

### Consoles

For containers with a terminal, create a console socket, pass it as
`console_socket` and receive the pty master once `runc` has sent it:

```python
from runcclient.console import new_temp_console_socket
from runcclient.options import CreateOpts

with new_temp_console_socket() as console:
    runc.create("web", "/srv/bundles/web", CreateOpts(console_socket=console, detach=True))
    master = console.receive_master()
```

`new_console_socket(path)` listens at a path of your choice.
`new_temp_console_socket()` uses a new temporary directory, which `close()`
removes again.

### Statistics and events

`Runc.stats(container_id)` returns a single `Stats` snapshot.
`Runc.events(container_id, interval)` takes seconds or a `timedelta` and
yields `Event` objects until `runc` stops; an event whose `type` is
`"error"` carries the decoding failure in `err` and ends the stream.

### Checkpoint and restore

```python
from runcclient.options import CheckpointOpts, RestoreOpts, CgroupMode, leave_running

runc.checkpoint(
    "web",
    CheckpointOpts(image_path="/srv/ckpt", cgroups=CgroupMode.SOFT),
    leave_running,
)
runc.restore(
    "web",
    "/srv/bundles/web",
    RestoreOpts(checkpoint=CheckpointOpts(image_path="/srv/ckpt"), detach=True),
)
```

`pre_dump` is the other checkpoint action. A `status_file` in
`CheckpointOpts` is passed to `runc` as descriptor 3 with `--status-fd 3`.

### Utilities

`runcclient.utils.read_pid_file(path)` reads a pid file written by `runc`,
and `runcclient.utils.parse_ps_output(output)` turns the table output of
`runc ps` into a `TopResults`. `runcclient.options.parse_version(data)`
parses the output of `runc --version` into a `Version`.

## Running the tests

```
pip install .[test]
pytest
```